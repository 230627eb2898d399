"""Alembic environment bound to the CampusSync app.

The database URL and engine come from the Flask app, so relative sqlite paths
resolve under instance/ exactly as Flask-SQLAlchemy resolves them at runtime.
"""
from logging.config import fileConfig
import pathlib
import sys

from alembic import context

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

if context.config.config_file_name:
    fileConfig(context.config.config_file_name)

from wsgi import app  # noqa: E402
from campussync.extensions import db  # noqa: E402
import campussync.models  # noqa: E402,F401

target_metadata = db.metadata


def run_migrations_offline():
    with app.app_context():
        url = db.engine.url.render_as_string(hide_password=False)
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True,
                      compare_type=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    with app.app_context():
        with db.engine.connect() as connection:
            context.configure(connection=connection, target_metadata=target_metadata,
                              compare_type=True, render_as_batch=True)
            with context.begin_transaction():
                context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
