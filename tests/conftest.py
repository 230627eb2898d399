import os
import sys
from datetime import datetime

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from campussync import create_app
from campussync.extensions import db
from campussync.models import Organization, RoleAssignment, User

PASSWORD = "password123"


@pytest.fixture
def app(tmp_path):
    app = create_app('config.TestConfig')
    app.config['LOCAL_STORAGE_DIR'] = str(tmp_path / 'storage')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def org(app):
    with app.app_context():
        o = Organization(name="Northfield University", slug="northfield", type="university")
        db.session.add(o)
        db.session.commit()
        return o.id


@pytest.fixture
def make_user(app, org):
    """Create a confirmed user; returns its id."""
    def _make(email, role=None, org_id="default", super_admin=False, primary_admin=False,
              full_name=None, confirmed=True):
        with app.app_context():
            oid = org if org_id == "default" else org_id
            u = User(email=email, full_name=full_name or email.split("@")[0].title(), org_id=oid,
                     email_confirmed_at=datetime.utcnow() if confirmed else None)
            u.set_password(PASSWORD)
            db.session.add(u)
            db.session.flush()
            if role and role != "student":
                db.session.add(RoleAssignment(user_id=u.id, role=role, organization_id=oid,
                                              is_super_admin=super_admin, is_primary_admin=primary_admin))
            db.session.commit()
            return u.id
    return _make


@pytest.fixture
def admin_id(make_user):
    return make_user("dean@northfield.edu", role="admin", full_name="Dana Dean")


@pytest.fixture
def login(app):
    """Log a fresh test client in as ``email``."""
    def _login(email, password=PASSWORD):
        c = app.test_client()
        resp = c.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return c
    return _login


@pytest.fixture
def admin_client(admin_id, login):
    return login("dean@northfield.edu")
