from flask import Blueprint

bp = Blueprint("role_requests", __name__)

from . import routes  # noqa: E402,F401
