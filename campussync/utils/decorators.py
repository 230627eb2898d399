from functools import wraps
from flask_login import current_user
from ..errors import Forbidden, Unauthorized


def role_required(*roles):
    """Require an authenticated user holding one of ``roles``. Super-admins always pass."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthorized("Unauthorized")
            if not (current_user.is_super_admin or current_user.role in roles):
                raise Forbidden("Forbidden")
            return view(*args, **kwargs)
        return wrapped
    return decorator


admin_required = role_required("admin")


def super_admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized("Unauthorized")
        if not current_user.is_super_admin:
            raise Forbidden("Super admin access required")
        return view(*args, **kwargs)
    return wrapped
