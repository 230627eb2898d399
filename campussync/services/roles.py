"""Role assignments and guarded role changes.

Every path that changes a user's role ends in ``apply_role_change`` so the
guard, the last-admin rule and the audit trail apply uniformly.
"""
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..extensions import db
from ..models.role_assignment import RoleAssignment
from ..models.user import User
from . import audit
from .role_guard import ROLES, check_role_change

TOKEN_SALT = "role-change"
LAST_ADMIN_MESSAGE = "Cannot demote the last admin of this organization"


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def load_target(actor, user_id):
    """Fetch a user the actor may manage; other organizations look like 404."""
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        raise ValidationError("Invalid user_id")
    if user is None:
        raise NotFound("User not found")
    if not actor.is_super_admin and user.org_id != actor.org_id:
        raise NotFound("User not found")
    return user


def admin_count(organization_id):
    return RoleAssignment.query.filter_by(role="admin", organization_id=organization_id).count()


def _check_last_admin(user, current, target):
    if current == "admin" and target != "admin" and admin_count(user.org_id) <= 1:
        raise Forbidden(LAST_ADMIN_MESSAGE)


def apply_role_change(actor, user, new_role, reason=None, action="role_change", commit=True):
    """Run the guard and write the new role. Returns the audit details."""
    assignment = user.role_assignment
    current = user.role
    check_role_change(
        current, new_role,
        actor_is_self=actor.id == user.id,
        is_super_admin=bool(assignment and assignment.is_super_admin),
        is_primary_admin=bool(assignment and assignment.is_primary_admin),
        reason=reason,
    )
    _check_last_admin(user, current, new_role)

    if new_role == "student" and assignment is not None:
        # delete-orphan cascade removes the row
        user.role_assignment = None
    elif assignment is None:
        assignment = RoleAssignment(user_id=user.id, role=new_role,
                                    organization_id=user.org_id, assigned_by=actor.id)
        db.session.add(assignment)
        user.role_assignment = assignment
    else:
        assignment.role = new_role
        assignment.assigned_by = actor.id

    details = {"old_role": current, "new_role": new_role, "reason": (reason or "").strip() or None}
    audit.record(action, actor_id=actor.id, user_id=user.id, target_id=user.id,
                 organization_id=user.org_id, details=details)
    if commit:
        db.session.commit()
    current_app.logger.info('role changed user=%s %s -> %s by=%s', user.id, current, new_role, actor.id)
    return details


def list_assignments(actor, role=None):
    q = db.session.query(User).outerjoin(RoleAssignment, RoleAssignment.user_id == User.id)
    if not actor.is_super_admin:
        q = q.filter(User.org_id == actor.org_id)
    if role:
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")
        if role == "student":
            q = q.filter((RoleAssignment.id.is_(None)) | (RoleAssignment.role == "student"))
        else:
            q = q.filter(RoleAssignment.role == role)
    out = []
    for user in q.order_by(User.id).all():
        row = user.to_dict()
        row["is_primary_admin"] = user.is_primary_admin
        out.append(row)
    return out


def assign_role(actor, user_id, role, reason=None):
    user = load_target(actor, user_id)
    return apply_role_change(actor, user, role, reason=reason)


def remove_role(actor, user_id, reason=None):
    """Drop the assignment so the user falls back to student."""
    user = load_target(actor, user_id)
    return apply_role_change(actor, user, "student", reason=reason, action="role_remove")


def request_change(actor, user_id, new_role):
    """First phase: guard without the reason and hand back a signed token."""
    user = load_target(actor, user_id)
    assignment = user.role_assignment
    decision = check_role_change(
        user.role, new_role,
        actor_is_self=actor.id == user.id,
        is_super_admin=bool(assignment and assignment.is_super_admin),
        is_primary_admin=bool(assignment and assignment.is_primary_admin),
        check_reason=False,
    )
    _check_last_admin(user, decision.current, decision.target)
    token = _serializer().dumps({
        "user_id": user.id,
        "current_role": decision.current,
        "new_role": decision.target,
        "actor_id": actor.id,
    })
    return {
        "token": token,
        "user_id": user.id,
        "current_role": decision.current,
        "new_role": decision.target,
        "requires_reason": decision.requires_reason,
    }


def confirm_change(actor, token, reason=None):
    """Second phase: check the token is ours and still current, then apply."""
    if not token:
        raise ValidationError("token is required")
    max_age = current_app.config.get("ROLE_CHANGE_TOKEN_MAX_AGE", 600)
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise ValidationError("Confirmation expired, request the change again")
    except BadSignature:
        raise ValidationError("Invalid confirmation token")

    if payload.get("actor_id") != actor.id:
        raise Forbidden("Confirmation was issued to another user")
    user = load_target(actor, payload["user_id"])
    if user.role != payload["current_role"]:
        raise Conflict("Role changed since confirmation was requested")
    return apply_role_change(actor, user, payload["new_role"], reason=reason)
