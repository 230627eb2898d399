from datetime import datetime

from flask import current_app

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db
from ..jobs.notify import queue_notification
from ..models.role_request import REQUESTABLE_ROLES, RoleRequest
from ..models.user import User
from . import audit
from .roles import apply_role_change

STATUSES = ("pending", "approved", "rejected")
MAX_LIMIT = 100


def create_request(user, requested_role, metadata=None):
    if requested_role not in REQUESTABLE_ROLES:
        raise ValidationError("Invalid role requested")
    if user.role == requested_role:
        raise ValidationError(f"You already have the {requested_role} role")
    existing = RoleRequest.query.filter_by(user_id=user.id, requested_role=requested_role,
                                           status="pending").first()
    if existing:
        raise Conflict("You already have a pending request for this role")

    rr = RoleRequest(user_id=user.id, requested_role=requested_role,
                     request_metadata=metadata or {}, organization_id=user.org_id)
    db.session.add(rr)
    db.session.commit()
    current_app.logger.info('role request %s created user=%s role=%s', rr.id, user.id, requested_role)
    return rr


def list_mine(user):
    return RoleRequest.query.filter_by(user_id=user.id).order_by(RoleRequest.created_at.desc(), RoleRequest.id.desc()).all()


def _scoped(actor, q):
    if not actor.is_super_admin:
        q = q.filter(RoleRequest.organization_id == actor.org_id)
    return q


def list_requests(actor, status="pending", requested_role=None, limit=20, offset=0):
    status = status or "pending"
    if status not in STATUSES:
        raise ValidationError("Invalid status")
    try:
        limit = min(max(int(limit), 1), MAX_LIMIT)
        offset = max(int(offset), 0)
    except (TypeError, ValueError):
        raise ValidationError("limit and offset must be integers")

    q = _scoped(actor, RoleRequest.query.filter(RoleRequest.status == status))
    if requested_role:
        q = q.filter(RoleRequest.requested_role == requested_role)
    rows = q.order_by(RoleRequest.created_at.desc(), RoleRequest.id.desc()).offset(offset).limit(limit).all()

    out = []
    for rr in rows:
        item = rr.to_dict()
        item["requester_name"] = rr.user.full_name if rr.user else None
        item["requester_email"] = rr.user.email if rr.user else None
        out.append(item)
    return out


def count_pending(actor):
    return _scoped(actor, RoleRequest.query.filter(RoleRequest.status == "pending")).count()


def _load(actor, request_id):
    rr = db.session.get(RoleRequest, request_id)
    if rr is None:
        raise NotFound("Role request not found")
    if not actor.is_super_admin and rr.organization_id != actor.org_id:
        raise NotFound("Role request not found")
    return rr


def _transition(rr, actor, status, notes):
    """Conditional pending -> status update. Zero rows means another reviewer got there first."""
    updated = (RoleRequest.query
               .filter(RoleRequest.id == rr.id, RoleRequest.status == "pending")
               .update({"status": status, "reviewed_by": actor.id,
                        "reviewed_at": datetime.utcnow(), "review_notes": notes},
                       synchronize_session="fetch"))
    if updated == 0:
        db.session.rollback()
        raise Conflict("Already processed")


def approve(actor, request_id, notes=None):
    rr = _load(actor, request_id)
    try:
        _transition(rr, actor, "approved", notes)
        user = db.session.get(User, rr.user_id)
        apply_role_change(actor, user, rr.requested_role, reason=notes,
                          action="role_request_grant", commit=False)
        audit.record("role_approve", actor_id=actor.id, user_id=rr.user_id, target_id=rr.id,
                     organization_id=rr.organization_id,
                     details={"requested_role": rr.requested_role, "notes": notes})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info('role request %s approved by %s', rr.id, actor.id)
    queue_notification(rr.user_id, "role_request_approved", {"role": rr.requested_role})
    return rr


def deny(actor, request_id, notes=None):
    rr = _load(actor, request_id)
    try:
        _transition(rr, actor, "rejected", notes)
        audit.record("role_deny", actor_id=actor.id, user_id=rr.user_id, target_id=rr.id,
                     organization_id=rr.organization_id,
                     details={"requested_role": rr.requested_role, "notes": notes})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info('role request %s denied by %s', rr.id, actor.id)
    queue_notification(rr.user_id, "role_request_denied", {"role": rr.requested_role, "notes": notes})
    return rr
