from datetime import datetime

from flask import current_app

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..jobs.notify import queue_notification
from ..models.faculty_approval import APPROVAL_ROLES, FacultyApproval
from ..models.user import User
from . import audit
from .roles import apply_role_change

STATUS_FILTERS = ("pending", "approved", "denied", "all")
ROLE_FILTERS = ("faculty", "recruiter", "all")
DECISIONS = ("approved", "denied")


def create_pending(user, role, organization_id=None):
    """Called at signup for faculty and recruiter accounts. The caller commits."""
    if role not in APPROVAL_ROLES:
        raise ValidationError("Invalid role for approval")
    row = FacultyApproval(user_id=user.id, role=role, organization_id=organization_id,
                          approval_status="pending")
    db.session.add(row)
    return row


def list_approvals(actor, status="pending", role="all"):
    status = status or "pending"
    role = role or "all"
    if status not in STATUS_FILTERS:
        raise ValidationError("Invalid status filter")
    if role not in ROLE_FILTERS:
        raise ValidationError("Invalid role filter")

    q = FacultyApproval.query
    if not actor.is_super_admin:
        q = q.filter(FacultyApproval.organization_id == actor.org_id)
    if status != "all":
        q = q.filter(FacultyApproval.approval_status == status)
    if role != "all":
        q = q.filter(FacultyApproval.role == role)

    out = []
    for row in q.order_by(FacultyApproval.created_at.desc(), FacultyApproval.id.desc()).all():
        item = row.to_dict()
        item["user_email"] = row.user.email if row.user else None
        item["user_name"] = row.user.full_name if row.user else None
        out.append(item)
    return out


def decide(actor, user_id, organization_id, approval_status, notes=None):
    if approval_status not in DECISIONS:
        raise ValidationError("approval_status must be 'approved' or 'denied'")
    if not actor.is_super_admin and organization_id != actor.org_id:
        raise NotFound("Approval request not found or already processed")

    row = FacultyApproval.query.filter_by(user_id=user_id, organization_id=organization_id,
                                          approval_status="pending").first()
    if row is None:
        raise NotFound("Approval request not found or already processed")

    try:
        updated = (FacultyApproval.query
                   .filter(FacultyApproval.id == row.id, FacultyApproval.approval_status == "pending")
                   .update({"approval_status": approval_status, "approved_by": actor.id,
                            "approved_at": datetime.utcnow(), "approval_notes": notes},
                           synchronize_session="fetch"))
        if updated == 0:
            raise NotFound("Approval request not found or already processed")
        if approval_status == "approved":
            user = db.session.get(User, user_id)
            apply_role_change(actor, user, row.role, reason=notes,
                              action="faculty_approval_grant", commit=False)
        audit.record(f"faculty_approval_{approval_status}", actor_id=actor.id, user_id=user_id,
                     target_id=row.id, organization_id=organization_id,
                     details={"role": row.role, "notes": notes})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('faculty approval %s %s by %s', row.id, approval_status, actor.id)
    kind = "faculty_approved" if approval_status == "approved" else "faculty_denied"
    queue_notification(user_id, kind, {"role": row.role, "notes": notes})
    return row
