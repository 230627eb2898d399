"""Certificate intake and review.

Approval is two committed steps: the status flip, then credential issuance.
A failed issuance leaves the certificate verified; ``issue`` retries it.
"""
from datetime import date, datetime

from flask import current_app

from ..errors import ApiError, Conflict, Forbidden, NotFound, UpstreamError, ValidationError
from ..extensions import db
from ..jobs.notify import queue_notification
from ..models.audit_log import AuditLog
from ..models.certificate import Certificate
from ..models.credential import VerifiableCredential
from ..models.user import User
from . import audit, credentials, ocr, storage

REVIEWER_ROLES = ("faculty", "admin")
# API vocabulary -> stored verification_status
REVIEW_STATUSES = {"approved": "verified", "rejected": "rejected"}
DEFAULT_TITLE = "Untitled Certificate"
HISTORY_ACTIONS = ("manual_approve", "manual_reject", "batch_certificate_review")
MAX_HISTORY_LIMIT = 100


def _scope(actor, q):
    if not actor.is_super_admin:
        q = q.filter(Certificate.organization_id == actor.org_id)
    return q


def is_reviewer(user):
    return user.is_super_admin or user.role in REVIEWER_ROLES


def list_pending(actor):
    q = Certificate.query.filter(Certificate.verification_status == "pending",
                                 Certificate.auto_approved.is_(False))
    return _scope(actor, q).order_by(Certificate.created_at.desc(), Certificate.id.desc()).all()


def list_mine(user):
    return (Certificate.query.filter_by(student_id=user.id)
            .order_by(Certificate.created_at.desc(), Certificate.id.desc()).all())


def _load_for_review(actor, certificate_id):
    try:
        cert = db.session.get(Certificate, int(certificate_id))
    except (TypeError, ValueError):
        raise ValidationError("Invalid certificate id")
    if cert is None:
        raise NotFound("Certificate not found")
    if not actor.is_super_admin and cert.organization_id != actor.org_id:
        raise NotFound("Certificate not found")
    return cert


def _transition(cert, actor, status, notes=None):
    updated = (Certificate.query
               .filter(Certificate.id == cert.id, Certificate.verification_status == "pending")
               .update({"verification_status": status, "reviewed_by": actor.id,
                        "reviewed_at": datetime.utcnow(), "review_notes": notes},
                       synchronize_session="fetch"))
    if updated == 0:
        db.session.rollback()
        raise Conflict("Certificate already reviewed")


def mark_verified(actor, certificate_id, notes=None):
    cert = _load_for_review(actor, certificate_id)
    try:
        _transition(cert, actor, "verified", notes)
        audit.record("manual_approve", actor_id=actor.id, user_id=cert.student_id, target_id=cert.id,
                     organization_id=cert.organization_id, details={"notes": notes})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info('certificate %s verified by %s', cert.id, actor.id)
    queue_notification(cert.student_id, "certificate_verified", {"title": cert.title})
    return cert


def reject(actor, certificate_id, reason=None):
    cert = _load_for_review(actor, certificate_id)
    try:
        _transition(cert, actor, "rejected", reason)
        audit.record("manual_reject", actor_id=actor.id, user_id=cert.student_id, target_id=cert.id,
                     organization_id=cert.organization_id, details={"reason": reason})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info('certificate %s rejected by %s', cert.id, actor.id)
    queue_notification(cert.student_id, "certificate_rejected", {"title": cert.title, "notes": reason})
    return cert


def _issue_after_approval(cert, actor_id):
    try:
        return credentials.issue_for_certificate(cert, actor_id=actor_id)[0]
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('credential issuance failed for certificate %s', cert.id)
        message = e.message if isinstance(e, ApiError) else str(e)
        raise UpstreamError(f"Certificate approved but credential issuance failed: {message}")


def approve(actor, certificate_id, notes=None):
    """Verify, then issue. Returns (certificate, credential)."""
    cert = mark_verified(actor, certificate_id, notes)
    return cert, _issue_after_approval(cert, actor.id)


def review(actor, certificate_id, status, reason=None):
    if status not in REVIEW_STATUSES:
        raise ValidationError("status must be 'approved' or 'rejected'")
    if status == "approved":
        return approve(actor, certificate_id, reason)
    return reject(actor, certificate_id, reason), None


def batch_review(actor, ids, status, reason=None):
    """Apply the single-item transition to each id and report per-id outcomes."""
    if status not in REVIEW_STATUSES:
        raise ValidationError("status must be 'approved' or 'rejected'")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("certificateIds must be a non-empty list")

    results = []
    for cid in ids:
        item = {"id": cid, "ok": False, "issued": False, "issue_error": None}
        try:
            if status == "approved":
                cert = mark_verified(actor, cid, reason)
                item.update(ok=True, status=cert.verification_status)
                try:
                    _issue_after_approval(cert, actor.id)
                    item["issued"] = True
                except UpstreamError as e:
                    item["issue_error"] = e.message
            else:
                cert = reject(actor, cid, reason)
                item.update(ok=True, status=cert.verification_status)
        except ApiError as e:
            item["error"] = e.message
        results.append(item)

    succeeded = [r["id"] for r in results if r["ok"]]
    audit.record("batch_certificate_review", actor_id=actor.id, organization_id=actor.org_id,
                 details={"status": status, "reason": reason, "requested": ids,
                          "succeeded": succeeded})
    db.session.commit()
    return results


def _target_certificate_id(row):
    return int(row.target_id) if row.target_id and row.target_id.isdigit() else None


def approval_history(actor, page=1, limit=20):
    """Review decisions, newest first, with the certificate and reviewer attached."""
    try:
        page = max(int(page), 1)
        limit = min(max(int(limit), 1), MAX_HISTORY_LIMIT)
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")

    q = AuditLog.query.filter(AuditLog.action.in_(HISTORY_ACTIONS))
    if not actor.is_super_admin:
        q = q.filter(AuditLog.organization_id == actor.org_id)
    total = q.count()
    rows = (q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit).limit(limit).all())

    cert_ids = {cid for cid in (_target_certificate_id(r) for r in rows) if cid is not None}
    certs = {c.id: c for c in Certificate.query.filter(Certificate.id.in_(cert_ids))} if cert_ids else {}
    user_ids = {r.actor_id for r in rows if r.actor_id} | {c.student_id for c in certs.values()}
    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids))} if user_ids else {}

    items = []
    for r in rows:
        cid = _target_certificate_id(r)
        cert = certs.get(cid)
        reviewer = users.get(r.actor_id)
        student = users.get(cert.student_id) if cert else None
        items.append({
            "id": r.id,
            "action": r.action,
            "certificate_id": cid,
            # None for batch summaries and deleted certificates
            "certificate": {
                "id": cert.id,
                "title": cert.title,
                "institution": cert.institution,
                "student_id": cert.student_id,
                "student_name": student.display_name if student else None,
                "verification_status": cert.verification_status,
            } if cert else None,
            "reviewer_id": r.actor_id,
            "reviewer_name": reviewer.display_name if reviewer else None,
            "reviewer_role": reviewer.role if reviewer else None,
            "details": r.details or {},
            "created_at": r.created_at.isoformat() if r.created_at else None,
        })
    return {
        "data": items,
        "pagination": {"page": page, "limit": limit, "total": total,
                       "total_pages": (total + limit - 1) // limit},
    }


def issue(actor, certificate_id):
    """Manual (re)issue. Idempotent: an active credential is returned as is."""
    try:
        cert = db.session.get(Certificate, int(certificate_id))
    except (TypeError, ValueError):
        raise ValidationError("Invalid certificate id")
    if cert is None:
        raise NotFound("Certificate not found")
    is_owner = cert.student_id == actor.id
    in_scope = actor.is_super_admin or cert.organization_id == actor.org_id
    if not is_owner and not (is_reviewer(actor) and in_scope):
        raise Forbidden("Not allowed to issue this certificate")
    if cert.verification_status != "verified":
        raise Conflict("Certificate must be verified before issuance")
    return credentials.issue_for_certificate(cert, actor_id=actor.id)


def _parse_date(value):
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("date_issued must be YYYY-MM-DD")


def create(user, data, extraction_token=None):
    """Save user-edited fields. Extraction results only come from the signed token."""
    data = data or {}
    sealed = ocr.load_extraction(extraction_token, user.id) if extraction_token else {}
    auto = bool(sealed.get("auto_approved"))

    cert = Certificate(
        student_id=user.id,
        organization_id=user.org_id,
        title=(data.get("title") or "").strip() or DEFAULT_TITLE,
        institution=(data.get("institution") or "").strip(),
        date_issued=_parse_date(data.get("date_issued")),
        description=data.get("description") or None,
        recipient=data.get("recipient") or None,
        file_url=sealed.get("file_url"),
        confidence_score=sealed.get("confidence"),
        verification_method=sealed.get("verification_method") or "manual_review",
        auto_approved=auto,
        verification_status="verified" if auto else "pending",
    )
    db.session.add(cert)
    db.session.flush()
    audit.record("certificate_create", actor_id=user.id, user_id=user.id, target_id=cert.id,
                 organization_id=user.org_id,
                 details={"auto_approved": auto, "verification_method": cert.verification_method})
    db.session.commit()
    current_app.logger.info('certificate %s created by %s (auto_approved=%s)', cert.id, user.id, auto)

    credential = None
    if auto:
        try:
            credential, _ = credentials.issue_for_certificate(cert)
        except Exception:
            db.session.rollback()
            current_app.logger.exception('auto-issue failed for certificate %s', cert.id)
    return cert, credential


def delete(actor, certificate_id):
    try:
        cert = db.session.get(Certificate, int(certificate_id))
    except (TypeError, ValueError):
        raise ValidationError("Invalid certificate id")
    if cert is None:
        raise NotFound("Certificate not found")
    is_owner = cert.student_id == actor.id
    is_org_admin = actor.role == "admin" and (actor.is_super_admin or cert.organization_id == actor.org_id)
    if not (is_owner or is_org_admin):
        raise Forbidden("Not allowed to delete this certificate")

    file_url = cert.file_url
    VerifiableCredential.query.filter_by(certificate_id=cert.id).update(
        {"certificate_id": None}, synchronize_session=False)
    audit.record("certificate_delete", actor_id=actor.id, user_id=cert.student_id, target_id=cert.id,
                 organization_id=cert.organization_id, details={"title": cert.title})
    db.session.delete(cert)
    db.session.commit()
    storage.delete_file(file_url)
    return True
