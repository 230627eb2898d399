from flask import current_app
from ..extensions import db
from ..models.audit_log import AuditLog


def record(action, actor_id=None, user_id=None, target_id=None, organization_id=None, details=None):
    """Add an audit row to the current session. The caller commits."""
    row = AuditLog(actor_id=actor_id, user_id=user_id, action=action,
                   target_id=str(target_id) if target_id is not None else None,
                   organization_id=organization_id, details=details or {})
    db.session.add(row)
    current_app.logger.info('audit %s actor=%s target=%s', action, actor_id, target_id)
    return row
