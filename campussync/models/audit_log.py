from ..extensions import db
from .base import OrgScopedMixin

class AuditLog(db.Model, OrgScopedMixin):
    __tablename__ = "audit_logs"
    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, index=True)  # user who acted
    user_id = db.Column(db.Integer, index=True)   # user the action is about
    action = db.Column(db.String(60), nullable=False, index=True)
    target_id = db.Column(db.String(255))
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
