from ..extensions import db
from .base import OrgScopedMixin

REQUESTABLE_ROLES = ("faculty", "recruiter", "admin")


class RoleRequest(db.Model, OrgScopedMixin):
    __tablename__ = "role_requests"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    requested_role = db.Column(db.String(20), nullable=False)
    # pending -> approved | rejected, never back
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    # "metadata" is reserved on declarative models
    request_metadata = db.Column("metadata", db.JSON)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)

    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "requested_role": self.requested_role,
            "status": self.status,
            "metadata": self.request_metadata or {},
            "organization_id": self.organization_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
        }

    def __repr__(self) -> str:
        return f"<RoleRequest id={self.id} user_id={self.user_id} status={self.status!r}>"
