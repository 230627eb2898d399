from ..extensions import db
from .base import OrgScopedMixin

APPROVAL_ROLES = ("faculty", "recruiter")


class FacultyApproval(db.Model, OrgScopedMixin):
    __tablename__ = "faculty_approvals"

    id = db.Column(db.Integer, primary_key=True)
    # OrgScopedMixin: organization_id (NULL for platform-wide recruiters)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False)
    approval_status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending/approved/denied
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    approved_at = db.Column(db.DateTime)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    approval_notes = db.Column(db.Text)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint("user_id", "organization_id", name="uq_faculty_approvals_user_org"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "organization_id": self.organization_id,
            "approval_status": self.approval_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "approved_by": self.approved_by,
            "approval_notes": self.approval_notes,
        }
