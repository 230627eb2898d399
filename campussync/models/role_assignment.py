from ..extensions import db
from .base import OrgScopedMixin, TimestampMixin

ROLES = ("student", "faculty", "recruiter", "admin")


class RoleAssignment(db.Model, OrgScopedMixin, TimestampMixin):
    __tablename__ = "role_assignments"

    id = db.Column(db.Integer, primary_key=True)
    # one active role per user
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    role = db.Column(db.String(20), nullable=False, default="student", index=True)
    # protected accounts: never altered by a role change
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_primary_admin = db.Column(db.Boolean, nullable=False, default=False)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id"))

    user = db.relationship("User", foreign_keys=[user_id], back_populates="role_assignment")

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "role": self.role,
            "organization_id": self.organization_id,
            "is_super_admin": self.is_super_admin,
            "is_primary_admin": self.is_primary_admin,
            "assigned_by": self.assigned_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<RoleAssignment user_id={self.user_id} role={self.role!r}>"
