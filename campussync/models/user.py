from ..extensions import db
from flask_login import UserMixin
from .base import TimestampMixin
from werkzeug.security import generate_password_hash, check_password_hash

class User(db.Model, UserMixin, TimestampMixin):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    # super-admins are not bound to an organization
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(160))
    password_hash = db.Column(db.String(255), nullable=False)
    email_confirmed_at = db.Column(db.DateTime)

    role_assignment = db.relationship("RoleAssignment", uselist=False, lazy="joined", cascade="all, delete-orphan",
                                      foreign_keys="RoleAssignment.user_id", back_populates="user")

    def set_password(self, raw):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw):
        return check_password_hash(self.password_hash, raw)

    @property
    def role(self):
        # no assignment row means the default student role
        return self.role_assignment.role if self.role_assignment else "student"

    @property
    def is_super_admin(self):
        return bool(self.role_assignment and self.role_assignment.is_super_admin)

    @property
    def is_primary_admin(self):
        return bool(self.role_assignment and self.role_assignment.is_primary_admin)

    @property
    def display_name(self):
        return self.full_name or self.email.split("@")[0]

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "org_id": self.org_id,
            "role": self.role,
            "is_super_admin": self.is_super_admin,
            "email_confirmed": self.email_confirmed_at is not None,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
