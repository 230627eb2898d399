import re
from datetime import datetime

from flask import current_app

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db
from ..models.organization import Organization
from ..models.role_assignment import RoleAssignment
from ..models.user import User
from . import audit
from .faculty_approvals import create_pending

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
SIGNUP_ROLES = ("student", "faculty", "recruiter")
# consumer mailboxes; campus accounts must use an institutional address
BLOCKED_DOMAINS = (
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "icloud.com", "aol.com",
    "protonmail.com", "yandex.com", "rediffmail.com", "mail.com", "zoho.com",
)


def email_domain(email):
    email = (email or "").strip().lower()
    at = email.rfind("@")
    return email[at + 1:] if at > 0 else ""


def is_valid_email(email):
    return bool(email) and EMAIL_RE.match(email.strip()) is not None


def is_blocked_domain(email):
    return email_domain(email) in BLOCKED_DOMAINS


def validate_signup_email(email, role="student"):
    if not is_valid_email(email):
        raise ValidationError("Please enter a valid email address")
    # recruiters sign up with company mail, which may be any provider
    if role in ("student", "faculty") and is_blocked_domain(email):
        raise ValidationError("Please use your institutional email address")


def validate_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def signup(email, password, full_name=None, role="student", organization_id=None):
    """Create a student account. Faculty and recruiters start as students with a pending approval."""
    email = (email or "").strip().lower()
    if role not in SIGNUP_ROLES:
        raise ValidationError("Invalid role")
    validate_signup_email(email, role)
    validate_password(password)
    if organization_id is not None and db.session.get(Organization, organization_id) is None:
        raise ValidationError("Unknown organization")
    if User.query.filter_by(email=email).first():
        raise Conflict("An account with this email already exists")

    user = User(email=email, full_name=full_name, org_id=organization_id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    if role in ("faculty", "recruiter"):
        create_pending(user, role, organization_id)
    audit.record("signup", actor_id=user.id, user_id=user.id, organization_id=organization_id,
                 details={"requested_role": role})
    db.session.commit()
    current_app.logger.info('user %s signed up (requested role %s)', user.id, role)
    return user


def create_superadmin(email, password, full_name, phone=None):
    email = email.strip().lower()
    if not is_valid_email(email):
        raise ValidationError("Please enter a valid email address")
    validate_password(password)
    if User.query.filter_by(email=email).first():
        raise Conflict("An account with this email already exists")

    user = User(email=email, full_name=full_name, email_confirmed_at=datetime.utcnow())
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    db.session.add(RoleAssignment(user_id=user.id, role="admin", is_super_admin=True,
                                  is_primary_admin=True, assigned_by=user.id))
    audit.record("SUPERADMIN_CREATED", actor_id=user.id, user_id=user.id, target_id=user.id,
                 details={"email": email, "phone": phone})
    db.session.commit()
    return user


def upgrade_to_superadmin(email):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        raise NotFound("User not found")
    old_role = user.role
    assignment = user.role_assignment
    if assignment is None:
        assignment = RoleAssignment(user_id=user.id)
        db.session.add(assignment)
        user.role_assignment = assignment
    assignment.role = "admin"
    assignment.is_super_admin = True
    assignment.is_primary_admin = True
    assignment.organization_id = None
    assignment.assigned_by = user.id
    user.org_id = None
    if user.email_confirmed_at is None:
        user.email_confirmed_at = datetime.utcnow()
    audit.record("UPGRADE_TO_SUPERADMIN", actor_id=user.id, user_id=user.id, target_id=user.id,
                 details={"old_role": old_role, "new_role": "admin"})
    db.session.commit()
    return user


def confirm_email(email):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        raise NotFound(f"User not found: {email}")
    if user.email_confirmed_at is None:
        user.email_confirmed_at = datetime.utcnow()
        db.session.commit()
    return user
