from flask import current_app, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from . import bp
from .forms import LoginForm, SignupForm
from ...errors import Forbidden, Unauthorized
from ...models.user import User
from ...services import accounts

@bp.post("/signup")
def signup():
    """Students are active at once; faculty/recruiter wait for an approval."""
    form = SignupForm().validate_or_raise()
    user = accounts.signup(form.email.data, form.password.data,
                           full_name=form.full_name.data, role=form.role.data,
                           organization_id=form.organization_id.data)
    pending = form.role.data in ("faculty", "recruiter")
    return jsonify({"user": user.to_dict(), "approval_pending": pending}), 201

@bp.post("/login")
def login():
    form = LoginForm().validate_or_raise()
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        raise Unauthorized("Invalid credentials")
    if user.email_confirmed_at is None:
        raise Forbidden("Email address has not been confirmed")
    login_user(user)
    current_app.logger.info('user %s logged in', user.id)
    return jsonify({"user": user.to_dict()})

@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})

@bp.get("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
