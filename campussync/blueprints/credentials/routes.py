from flask import jsonify
from flask_login import login_required, current_user
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional
from . import bp
from ...services import credentials
from ...utils.decorators import admin_required
from ...utils.forms import ApiForm


class RevokeForm(ApiForm):
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


class VerifyForm(ApiForm):
    jws = StringField("JWS", validators=[DataRequired()])


@bp.post("/<credential_id>/revoke")
@login_required
@admin_required
def revoke(credential_id):
    form = RevokeForm().validate_or_raise()
    row = credentials.revoke(current_user, credential_id, reason=form.reason.data or None)
    return jsonify({"data": row.to_dict()})


@bp.post("/verify")
def verify():
    # public: recruiters and third parties check credentials without an account
    form = VerifyForm().validate_or_raise()
    return jsonify(credentials.verify_credential(form.jws.data))
