from flask import jsonify, request
from flask_login import login_required, current_user
from wtforms import SelectField
from wtforms.validators import DataRequired
from . import bp
from ...errors import ValidationError
from ...services import role_requests
from ...utils.forms import ApiForm


class RoleRequestForm(ApiForm):
    requested_role = SelectField("Role", choices=[("faculty", "Faculty"), ("recruiter", "Recruiter"), ("admin", "Admin")],
                                 validators=[DataRequired()])


@bp.post("")
@login_required
def create_role_request():
    form = RoleRequestForm().validate_or_raise()
    # free-form justification fields, kept as JSON
    metadata = (request.get_json(silent=True) or {}).get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")
    rr = role_requests.create_request(current_user, form.requested_role.data, metadata)
    return jsonify({"data": rr.to_dict()}), 201


@bp.get("/mine")
@login_required
def my_role_requests():
    return jsonify({"data": [rr.to_dict() for rr in role_requests.list_mine(current_user)]})
