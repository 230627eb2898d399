from wtforms import StringField, IntegerField, SelectField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, Optional
from ...utils.forms import ApiForm


class ReviewNotesForm(ApiForm):
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class RoleAssignForm(ApiForm):
    user_id = IntegerField("User", validators=[InputRequired()])
    role = StringField("Role", validators=[DataRequired()])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


class RoleRemoveForm(ApiForm):
    user_id = IntegerField("User", validators=[InputRequired()])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


class RoleChangeRequestForm(ApiForm):
    user_id = IntegerField("User", validators=[InputRequired()])
    new_role = StringField("New role", validators=[DataRequired()])


class RoleChangeConfirmForm(ApiForm):
    token = StringField("Token", validators=[DataRequired()])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


class FacultyDecisionForm(ApiForm):
    user_id = IntegerField("User", validators=[InputRequired()])
    organization_id = IntegerField("Organization", validators=[Optional()])
    approval_status = SelectField("Decision", choices=[("approved", "Approve"), ("denied", "Deny")],
                                  validators=[DataRequired()])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])
