from wtforms import StringField, SelectField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp
from ...utils.forms import ApiForm

class OrganizationForm(ApiForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=120)])
    slug = StringField("Slug", validators=[DataRequired(), Length(max=120),
                                           Regexp(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", message="lowercase letters, digits and dashes only")])
    type = SelectField("Type", choices=[("university", "University"), ("college", "College"),
                                        ("school", "School"), ("company", "Company")], default="university")
    contact_email = StringField("Contact email", validators=[Optional(), Email()])
    contact_phone = StringField("Contact phone", validators=[Optional(), Length(max=40)])
