from wtforms import StringField, IntegerField, SelectField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, Optional
from ...utils.forms import ApiForm

REVIEW_CHOICES = [("approved", "Approve"), ("rejected", "Reject")]

class ReviewForm(ApiForm):
    certificateId = IntegerField("Certificate", validators=[InputRequired()])
    status = SelectField("Status", choices=REVIEW_CHOICES, validators=[DataRequired()])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])

class CertificateIdForm(ApiForm):
    certificateId = IntegerField("Certificate", validators=[InputRequired()])

class CertificateForm(ApiForm):
    title = StringField("Title", validators=[Optional(), Length(max=255)])
    institution = StringField("Institution", validators=[Optional(), Length(max=255)])
    date_issued = StringField("Date issued", validators=[Optional(), Length(max=10)])
    description = TextAreaField("Description", validators=[Optional()])
    recipient = StringField("Recipient", validators=[Optional(), Length(max=160)])
    extraction_token = StringField("Extraction token", validators=[Optional()])
