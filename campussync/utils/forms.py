from flask_wtf import FlaskForm
from ..errors import ValidationError


class ApiForm(FlaskForm):
    """FlaskForm for JSON endpoints: reads request.get_json() and skips CSRF."""

    class Meta:
        csrf = False

    def validate_or_raise(self):
        if not self.validate_on_submit():
            field, errors = next(iter(self.errors.items()))
            raise ValidationError(f"{field}: {errors[0]}", payload={"fields": self.errors})
        return self
