from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Length

from ..forms import ApiForm, strip_filter


class UserForm(ApiForm):
    username = StringField(
        "Username",
        filters=[strip_filter],
        validators=[DataRequired(message="Username is required"), Length(min=3, max=255)],
    )
    password = PasswordField(
        "Password",
        validators=[DataRequired(message="Password is required"), Length(min=8, max=72)],
    )
    isAdmin = BooleanField("Administrator")
