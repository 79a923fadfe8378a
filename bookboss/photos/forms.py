from flask_wtf.file import FileField, FileRequired
from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, Length, Optional

from ..forms import ApiForm, strip_filter
from ..models import PHOTO_TYPES


class PhotoUploadForm(ApiForm):
    photo = FileField("Photo", validators=[FileRequired(message="No photo uploaded")])
    photo_type = StringField(
        "Type",
        filters=[strip_filter],
        validators=[Optional(), AnyOf(PHOTO_TYPES, message="photo_type must be one of: " + ", ".join(PHOTO_TYPES))],
    )
    description = TextAreaField("Description", validators=[Optional(), Length(max=5000)])
    tags = StringField("Tags", validators=[Optional()])
