from wtforms import StringField
from wtforms.validators import DataRequired, Length

from ..forms import ApiForm, strip_filter


class ShelfForm(ApiForm):
    name = StringField(
        "Name",
        filters=[strip_filter],
        validators=[DataRequired(message="Shelf name is required"), Length(max=255)],
    )
