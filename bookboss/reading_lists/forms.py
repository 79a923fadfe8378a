from wtforms import BooleanField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from ..forms import MAX_INT, ApiForm, strip_filter


class ReadingListForm(ApiForm):
    name = StringField(
        "Name",
        filters=[strip_filter],
        validators=[DataRequired(message="List name is required"), Length(max=100)],
    )
    description = TextAreaField("Description", validators=[Optional(), Length(max=5000)])
    is_public = BooleanField("Public", default=False)


class ReadingListEntryForm(ApiForm):
    book_id = IntegerField(
        "Book",
        validators=[InputRequired(message="book_id is required"), NumberRange(min=1, max=MAX_INT)],
    )
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=5000)])
