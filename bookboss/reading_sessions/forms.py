from wtforms import IntegerField
from wtforms.validators import InputRequired, NumberRange, Optional

from ..forms import MAX_INT, ApiForm


class StartSessionForm(ApiForm):
    book_id = IntegerField(
        "Book",
        validators=[InputRequired(message="book_id is required"), NumberRange(min=1, max=MAX_INT)],
    )


class EndSessionForm(ApiForm):
    pages_read = IntegerField("Pages read", default=0, validators=[Optional(), NumberRange(min=0, max=MAX_INT)])
