from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from ..forms import MAX_INT, ApiForm, strip_filter


class LoanForm(ApiForm):
    book_id = IntegerField(
        "Book",
        validators=[InputRequired(message="book_id is required"), NumberRange(min=1, max=MAX_INT)],
    )
    borrower_name = StringField(
        "Borrower",
        filters=[strip_filter],
        validators=[DataRequired(message="Borrower name is required"), Length(max=255)],
    )
    due_date = StringField("Due date", filters=[strip_filter], validators=[Optional()])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=5000)])
