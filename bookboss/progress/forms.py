import math

from wtforms import FloatField, IntegerField, SelectField
from wtforms.validators import NumberRange, Optional, ValidationError

from ..forms import MAX_INT, ApiForm
from ..models import READING_STATUSES


def _half_step_rating(form, field):
    value = field.data
    if value is None:
        return
    if not (math.isfinite(value) and 0 <= value <= 5 and (value * 2).is_integer()):
        raise ValidationError("Rating must be between 0 and 5 in half steps.")


class ReadingProgressForm(ApiForm):
    status = SelectField(
        "Status",
        choices=[(status, status) for status in READING_STATUSES],
        default="plan_to_read",
    )
    progress = IntegerField("Progress", default=0, validators=[Optional(), NumberRange(min=0, max=MAX_INT)])
    rating = FloatField("Rating", default=0, validators=[Optional(), _half_step_rating])
