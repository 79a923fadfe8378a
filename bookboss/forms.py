import json
from datetime import date, datetime

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from .errors import ValidationError

# Largest value an INTEGER column accepts on every supported database
MAX_INT = 2**31 - 1

_TRUE_STRINGS = {"true", "1", "yes", "on", "y"}
_FALSE_STRINGS = {"false", "0", "no", "off", "n", ""}


class ApiForm(FlaskForm):
    """Base form for JSON and multipart API input. Bearer tokens replace CSRF."""

    class Meta:
        csrf = False


def strip_filter(value):
    if value is None:
        return None
    return str(value).strip()


def json_body(required=True):
    """Return the request JSON object, raising ValidationError for anything else."""
    payload = request.get_json(silent=True)
    if payload is None:
        if required:
            raise ValidationError("Request body must be a JSON object")
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def request_payload():
    """JSON object for JSON requests, the form fields for multipart ones."""
    if request.is_json:
        return json_body()
    return request.form.to_dict()


def _to_formdata(payload):
    # JSON null and false mean "absent" to WTForms; scalars arrive as strings
    formdata = MultiDict()
    for key, value in payload.items():
        if value is None or value is False:
            continue
        if value is True:
            value = "y"
        elif isinstance(value, (list, dict)):
            value = json.dumps(value)
        formdata.add(key, str(value))
    return formdata


def validate_form(form_cls, payload=None, **kwargs):
    """Bind *payload* (default: the request body) to *form_cls* and validate it."""
    if payload is None:
        form = form_cls(**kwargs)
    else:
        form = form_cls(formdata=_to_formdata(payload), **kwargs)
    if not form.validate():
        first_error = next(iter(next(iter(form.errors.values()))), "Invalid input")
        raise ValidationError(first_error, errors=form.errors)
    return form


def normalize_list(value):
    """Coerce a list, JSON-encoded list or comma-separated string into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                value = text.strip("[]").split(",")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValidationError("Expected a list of strings or a comma-separated string")
    items = []
    for item in value:
        if item is None:
            continue
        item = str(item).strip()
        if item:
            items.append(item)
    return items


def parse_date(value, field="date"):
    """Parse an ISO date; a full ISO datetime is truncated to its date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field}", errors={field: ["Expected an ISO date (YYYY-MM-DD)"]})
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(
            f"Invalid {field}", errors={field: ["Expected an ISO date (YYYY-MM-DD)"]}
        ) from None


def parse_bool(value, field="value"):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ValidationError(f"Invalid {field}", errors={field: ["Expected a boolean"]})


def parse_int(value, field="value", minimum=None, maximum=MAX_INT, nullable=False):
    if value is None or value == "":
        if nullable:
            return None
        raise ValidationError(f"Invalid {field}", errors={field: ["This field is required"]})
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", errors={field: ["Expected an integer"]})
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Invalid {field}", errors={field: ["Expected an integer"]}) from None
    if minimum is not None and number < minimum:
        raise ValidationError(f"Invalid {field}", errors={field: [f"Must be at least {minimum}"]})
    if maximum is not None and number > maximum:
        raise ValidationError(f"Invalid {field}", errors={field: [f"Must be at most {maximum}"]})
    return number


def parse_rating(value, field="rating"):
    """Ratings run from 0 to 5 in half steps."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", errors={field: ["Expected a number"]})
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", errors={field: ["Expected a number"]}) from None
    if not 0 <= rating <= 5 or (rating * 2) != int(rating * 2):
        raise ValidationError(f"Invalid {field}", errors={field: ["Rating must be between 0 and 5 in half steps"]})
    return rating
