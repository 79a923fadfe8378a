from flask import current_app

from ..audit import log_event
from ..errors import ValidationError
from ..models import Setting, db

KNOWN_SETTINGS = ("accent_color", "allow_registration")
MAX_KEY_LENGTH = 100


def registration_allowed():
    value = Setting.get("allow_registration")
    if value is None:
        return bool(current_app.config.get("REGISTRATION_ENABLED", True))
    return str(value).strip().lower() != "false"


def get_settings():
    return {entry.key: entry.value for entry in Setting.query.order_by(Setting.key).all()}


def _stringify(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return None
    return str(value)


def update_settings(values):
    """Upsert every key in *values* as one unit of work."""
    if not values:
        raise ValidationError("No settings provided")
    for key in values:
        if not isinstance(key, str) or not key.strip() or len(key) > MAX_KEY_LENGTH:
            raise ValidationError(f"Invalid setting key: {key!r}")

    for key, value in values.items():
        if key not in KNOWN_SETTINGS:
            current_app.logger.info("Storing unrecognised setting key %s", key)
        Setting.set(key.strip(), _stringify(value), commit=False)

    log_event("settings_updated", "setting", detail=", ".join(sorted(values)), commit=False)
    db.session.commit()
    return get_settings()
