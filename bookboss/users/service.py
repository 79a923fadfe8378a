from flask import current_app

from ..audit import log_event
from ..errors import ConflictError, NotFoundError, ValidationError, conflict_on_duplicate
from ..forms import parse_bool
from ..models import User, db

PRIVACY_KEYS = ("share_shelves", "share_progress")


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def ensure_username_free(username, exclude_id=None):
    query = User.query.filter_by(username=username)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Username already exists")


def _is_last_admin(user):
    return user.is_admin and User.query.filter_by(is_admin=True).count() <= 1


def list_users():
    return User.query.order_by(User.username).all()


def create_user(username, password, is_admin=False):
    ensure_username_free(username)
    user = User(username=username, is_admin=bool(is_admin))
    user.set_password(password)
    with conflict_on_duplicate("Username already exists"):
        db.session.add(user)
        db.session.flush()
        log_event("user_created", "user", user.id, detail=f"username={username} admin={bool(is_admin)}", commit=False)
        db.session.commit()
    return user


def update_user(user_id, payload):
    """Partial update of username, password and admin flag."""
    user = get_user_or_404(user_id)
    changed = []

    if "username" in payload:
        username = str(payload["username"] or "").strip()
        if not 3 <= len(username) <= 255:
            raise ValidationError("Username must be between 3 and 255 characters")
        ensure_username_free(username, exclude_id=user.id)
        user.username = username
        changed.append("username")

    if "password" in payload:
        password = payload["password"]
        if not isinstance(password, str) or not 8 <= len(password) <= 72:
            raise ValidationError("Password must be between 8 and 72 characters")
        user.set_password(password)
        changed.append("password")

    admin_key = "isAdmin" if "isAdmin" in payload else "is_admin" if "is_admin" in payload else None
    if admin_key is not None:
        is_admin = parse_bool(payload[admin_key], admin_key)
        if not is_admin and _is_last_admin(user):
            raise ConflictError("Cannot remove admin rights from the last administrator")
        user.is_admin = is_admin
        changed.append("is_admin")

    if not changed:
        raise ValidationError("No valid fields to update")

    with conflict_on_duplicate("Username already exists"):
        log_event("user_updated", "user", user.id, detail=", ".join(changed), commit=False)
        db.session.commit()
    return user


def delete_user(user_id):
    user = get_user_or_404(user_id)
    if _is_last_admin(user):
        raise ConflictError("Cannot delete the last administrator")
    username = user.username
    db.session.delete(user)
    log_event("user_deleted", "user", user_id, detail=f"username={username}", commit=False)
    db.session.commit()
    current_app.logger.info("User %s (%s) deleted", user_id, username)


def update_privacy(user, privacy_settings):
    if not isinstance(privacy_settings, dict):
        raise ValidationError("privacy_settings must be an object")
    current = dict(user.privacy_settings or {key: False for key in PRIVACY_KEYS})
    for key in PRIVACY_KEYS:
        if key in privacy_settings:
            current[key] = parse_bool(privacy_settings[key], key)
    user.privacy_settings = current
    db.session.commit()
    return user
