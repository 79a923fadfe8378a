import bcrypt
from flask import current_app, jsonify

from .. import limiter
from ..audit import log_event
from ..errors import AuthError, conflict_on_duplicate
from ..forms import json_body, validate_form
from ..models import User, db
from ..settings.service import registration_allowed
from ..users.service import ensure_username_free
from . import auth_bp
from .forms import LoginForm, RegistrationForm
from .tokens import issue_token

# Hash compared against when the username is unknown so both failure paths cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=12))


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = validate_form(LoginForm, json_body())
    username = form.username.data
    user = User.query.filter_by(username=username).first()

    if user is None:
        bcrypt.checkpw(form.password.data.encode("utf-8"), _DUMMY_HASH)
        log_event("login_failed", detail=f"username={username}")
        raise AuthError("Invalid username or password")

    if not user.check_password(form.password.data):
        log_event("login_failed", "user", user.id, detail=f"username={username}", user_id=user.id)
        raise AuthError("Invalid username or password")

    log_event("login_success", "user", user.id, user_id=user.id)
    return jsonify(
        {
            "token": issue_token(user),
            "id": user.id,
            "username": user.username,
            "isAdmin": bool(user.is_admin),
        }
    )


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("5 per minute")
def register():
    if not registration_allowed():
        raise AuthError("Registration is disabled", forbidden=True)

    form = validate_form(RegistrationForm, json_body())
    ensure_username_free(form.username.data)

    user = User(username=form.username.data, is_admin=False)
    user.set_password(form.password.data)
    with conflict_on_duplicate("Username already exists"):
        db.session.add(user)
        db.session.flush()
        log_event("user_registered", "user", user.id, user_id=user.id, commit=False)
        db.session.commit()
    current_app.logger.info("New user registered: %s", user.username)
    return jsonify({"message": "User registered successfully", "id": user.id}), 201
