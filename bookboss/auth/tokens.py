from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

AUTH_TOKEN_SALT = "bookboss-auth"


def _get_serializer():
    return URLSafeTimedSerializer(str(current_app.config["SECRET_KEY"]), salt=AUTH_TOKEN_SALT)


def issue_token(user):
    return _get_serializer().dumps({"uid": user.id, "adm": bool(user.is_admin)})


def is_authenticated(token):
    """Verify a bearer token. Returns ``{"user_id", "is_admin"}`` or None."""
    if not token:
        return None
    try:
        claims = _get_serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except SignatureExpired:
        current_app.logger.info("Rejected expired auth token.")
        return None
    except BadSignature:
        return None
    if not isinstance(claims, dict) or not isinstance(claims.get("uid"), int):
        return None
    return {"user_id": claims["uid"], "is_admin": bool(claims.get("adm"))}


def token_from_header(header_value):
    scheme, _, token = (header_value or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None
