from flask import Blueprint

reading_sessions_bp = Blueprint("reading_sessions", __name__)

from . import routes  # noqa: E402,F401
