from flask import Blueprint

reading_lists_bp = Blueprint("reading_lists", __name__)

from . import routes  # noqa: E402,F401
