from flask import Blueprint

shelves_bp = Blueprint("shelves", __name__)

from . import routes  # noqa: E402,F401
