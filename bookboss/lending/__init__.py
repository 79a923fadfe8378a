from flask import Blueprint

lending_bp = Blueprint("lending", __name__)

from . import routes  # noqa: E402,F401
