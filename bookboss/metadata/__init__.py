from flask import Blueprint

metadata_bp = Blueprint("metadata", __name__)

from . import routes  # noqa: E402,F401
