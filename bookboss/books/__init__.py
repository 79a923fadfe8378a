from flask import Blueprint

books_bp = Blueprint("books", __name__)

from . import reports, routes  # noqa: E402,F401
