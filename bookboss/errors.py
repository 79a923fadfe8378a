from contextlib import contextmanager

from flask import jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .models import db


class BookBossError(Exception):
    """Base class for errors that map onto a JSON error response."""

    status_code = 500

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        data = dict(self.payload)
        data["error"] = self.message
        return data


class ValidationError(BookBossError):
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message, payload={"errors": errors} if errors else None)
        self.errors = errors or {}


class AuthError(BookBossError):
    status_code = 401

    def __init__(self, message="Authentication required", forbidden=False):
        super().__init__(message, status_code=403 if forbidden else 401)


class NotFoundError(BookBossError):
    status_code = 404


class ConflictError(BookBossError):
    status_code = 409


class ExternalProviderError(BookBossError):
    status_code = 502


class PersistenceError(BookBossError):
    status_code = 500


@contextmanager
def conflict_on_duplicate(message):
    """Turn a unique-constraint violation raised inside the block into a ConflictError."""
    try:
        yield
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message) from None


def register_error_handlers(app):
    @app.errorhandler(BookBossError)
    def bookboss_error(e):
        if e.status_code >= 500:
            app.logger.error("%s on %s: %s", type(e).__name__, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.exception("Database error on %s", request.path)
        return jsonify({"error": "Database error"}), 500

    @app.errorhandler(HTTPException)
    def http_error(e):
        if e.code == 403:
            app.logger.warning("403 Forbidden: %s", request.path)
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def internal_error(e):
        db.session.rollback()
        app.logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
