import io
import tempfile
from unittest.mock import patch

import pytest
from flask import g
from flask.testing import FlaskClient
from PIL import Image

from bookboss.auth.tokens import issue_token
from bookboss.models import Book, User
from bookboss.models import db as _db


class _ApiClient(FlaskClient):
    """Test client that resolves the bearer token afresh on every request.

    Tests keep one app context open across requests, so Flask-Login's cached
    user on ``g`` would otherwise leak from one request into the next.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing (session-scoped)."""
    with (
        patch("bookboss.upgrade"),
        patch("bookboss._seed_admin_if_needed"),
    ):
        from bookboss import create_app

        _app = create_app("testing")

    _app.config["UPLOAD_STORAGE"] = tempfile.mkdtemp()
    _app.test_client_class = _ApiClient

    # Minimum bcrypt cost keeps the suite fast
    with patch("bookboss.models.BCRYPT_ROUNDS", 4):
        yield _app


@pytest.fixture(autouse=True)
def db(app):
    """Create all tables before each test, drop them after."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Test client; pass ``headers=`` from ``_auth_headers`` to authenticate."""
    return app.test_client()


def _make_user(username="reader", password="ReaderPass1", is_admin=False):
    """Create and persist a User. Callable multiple times per test."""
    user = User(username=username, is_admin=is_admin)
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


def _make_book(title="Test Book", author="Test Author", **fields):
    """Create and persist a Book. Callable multiple times per test."""
    book = Book(title=title, author=author, **fields)
    _db.session.add(book)
    _db.session.commit()
    return book


def _auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


def _png_bytes(size=(8, 8), color=(120, 40, 40)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


@pytest.fixture()
def user(db):
    """A default non-admin user."""
    return _make_user()


@pytest.fixture()
def admin_user(db):
    """An admin user."""
    return _make_user(username="admin", password="AdminPass1", is_admin=True)


@pytest.fixture()
def user_headers(user):
    return _auth_headers(user)


@pytest.fixture()
def admin_headers(admin_user):
    return _auth_headers(admin_user)
