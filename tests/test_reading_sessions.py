"""Timed reading sessions."""

from datetime import UTC, datetime, timedelta

import pytest

from bookboss.errors import NotFoundError
from bookboss.models import ReadingSession, db
from bookboss.reading_sessions.service import end_session, sessions_for_book, start_session
from tests.conftest import _auth_headers, _make_book, _make_user


def test_start_session(client, user, user_headers):
    book = _make_book()

    rv = client.post("/api/reading-sessions", json={"book_id": book.id}, headers=user_headers)

    assert rv.status_code == 201
    body = rv.get_json()
    assert body["message"] == "Reading session started"
    started = db.session.get(ReadingSession, body["session_id"])
    assert (started.user_id, started.book_id, started.ended_at, started.pages_read) == (user.id, book.id, None, 0)


def test_start_session_validation(client, user_headers):
    assert client.post("/api/reading-sessions", json={}, headers=user_headers).status_code == 400
    assert client.post("/api/reading-sessions", json={"book_id": "abc"}, headers=user_headers).status_code == 400
    assert client.post("/api/reading-sessions", json={"book_id": 999}, headers=user_headers).status_code == 404
    assert ReadingSession.query.count() == 0


def test_end_session_records_duration_and_pages(client, user, user_headers):
    book = _make_book()
    reading_session = start_session(user.id, book.id)
    reading_session.started_at = datetime.now(UTC) - timedelta(minutes=30)
    db.session.commit()

    rv = client.put(f"/api/reading-sessions/{reading_session.id}/end", json={"pages_read": 12}, headers=user_headers)

    assert rv.status_code == 200
    assert rv.get_json() == {"message": "Reading session ended", "duration_minutes": 30}
    ended = db.session.get(ReadingSession, reading_session.id)
    assert ended.ended_at is not None
    assert (ended.duration_minutes, ended.pages_read) == (30, 12)


def test_end_session_without_body_reads_zero_pages(client, user, user_headers):
    reading_session = start_session(user.id, _make_book().id)

    rv = client.put(f"/api/reading-sessions/{reading_session.id}/end", headers=user_headers)

    assert rv.status_code == 200
    assert rv.get_json()["duration_minutes"] == 0
    assert db.session.get(ReadingSession, reading_session.id).pages_read == 0


def test_session_cannot_be_ended_twice(client, user, user_headers):
    reading_session = start_session(user.id, _make_book().id)
    end_session(user.id, reading_session.id, 5)

    rv = client.put(f"/api/reading-sessions/{reading_session.id}/end", json={"pages_read": 9}, headers=user_headers)

    assert rv.status_code == 409
    assert db.session.get(ReadingSession, reading_session.id).pages_read == 5


def test_end_session_validation(client, user, user_headers):
    reading_session = start_session(user.id, _make_book().id)

    rv = client.put(f"/api/reading-sessions/{reading_session.id}/end", json={"pages_read": -1}, headers=user_headers)
    assert rv.status_code == 400
    rv = client.put(
        f"/api/reading-sessions/{reading_session.id}/end", json={"pages_read": 10**20}, headers=user_headers
    )
    assert rv.status_code == 400
    assert db.session.get(ReadingSession, reading_session.id).ended_at is None


def test_other_users_session_is_not_found(client, user_headers):
    other = _make_user(username="other")
    reading_session = start_session(other.id, _make_book().id)

    rv = client.put(f"/api/reading-sessions/{reading_session.id}/end", json={}, headers=user_headers)

    assert rv.status_code == 404
    assert db.session.get(ReadingSession, reading_session.id).ended_at is None
    with pytest.raises(NotFoundError):
        end_session(other.id, 999)


def test_book_sessions_are_own_only_newest_first(client, user, user_headers):
    book = _make_book()
    other = _make_user(username="other")
    first = start_session(user.id, book.id)
    second = start_session(user.id, book.id)
    start_session(other.id, book.id)
    first.started_at = datetime(2024, 1, 1, tzinfo=UTC)
    second.started_at = datetime(2024, 2, 1, tzinfo=UTC)
    db.session.commit()

    rows = client.get(f"/api/books/{book.id}/reading-sessions", headers=user_headers).get_json()

    assert [row["id"] for row in rows] == [second.id, first.id]
    assert all(row["user_id"] == user.id for row in rows)
    assert sessions_for_book(other.id, book.id)[0].user_id == other.id


def test_book_sessions_for_missing_book(client, user_headers):
    assert client.get("/api/books/999/reading-sessions", headers=user_headers).status_code == 404


def test_sessions_follow_their_book_and_user(client, user, admin_headers):
    book = _make_book()
    kept = _make_book(title="Kept")
    start_session(user.id, book.id)
    start_session(user.id, kept.id)

    db.session.delete(book)
    db.session.commit()
    assert ReadingSession.query.count() == 1

    assert client.delete(f"/api/users/{user.id}", headers=admin_headers).status_code == 200
    assert ReadingSession.query.count() == 0


def test_sessions_require_authentication(client, user):
    book = _make_book()

    assert client.post("/api/reading-sessions", json={"book_id": book.id}).status_code == 401
    assert client.get(f"/api/books/{book.id}/reading-sessions").status_code == 401
    assert client.get(f"/api/books/{book.id}/reading-sessions", headers=_auth_headers(user)).status_code == 200
