from datetime import UTC, datetime

from flask import current_app

from ..books.service import get_book_or_404
from ..errors import ConflictError, NotFoundError
from ..models import ReadingSession, db


def _elapsed_minutes(started_at, ended_at):
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=UTC)
    return max(0, round((ended_at - started_at).total_seconds() / 60))


def start_session(user_id, book_id):
    book = get_book_or_404(book_id)
    reading_session = ReadingSession(user_id=user_id, book_id=book.id)
    db.session.add(reading_session)
    db.session.commit()
    current_app.logger.info("User %s started reading session %s on book %s", user_id, reading_session.id, book.id)
    return reading_session


def end_session(user_id, session_id, pages_read=0):
    """Close an open session, recording its length in whole minutes."""
    reading_session = ReadingSession.query.filter_by(id=session_id, user_id=user_id).first()
    if reading_session is None:
        raise NotFoundError("Session not found")
    if not reading_session.is_open:
        raise ConflictError("Reading session already ended")

    ended_at = datetime.now(UTC)
    reading_session.ended_at = ended_at
    reading_session.duration_minutes = _elapsed_minutes(reading_session.started_at, ended_at)
    reading_session.pages_read = pages_read or 0
    db.session.commit()
    return reading_session


def sessions_for_book(user_id, book_id):
    book = get_book_or_404(book_id)
    return (
        ReadingSession.query.filter_by(user_id=user_id, book_id=book.id)
        .order_by(ReadingSession.started_at.desc(), ReadingSession.id.desc())
        .all()
    )
