"""Curated reading lists: private by default, readable by everyone once public."""

from datetime import UTC, datetime

from flask import current_app
from sqlalchemy import func, or_

from ..books.service import get_book_or_404
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError, conflict_on_duplicate
from ..forms import parse_bool
from ..models import Book, ReadingList, ReadingListBook, db


def _visible_list_or_404(user_id, list_id):
    reading_list = ReadingList.query.filter(
        ReadingList.id == list_id,
        or_(ReadingList.user_id == user_id, ReadingList.is_public.is_(True)),
    ).first()
    if reading_list is None:
        raise NotFoundError("Reading list not found")
    return reading_list


def get_owned_list_or_404(user_id, list_id):
    reading_list = ReadingList.query.filter_by(id=list_id, user_id=user_id).first()
    if reading_list is None:
        raise NotFoundError("Reading list not found")
    return reading_list


def _editable_list(user_id, list_id):
    # Public lists of other users are visible but read-only
    reading_list = _visible_list_or_404(user_id, list_id)
    if reading_list.user_id != user_id:
        raise AuthError("Access denied", forbidden=True)
    return reading_list


def _touch(reading_list):
    reading_list.updated_at = datetime.now(UTC)


def list_reading_lists(user_id):
    rows = (
        db.session.query(ReadingList, func.count(ReadingListBook.book_id))
        .outerjoin(ReadingListBook, ReadingListBook.list_id == ReadingList.id)
        .filter(ReadingList.user_id == user_id)
        .group_by(ReadingList.id)
        .order_by(ReadingList.updated_at.desc(), ReadingList.id.desc())
        .all()
    )
    return [reading_list.to_dict(book_count=count) for reading_list, count in rows]


def create_reading_list(user_id, name, description=None, is_public=False):
    reading_list = ReadingList(
        user_id=user_id, name=name, description=description or None, is_public=bool(is_public)
    )
    db.session.add(reading_list)
    db.session.commit()
    current_app.logger.info("User %s created reading list %s", user_id, reading_list.id)
    return reading_list


def update_reading_list(user_id, list_id, payload):
    """Partial update of name, description and visibility."""
    reading_list = get_owned_list_or_404(user_id, list_id)
    changed = False

    if "name" in payload:
        name = str(payload["name"] or "").strip()
        if not name:
            raise ValidationError("List name is required", errors={"name": ["List name is required"]})
        if len(name) > 100:
            raise ValidationError("List name is too long", errors={"name": ["At most 100 characters"]})
        reading_list.name = name
        changed = True

    if "description" in payload:
        description = payload["description"]
        if description is not None:
            description = str(description).strip() or None
        reading_list.description = description
        changed = True

    if "is_public" in payload:
        reading_list.is_public = parse_bool(payload["is_public"], "is_public")
        changed = True

    if not changed:
        raise ValidationError("No valid fields to update")

    _touch(reading_list)
    db.session.commit()
    return reading_list


def delete_reading_list(user_id, list_id):
    reading_list = get_owned_list_or_404(user_id, list_id)
    db.session.delete(reading_list)
    db.session.commit()


def reading_list_entries(user_id, list_id):
    """(Book, ReadingListBook) pairs, most recently added first."""
    reading_list = _visible_list_or_404(user_id, list_id)
    return (
        db.session.query(Book, ReadingListBook)
        .join(ReadingListBook, ReadingListBook.book_id == Book.id)
        .filter(ReadingListBook.list_id == reading_list.id)
        .order_by(ReadingListBook.added_at.desc(), Book.id.desc())
        .all()
    )


def add_book_to_reading_list(user_id, list_id, book_id, notes=None):
    reading_list = _editable_list(user_id, list_id)
    book = get_book_or_404(book_id)
    if db.session.get(ReadingListBook, (reading_list.id, book.id)) is not None:
        raise ConflictError("Book already in this list")

    with conflict_on_duplicate("Book already in this list"):
        db.session.add(ReadingListBook(list_id=reading_list.id, book_id=book.id, notes=notes or None))
        _touch(reading_list)
        db.session.commit()


def remove_book_from_reading_list(user_id, list_id, book_id):
    reading_list = _editable_list(user_id, list_id)
    removed = ReadingListBook.query.filter_by(list_id=reading_list.id, book_id=book_id).delete()
    if removed:
        _touch(reading_list)
    db.session.commit()
    return bool(removed)
