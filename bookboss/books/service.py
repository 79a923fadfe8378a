from datetime import UTC, datetime

from flask import current_app

from ..audit import log_event
from ..cover_service import is_remote_url, store_remote_cover
from ..errors import NotFoundError, ValidationError
from ..forms import normalize_list, parse_bool, parse_date, parse_int, parse_rating
from ..models import BOOK_STATUSES, Book, ReadingProgress, Shelf, ShelfBook, db
from ..storage import PUBLIC_PREFIX, delete_upload, save_uploaded_image

# Writable columns and their maximum lengths
_STRING_FIELDS = {
    "isbn": 20,
    "library": 255,
    "format": 50,
    "binding_type": 50,
    "physical_format": 50,
    "book_condition": 20,
    "edition_type": 50,
    "edge_type": 50,
    "series": 255,
    "publisher": 255,
    "language": 20,
    "publication_date": 20,
    "borrower_name": 255,
}
_REQUIRED_STRING_FIELDS = {"title": 500, "author": 500}
_TEXT_FIELDS = ("description", "notes", "binding_details")
_INT_FIELDS = ("page_count", "current_page")
_NULLABLE_INT_FIELDS = ("series_order",)
_BOOL_FIELDS = ("is_signed", "has_bonus_chapters", "is_loaned")
_LIST_FIELDS = ("categories", "descriptors")
_DATE_FIELDS = ("loan_date", "due_date")

_FIELD_ALIASES = {"series_index": "series_order"}

_DEFAULTS = {"library": "Main Library", "format": "Physical", "language": "en"}


def _utcnow():
    return datetime.now(UTC)


def _clean_string(name, value, max_length):
    if value is None:
        return None
    value = str(value).strip()
    if len(value) > max_length:
        raise ValidationError(f"{name} is too long", errors={name: [f"At most {max_length} characters"]})
    return value or None


def coerce_book_fields(payload):
    """Validate and coerce the whitelisted book keys present in *payload*.

    Unknown keys are dropped. Returns a dict of column name to value.
    """
    changes = {}
    for raw_key, value in payload.items():
        key = _FIELD_ALIASES.get(raw_key, raw_key)
        if key in _REQUIRED_STRING_FIELDS:
            cleaned = _clean_string(key, value, _REQUIRED_STRING_FIELDS[key])
            if not cleaned:
                raise ValidationError(f"{key.capitalize()} is required", errors={key: ["This field is required"]})
            changes[key] = cleaned
        elif key in _STRING_FIELDS:
            changes[key] = _clean_string(key, value, _STRING_FIELDS[key])
        elif key in _TEXT_FIELDS:
            changes[key] = None if value is None else str(value)
        elif key in _INT_FIELDS:
            changes[key] = parse_int(value, key, minimum=0, nullable=True) or 0
        elif key in _NULLABLE_INT_FIELDS:
            changes[key] = parse_int(value, key, minimum=0, nullable=True)
        elif key in _BOOL_FIELDS:
            changes[key] = False if value is None else parse_bool(value, key)
        elif key in _LIST_FIELDS:
            changes[key] = normalize_list(value)
        elif key in _DATE_FIELDS:
            changes[key] = parse_date(value, key)
        elif key == "rating":
            changes[key] = parse_rating(value)
        elif key == "status":
            if value not in BOOK_STATUSES:
                raise ValidationError(
                    "Invalid status", errors={"status": [f"Must be one of: {', '.join(BOOK_STATUSES)}"]}
                )
            changes[key] = value

    for key, default in _DEFAULTS.items():
        if key in changes and changes[key] is None:
            changes[key] = default
    return changes


def _cover_from_payload(payload):
    if "cover" in payload:
        return True, payload["cover"]
    if "cover_url" in payload:
        return True, payload["cover_url"]
    return False, None


def _apply_cover(book, cover_file=None, cover=None):
    """Point the book at an uploaded file, a downloaded remote cover, or a plain reference."""
    if cover_file is not None:
        path = save_uploaded_image(cover_file, "cover")
        book.cover_url = path
        book.cover_image_path = path
        return

    cover = (cover or "").strip() or None
    if cover is None:
        book.cover_url = None
        book.cover_image_path = None
    elif is_remote_url(cover):
        # Keep the remote URL when the download fails
        book.cover_url = cover
        book.cover_image_path = store_remote_cover(cover)
    else:
        book.cover_url = cover
        book.cover_image_path = cover if cover.startswith(PUBLIC_PREFIX) else None


def _apply_changes(book, changes):
    previous_page = book.current_page
    for key, value in changes.items():
        setattr(book, key, value)
    if "current_page" in changes or "page_count" in changes:
        book.recompute_progress()
    if "current_page" in changes and changes["current_page"] != (previous_page or 0):
        book.last_read_at = _utcnow()


# ── Reads ────────────────────────────────────────────────────────────


def get_book_or_404(book_id):
    book = db.session.get(Book, book_id)
    if book is None:
        raise NotFoundError("Book not found")
    return book


def shelf_ids_by_book(user_id, book_ids=None):
    """Map book id to the sorted ids of *user_id*'s shelves containing it."""
    query = (
        db.session.query(ShelfBook.book_id, ShelfBook.shelf_id)
        .join(Shelf, Shelf.id == ShelfBook.shelf_id)
        .filter(Shelf.user_id == user_id)
    )
    if book_ids is not None:
        query = query.filter(ShelfBook.book_id.in_(book_ids))
    mapping = {}
    for book_id, shelf_id in query.order_by(ShelfBook.shelf_id):
        mapping.setdefault(book_id, []).append(shelf_id)
    return mapping


def _progress_by_book(user_id, book_ids=None):
    query = ReadingProgress.query.filter_by(user_id=user_id)
    if book_ids is not None:
        query = query.filter(ReadingProgress.book_id.in_(book_ids))
    return {row.book_id: row for row in query}


def serialize_books(books, user_id):
    book_ids = [book.id for book in books]
    shelves = shelf_ids_by_book(user_id, book_ids)
    progress = _progress_by_book(user_id, book_ids)
    return [book.to_dict(shelf_ids=shelves.get(book.id), progress=progress.get(book.id)) for book in books]


def list_books(user_id):
    books = Book.query.order_by(Book.added_at.desc(), Book.id.desc()).all()
    return serialize_books(books, user_id)


def get_book(book_id, user_id):
    return serialize_books([get_book_or_404(book_id)], user_id)[0]


# ── Writes ───────────────────────────────────────────────────────────


def create_book(payload, cover_file=None):
    """Create a book from a JSON or multipart payload. Returns the new Book."""
    for key in ("title", "author"):
        if not str(payload.get(key) or "").strip():
            raise ValidationError("Title and author are required", errors={key: ["This field is required"]})

    changes = coerce_book_fields(payload)
    book = Book()
    _apply_changes(book, changes)

    has_cover, cover = _cover_from_payload(payload)
    if cover_file is not None or has_cover:
        _apply_cover(book, cover_file=cover_file, cover=cover)

    db.session.add(book)
    db.session.flush()
    log_event("book_created", "book", book.id, detail=f"{book.title} by {book.author}", commit=False)
    db.session.commit()
    current_app.logger.info("Book %s created: %s", book.id, book.title)
    return book


def update_book(book_id, payload, cover_file=None):
    """Overwrite each provided whitelisted key. Returns the updated Book."""
    book = get_book_or_404(book_id)
    changes = coerce_book_fields(payload)
    has_cover, cover = _cover_from_payload(payload)
    if not changes and not has_cover and cover_file is None:
        raise ValidationError("No valid fields to update")

    _apply_changes(book, changes)
    if cover_file is not None or has_cover:
        _apply_cover(book, cover_file=cover_file, cover=cover)

    log_event("book_updated", "book", book.id, detail=", ".join(sorted(changes)), commit=False)
    db.session.commit()
    return book


def _delete_books(books):
    photo_paths = [photo.photo_path for book in books for photo in book.photos]
    for book in books:
        db.session.delete(book)
    return photo_paths


def delete_book(book_id):
    book = get_book_or_404(book_id)
    title = book.title
    photo_paths = _delete_books([book])
    log_event("book_deleted", "book", book_id, detail=title, commit=False)
    db.session.commit()
    # Files go only after the rows are gone; cover files may be shared by other books
    for path in photo_paths:
        delete_upload(path)


def _validate_ids(ids):
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list of book ids")
    cleaned = []
    for value in ids:
        cleaned.append(parse_int(value, "ids", minimum=1))
    return sorted(set(cleaned))


def bulk_delete(ids):
    ids = _validate_ids(ids)
    books = Book.query.filter(Book.id.in_(ids)).all()
    photo_paths = _delete_books(books)
    log_event("books_bulk_deleted", "book", detail={"ids": [book.id for book in books]}, commit=False)
    db.session.commit()
    for path in photo_paths:
        delete_upload(path)
    current_app.logger.info("Bulk deleted %d book(s)", len(books))
    return len(books)


def bulk_update(ids, updates):
    """Apply the same patch to every listed book in one transaction."""
    ids = _validate_ids(ids)
    if not isinstance(updates, dict):
        raise ValidationError("updates must be an object")
    changes = coerce_book_fields(updates)
    if not changes:
        raise ValidationError("No valid fields to update")

    books = Book.query.filter(Book.id.in_(ids)).all()
    for book in books:
        _apply_changes(book, dict(changes))
    log_event(
        "books_bulk_updated",
        "book",
        detail={"ids": [book.id for book in books], "fields": sorted(changes)},
        commit=False,
    )
    db.session.commit()
    return len(books)
