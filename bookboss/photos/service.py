from flask import current_app

from ..books.service import get_book_or_404
from ..errors import NotFoundError, ValidationError
from ..forms import normalize_list
from ..models import PHOTO_TYPES, BookPhoto, db
from ..storage import delete_upload, save_uploaded_image

_UPDATABLE_FIELDS = ("photo_type", "description", "tags")


def _clean_photo_type(value):
    value = (value or "").strip() or None
    if value is not None and value not in PHOTO_TYPES:
        raise ValidationError(
            "Invalid photo_type", errors={"photo_type": [f"Must be one of: {', '.join(PHOTO_TYPES)}"]}
        )
    return value


def get_photo_or_404(photo_id):
    photo = db.session.get(BookPhoto, photo_id)
    if photo is None:
        raise NotFoundError("Photo not found")
    return photo


def list_photos(book_id):
    book = get_book_or_404(book_id)
    return BookPhoto.query.filter_by(book_id=book.id).order_by(BookPhoto.uploaded_at.desc(), BookPhoto.id.desc()).all()


def upload_photo(book_id, file_storage, photo_type=None, description=None, tags=None):
    book = get_book_or_404(book_id)
    photo_type = _clean_photo_type(photo_type)
    tags = normalize_list(tags)
    path = save_uploaded_image(file_storage, f"book{book.id}")

    photo = BookPhoto(
        book_id=book.id,
        photo_path=path,
        photo_type=photo_type,
        description=(description or "").strip() or None,
        tags=tags,
    )
    db.session.add(photo)
    db.session.commit()
    current_app.logger.info("Photo %s uploaded for book %s", photo.id, book.id)
    return photo


def update_photo(photo_id, payload):
    photo = get_photo_or_404(photo_id)
    changes = {key: payload[key] for key in _UPDATABLE_FIELDS if key in payload}
    if not changes:
        raise ValidationError("No valid fields to update")

    if "photo_type" in changes:
        photo.photo_type = _clean_photo_type(changes["photo_type"])
    if "description" in changes:
        description = changes["description"]
        photo.description = None if description is None else str(description).strip() or None
    if "tags" in changes:
        photo.tags = normalize_list(changes["tags"])
    db.session.commit()
    return photo


def delete_photo(photo_id):
    """Delete the row, then the backing file. File errors are logged only."""
    photo = get_photo_or_404(photo_id)
    path = photo.photo_path
    db.session.delete(photo)
    db.session.commit()
    delete_upload(path)
