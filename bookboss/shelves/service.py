from flask import current_app
from sqlalchemy import func

from ..books.service import get_book_or_404
from ..errors import ConflictError, NotFoundError, ValidationError, conflict_on_duplicate
from ..forms import parse_int
from ..models import Book, Shelf, ShelfBook, db


def get_owned_shelf_or_404(user_id, shelf_id):
    # Other users' shelves are indistinguishable from missing ones
    shelf = Shelf.query.filter_by(id=shelf_id, user_id=user_id).first()
    if shelf is None:
        raise NotFoundError("Shelf not found")
    return shelf


def list_shelves(user_id):
    rows = (
        db.session.query(Shelf, func.count(ShelfBook.book_id))
        .outerjoin(ShelfBook, ShelfBook.shelf_id == Shelf.id)
        .filter(Shelf.user_id == user_id)
        .group_by(Shelf.id)
        .order_by(Shelf.name)
        .all()
    )
    return [shelf.to_dict(book_count=count) for shelf, count in rows]


def shelf_name_taken(user_id, name):
    return Shelf.query.filter_by(user_id=user_id, name=name).first() is not None


def create_shelf(user_id, name):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Shelf name is required", errors={"name": ["Shelf name is required"]})
    if shelf_name_taken(user_id, name):
        raise ConflictError("A shelf with this name already exists")

    shelf = Shelf(user_id=user_id, name=name)
    with conflict_on_duplicate("A shelf with this name already exists"):
        db.session.add(shelf)
        db.session.commit()
    current_app.logger.info("User %s created shelf %s", user_id, shelf.id)
    return shelf


def delete_shelf(user_id, shelf_id):
    """Delete the shelf and its memberships; the books themselves stay."""
    shelf = get_owned_shelf_or_404(user_id, shelf_id)
    db.session.delete(shelf)
    db.session.commit()


def shelf_books(user_id, shelf_id):
    shelf = get_owned_shelf_or_404(user_id, shelf_id)
    return (
        Book.query.join(ShelfBook, ShelfBook.book_id == Book.id)
        .filter(ShelfBook.shelf_id == shelf.id)
        .order_by(ShelfBook.added_at.desc(), Book.id.desc())
        .all()
    )


def add_book_to_shelf(user_id, shelf_id, book_id):
    """Add a membership. Adding a book that is already on the shelf is a no-op."""
    shelf = get_owned_shelf_or_404(user_id, shelf_id)
    book = get_book_or_404(parse_int(book_id, "bookId", minimum=1))
    created = False
    if db.session.get(ShelfBook, (shelf.id, book.id)) is None:
        db.session.add(ShelfBook(shelf_id=shelf.id, book_id=book.id))
        db.session.commit()
        created = True
    return created


def remove_book_from_shelf(user_id, shelf_id, book_id):
    shelf = get_owned_shelf_or_404(user_id, shelf_id)
    get_book_or_404(book_id)
    removed = ShelfBook.query.filter_by(shelf_id=shelf.id, book_id=book_id).delete()
    db.session.commit()
    return bool(removed)
