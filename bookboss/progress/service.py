from ..books.service import get_book_or_404
from ..models import ReadingProgress, db


def list_progress(user_id):
    return ReadingProgress.query.filter_by(user_id=user_id).order_by(ReadingProgress.updated_at.desc()).all()


def upsert_progress(user_id, book_id, status="plan_to_read", progress=0, rating=0):
    """One row per (user, book); a later submission overwrites the earlier one."""
    book = get_book_or_404(book_id)
    row = db.session.get(ReadingProgress, (user_id, book.id))
    if row is None:
        row = ReadingProgress(user_id=user_id, book_id=book.id)
        db.session.add(row)
    row.status = status
    row.progress = progress or 0
    row.rating = rating or 0
    db.session.commit()
    return row
