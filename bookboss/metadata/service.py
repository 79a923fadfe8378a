import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..audit import log_event
from ..cover_service import REQUEST_TIMEOUT, download_cover, is_remote_url
from ..errors import ExternalProviderError
from ..forms import normalize_list
from ..models import Book, db
from ..storage import storage_dir
from .provider import lookup_isbn

logger = logging.getLogger(__name__)


def _apply_record(book, record):
    """Overwrite the book's descriptive fields with whatever the provider supplied."""
    if record.get("title"):
        book.title = str(record["title"])[:500]
    authors = [str(author) for author in record.get("authors") or [] if author]
    if authors:
        book.author = ", ".join(authors)[:500]
    page_count = record.get("page_count")
    if isinstance(page_count, int) and not isinstance(page_count, bool) and page_count > 0:
        book.page_count = page_count
        book.recompute_progress()
    if record.get("publication_date"):
        book.publication_date = str(record["publication_date"])[:20]
    categories = normalize_list(record.get("categories"))
    if categories:
        book.categories = categories
    if record.get("cover_url"):
        book.cover_url = str(record["cover_url"])[:1000]


def _refresh_book(book_id, timeout, api_key, cover_dir, max_size):
    """Refresh one book. Returns "downloaded", "skipped" or "failed"."""
    book = db.session.get(Book, book_id)
    if book is None:
        return "skipped"

    record = None
    if book.isbn:
        try:
            record = lookup_isbn(book.isbn, timeout=timeout, api_key=api_key)
        except ExternalProviderError as exc:
            logger.warning("No metadata for book %s: %s", book.id, exc.message)
        if record is None:
            logger.info("No metadata found for ISBN %s", book.isbn)

    cover_url = (record or {}).get("cover_url") or book.cover_url
    local_path = None
    download_failed = False
    if is_remote_url(cover_url):
        try:
            local_path = download_cover(cover_url, cover_dir, timeout=timeout, max_size=max_size)
        except ExternalProviderError as exc:
            logger.warning("Cover download failed for book %s: %s", book.id, exc.message)
            download_failed = True

    with db.session.begin_nested():
        if record:
            _apply_record(book, record)
        if local_path:
            book.cover_image_path = local_path
    db.session.commit()

    if local_path:
        return "downloaded"
    return "failed" if download_failed else "skipped"


def refresh_metadata(should_cancel=None, on_progress=None):
    """Refresh metadata and covers for every book, one book at a time.

    Each book is isolated: a provider or database failure on one book is
    counted and the loop moves on. ``should_cancel`` is polled between books;
    ``on_progress`` receives a copy of the counters after each book.
    """
    timeout = current_app.config.get("METADATA_REQUEST_TIMEOUT", REQUEST_TIMEOUT)
    api_key = current_app.config.get("GOOGLE_BOOKS_API_KEY") or None
    max_size = current_app.config.get("MAX_IMAGE_FILE_SIZE")
    cover_dir = storage_dir()

    book_ids = [book_id for (book_id,) in db.session.query(Book.id).order_by(Book.id)]
    counters = {
        "processed": 0,
        "downloaded": 0,
        "skipped": 0,
        "failed": 0,
        "total": len(book_ids),
        "cancelled": False,
    }
    log_event("metadata_refresh_started", detail={"total": len(book_ids)})

    for book_id in book_ids:
        if should_cancel is not None and should_cancel():
            counters["cancelled"] = True
            break
        try:
            outcome = _refresh_book(book_id, timeout, api_key, cover_dir, max_size)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Metadata refresh failed for book %s; its changes were rolled back.", book_id)
            outcome = "failed"
        counters[outcome] += 1
        counters["processed"] += 1
        if on_progress is not None:
            on_progress(dict(counters))

    log_event(
        "metadata_refresh_finished",
        detail={key: counters[key] for key in ("processed", "downloaded", "skipped", "failed")},
    )
    current_app.logger.info(
        "Metadata refresh %s: %d processed, %d downloaded, %d skipped, %d failed",
        "cancelled" if counters["cancelled"] else "completed",
        counters["processed"],
        counters["downloaded"],
        counters["skipped"],
        counters["failed"],
    )
    return counters
