"""ISBN lookups against Google Books with an Open Library fallback."""

import logging

import requests

from ..errors import ExternalProviderError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds per HTTP request

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
OPEN_LIBRARY_URL = "https://openlibrary.org/api/books"


def _clean_isbn(isbn):
    return "".join(ch for ch in str(isbn) if ch.isdigit() or ch in "xX")


def _get_json(url, params, timeout):
    try:
        resp = requests.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise ExternalProviderError(f"Metadata request to {url} failed: {exc}") from exc


def _google_books(isbn, timeout, api_key=None):
    params = {"q": f"isbn:{isbn}"}
    if api_key:
        params["key"] = api_key
    data = _get_json(GOOGLE_BOOKS_URL, params, timeout)
    items = data.get("items") or []
    if not items:
        return None

    info = items[0].get("volumeInfo") or {}
    images = info.get("imageLinks") or {}
    return {
        "title": info.get("title"),
        "authors": info.get("authors") or [],
        "page_count": info.get("pageCount"),
        "publication_date": info.get("publishedDate"),
        "categories": info.get("categories") or [],
        "cover_url": images.get("thumbnail") or images.get("smallThumbnail"),
    }


def _open_library(isbn, timeout):
    key = f"ISBN:{isbn}"
    data = _get_json(OPEN_LIBRARY_URL, {"bibkeys": key, "format": "json", "jscmd": "data"}, timeout)
    record = data.get(key)
    if not record:
        return None

    cover = record.get("cover") or {}
    return {
        "title": record.get("title"),
        "authors": [author.get("name") for author in record.get("authors", []) if author.get("name")],
        "page_count": record.get("number_of_pages"),
        "publication_date": record.get("publish_date"),
        "categories": [subject.get("name") for subject in record.get("subjects", [])[:5] if subject.get("name")],
        "cover_url": cover.get("large") or cover.get("medium") or cover.get("small"),
    }


def lookup_isbn(isbn, timeout=REQUEST_TIMEOUT, api_key=None):
    """Return a candidate record for *isbn*, or None when no provider knows it.

    Raises ExternalProviderError only when every provider failed outright.
    """
    isbn = _clean_isbn(isbn)
    if not isbn:
        return None

    google_error = None
    try:
        record = _google_books(isbn, timeout, api_key=api_key)
        if record:
            return record
    except ExternalProviderError as exc:
        logger.warning("Google Books lookup failed for ISBN %s: %s", isbn, exc.message)
        google_error = exc

    try:
        return _open_library(isbn, timeout)
    except ExternalProviderError as exc:
        logger.warning("Open Library lookup failed for ISBN %s: %s", isbn, exc.message)
        if google_error is not None:
            raise
        return None
