"""ISBN metadata lookup and the library-wide refresh job."""

import pytest
import requests
from sqlalchemy.exc import OperationalError

from bookboss.errors import ConflictError, ExternalProviderError
from bookboss.metadata import service
from bookboss.metadata.provider import GOOGLE_BOOKS_URL, OPEN_LIBRARY_URL, lookup_isbn
from bookboss.metadata.service import refresh_metadata
from bookboss.models import AuditLog, Book, db
from tests.conftest import _make_book
from tests.fakes import FakeResponse, FakeWeb, image_response

DUNE_ISBN = "9780441013593"

GOOGLE_DUNE = {
    "items": [
        {
            "volumeInfo": {
                "title": "Dune",
                "authors": ["Frank Herbert"],
                "pageCount": 412,
                "publishedDate": "1965",
                "categories": ["Fiction"],
                "imageLinks": {"thumbnail": "http://covers.test/dune.jpg"},
            }
        }
    ]
}

OPEN_LIBRARY_DUNE = {
    f"ISBN:{DUNE_ISBN}": {
        "title": "Dune",
        "authors": [{"name": "Frank Herbert"}],
        "number_of_pages": 604,
        "publish_date": "2005",
        "subjects": [{"name": "Science fiction"}, {"name": "Desert"}],
        "cover": {"medium": "http://covers.test/ol-dune.jpg"},
    }
}


@pytest.fixture()
def web(monkeypatch):
    fake = FakeWeb()
    # Provider and cover downloads share the requests module
    monkeypatch.setattr(requests, "get", fake.get)
    return fake


def test_lookup_prefers_google_books(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data=GOOGLE_DUNE)

    record = lookup_isbn("978-0-441-01359-3")

    assert record["title"] == "Dune"
    assert record["authors"] == ["Frank Herbert"]
    assert record["page_count"] == 412
    assert record["cover_url"] == "http://covers.test/dune.jpg"
    assert web.calls == [(GOOGLE_BOOKS_URL, {"q": f"isbn:{DUNE_ISBN}"})]


def test_lookup_sends_api_key(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data=GOOGLE_DUNE)
    lookup_isbn(DUNE_ISBN, api_key="k-123")
    assert web.calls[0][1]["key"] == "k-123"


def test_lookup_falls_back_to_open_library(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data={"totalItems": 0})
    web.routes[OPEN_LIBRARY_URL] = FakeResponse(json_data=OPEN_LIBRARY_DUNE)

    record = lookup_isbn(DUNE_ISBN)

    assert record["page_count"] == 604
    assert record["categories"] == ["Science fiction", "Desert"]
    assert record["cover_url"] == "http://covers.test/ol-dune.jpg"


def test_lookup_falls_back_when_google_errors(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(status_code=503)
    web.routes[OPEN_LIBRARY_URL] = FakeResponse(json_data=OPEN_LIBRARY_DUNE)

    assert lookup_isbn(DUNE_ISBN)["title"] == "Dune"


def test_lookup_unknown_isbn_returns_none(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data={"items": []})
    web.routes[OPEN_LIBRARY_URL] = FakeResponse(json_data={})

    assert lookup_isbn(DUNE_ISBN) is None
    assert lookup_isbn("not an isbn") is None


def test_lookup_raises_when_every_provider_fails(web):
    with pytest.raises(ExternalProviderError):
        lookup_isbn(DUNE_ISBN)


def test_open_library_failure_after_google_miss_is_a_miss(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data={})
    assert lookup_isbn(DUNE_ISBN) is None


def test_refresh_counts_each_outcome(web):
    web.routes[GOOGLE_BOOKS_URL] = FakeResponse(json_data=GOOGLE_DUNE)
    web.routes["http://covers.test/"] = image_response()
    dune = _make_book(title="dune (draft)", author="Unknown", isbn=DUNE_ISBN, page_count=100, current_page=206)
    _make_book(title="No cover")
    _make_book(title="Dead link", cover_url="http://offline.test/cover.jpg")

    counters = refresh_metadata()

    assert counters == {
        "processed": 3,
        "downloaded": 1,
        "skipped": 1,
        "failed": 1,
        "total": 3,
        "cancelled": False,
    }
    refreshed = db.session.get(Book, dune.id)
    assert refreshed.title == "Dune"
    assert refreshed.author == "Frank Herbert"
    assert refreshed.page_count == 412
    assert refreshed.progress_percentage == 50
    assert refreshed.categories == ["Fiction"]
    assert refreshed.cover_url == "http://covers.test/dune.jpg"
    assert refreshed.cover_image_path.startswith("/uploads/cover_")
    assert AuditLog.query.filter_by(action="metadata_refresh_finished").count() == 1


def test_refresh_isolates_database_failures(web, monkeypatch):
    web.routes["http://covers.test/"] = image_response()
    broken = _make_book(title="Broken", cover_url="http://covers.test/broken.jpg")
    fine = _make_book(title="Fine", cover_url="http://covers.test/fine.jpg")
    real_download = service.download_cover

    def flaky_download(url, *args, **kwargs):
        if "broken" in url:
            raise OperationalError("UPDATE books", {}, Exception("disk I/O error"))
        return real_download(url, *args, **kwargs)

    monkeypatch.setattr(service, "download_cover", flaky_download)

    counters = refresh_metadata()

    assert counters["failed"] == 1
    assert counters["downloaded"] == 1
    assert db.session.get(Book, broken.id).cover_image_path is None
    assert db.session.get(Book, fine.id).cover_image_path is not None


def test_refresh_stops_when_cancelled(web):
    _make_book(title="One")
    _make_book(title="Two")
    seen = []

    counters = refresh_metadata(should_cancel=lambda: len(seen) >= 1, on_progress=seen.append)

    assert counters["cancelled"] is True
    assert counters["processed"] == 1
    assert counters["total"] == 2
    assert seen[0]["processed"] == 1


def test_refresh_endpoint_runs_inline_without_scheduler(client, web, user_headers):
    _make_book(title="Plain")

    rv = client.post("/api/books/refresh-metadata", headers=user_headers)

    assert rv.status_code == 200
    data = rv.get_json()
    assert data["processed"] == 1
    assert data["skipped"] == 1
    status = client.get("/api/books/refresh-metadata", headers=user_headers).get_json()
    assert status["state"] == "completed"
    assert status["finished_at"] is not None


def test_second_refresh_conflicts_while_one_runs(client, app, user_headers):
    job = app.metadata_refresh
    job.begin()
    try:
        rv = client.post("/api/books/refresh-metadata", headers=user_headers)
        assert rv.status_code == 409
        with pytest.raises(ConflictError):
            job.begin()

        rv = client.delete("/api/books/refresh-metadata", headers=user_headers)
        assert rv.status_code == 200
        assert job.cancel_event.is_set()
    finally:
        job.finish("cancelled")


def test_cancel_without_running_refresh_conflicts(client, user_headers):
    assert client.delete("/api/books/refresh-metadata", headers=user_headers).status_code == 409


def test_refresh_requires_login(client):
    assert client.post("/api/books/refresh-metadata").status_code == 401


def test_crashed_refresh_is_reported_as_failed(client, app, user_headers, monkeypatch):
    def explode(**kwargs):
        raise RuntimeError("provider exploded with secret detail")

    monkeypatch.setattr(service, "refresh_metadata", explode)

    rv = client.post("/api/books/refresh-metadata", headers=user_headers)

    assert rv.status_code == 500
    status = client.get("/api/books/refresh-metadata", headers=user_headers).get_json()
    assert status["state"] == "failed"
    assert status["error"] == "RuntimeError"
    assert status["duration_ms"] is not None
    health = client.get("/health").get_json()
    assert health["metadata_refresh"]["state"] == "failed"
    assert "secret" not in str(health)


def test_completed_refresh_records_duration(client, web, user_headers):
    client.post("/api/books/refresh-metadata", headers=user_headers)

    status = client.get("/api/books/refresh-metadata", headers=user_headers).get_json()

    assert status["state"] == "completed"
    assert status["error"] is None
    assert status["duration_ms"] >= 0
