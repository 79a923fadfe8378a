"""Application wiring: health checks, headers, CORS and error responses."""

from pathlib import Path

from bookboss.models import db


def test_ping(client):
    rv = client.get("/ping")
    assert rv.status_code == 200
    assert rv.get_json()["status"] == "ok"


def test_health_reports_database_and_refresh_job(client):
    rv = client.get("/health")

    assert rv.status_code == 200
    data = rv.get_json()
    assert data["status"] == "ok"
    assert data["database"] == {"status": "ok"}
    assert data["scheduler"] == {"running": False, "reason": "disabled"}
    assert "state" in data["metadata_refresh"]


def test_sqlite_enforces_foreign_keys():
    assert db.session.execute(db.text("PRAGMA foreign_keys")).scalar() == 1


def test_security_headers(client):
    rv = client.get("/ping")
    assert rv.headers["X-Content-Type-Options"] == "nosniff"
    assert rv.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert rv.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


def test_cors_allows_configured_origin(client, user_headers):
    rv = client.get("/api/books", headers={**user_headers, "Origin": "http://localhost:5173"})
    assert rv.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    rv = client.get("/api/books", headers={**user_headers, "Origin": "http://evil.test"})
    assert "Access-Control-Allow-Origin" not in rv.headers


def test_unknown_route_returns_json_404(client, user_headers):
    rv = client.get("/api/nothing-here", headers=user_headers)
    assert rv.status_code == 404
    assert "error" in rv.get_json()


def test_wrong_method_returns_json_405(client, user_headers):
    rv = client.patch("/api/shelves", headers=user_headers)
    assert rv.status_code == 405
    assert "error" in rv.get_json()


def test_non_json_body_is_rejected(client, user_headers):
    rv = client.post("/api/shelves", data="name=Fiction", content_type="text/plain", headers=user_headers)
    assert rv.status_code == 400


def test_uploads_are_served_without_auth(client, app):
    (Path(app.config["UPLOAD_STORAGE"]) / "served.txt").write_text("hello")

    rv = client.get("/uploads/served.txt")

    assert rv.status_code == 200
    assert rv.data == b"hello"
