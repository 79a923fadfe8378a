"""Application settings key-value store."""

from bookboss.models import AuditLog, Setting


def test_settings_start_empty(client, user_headers):
    assert client.get("/api/settings", headers=user_headers).get_json() == {}


def test_admin_saves_settings_as_strings(client, user_headers, admin_headers):
    rv = client.post(
        "/api/settings",
        json={"accent_color": "#aa3300", "allow_registration": False, "page_size": 25},
        headers=admin_headers,
    )

    assert rv.status_code == 200
    expected = {"accent_color": "#aa3300", "allow_registration": "false", "page_size": "25"}
    assert rv.get_json() == expected
    assert client.get("/api/settings", headers=user_headers).get_json() == expected
    assert AuditLog.query.filter_by(action="settings_updated").count() == 1


def test_saving_again_overwrites(client, admin_headers):
    client.post("/api/settings", json={"accent_color": "red"}, headers=admin_headers)
    client.post("/api/settings", json={"accent_color": "blue"}, headers=admin_headers)

    assert Setting.query.filter_by(key="accent_color").count() == 1
    assert Setting.get("accent_color") == "blue"


def test_non_admin_cannot_save(client, user_headers):
    rv = client.post("/api/settings", json={"accent_color": "red"}, headers=user_headers)
    assert rv.status_code == 403
    assert Setting.query.count() == 0


def test_empty_or_invalid_payload_is_rejected(client, admin_headers):
    assert client.post("/api/settings", json={}, headers=admin_headers).status_code == 400
    rv = client.post("/api/settings", json={"k" * 101: "x", "ok": "y"}, headers=admin_headers)
    assert rv.status_code == 400
    assert Setting.query.count() == 0


def test_settings_require_login(client):
    assert client.get("/api/settings").status_code == 401
