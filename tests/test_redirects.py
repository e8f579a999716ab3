"""Tests for managed legacy-path redirects."""
from __future__ import annotations

from clinic.extensions import db
from clinic.models import Redirect


def _create(client, headers, **overrides):
    body = {"source": "/tratamientos-antiguos", "destination": "/servicios"}
    body.update(overrides)
    return client.post("/api/redirects", json=body, headers=headers)


def test_legacy_path_is_redirected_and_counted(app, client, admin_headers) -> None:
    redirect_id = _create(client, admin_headers).get_json()["redirect"]["id"]

    response = client.get("/tratamientos-antiguos")

    assert response.status_code == 301
    assert response.headers["Location"].endswith("/servicios")
    with app.app_context():
        rule = db.session.get(Redirect, redirect_id)
        assert rule.hits == 1
        assert rule.last_hit_at is not None


def test_temporary_and_inactive_redirects(client, admin_headers) -> None:
    _create(client, admin_headers, source="/promo", destination="https://example.com/promo", permanent=False)
    _create(client, admin_headers, source="/viejo", active=False)

    temporary = client.get("/promo")
    assert temporary.status_code == 302
    assert temporary.headers["Location"] == "https://example.com/promo"

    assert client.get("/viejo").status_code == 404


def test_api_paths_are_not_redirected(client, admin_headers) -> None:
    _create(client, admin_headers, source="/api/services", destination="/servicios")

    response = client.get("/api/services")

    assert response.status_code == 200


def test_resolve_endpoint(client, admin_headers) -> None:
    _create(client, admin_headers, permanent=False)

    resolved = client.get("/api/redirects/resolve?path=/tratamientos-antiguos")
    assert resolved.status_code == 200
    assert resolved.get_json() == {"destination": "/servicios", "status_code": 302}

    assert client.get("/api/redirects/resolve?path=/nada").status_code == 404
    assert client.get("/api/redirects/resolve?path=nada").status_code == 400

    listed = client.get("/api/redirects", headers=admin_headers).get_json()["redirects"]
    assert listed[0]["hits"] == 1


def test_redirect_validation(client, admin_headers) -> None:
    no_slash = _create(client, admin_headers, source="sin-barra")
    assert no_slash.status_code == 400
    assert "source" in no_slash.get_json()["details"]

    loop = _create(client, admin_headers, source="/a", destination="/a")
    assert loop.status_code == 400

    bad_destination = _create(client, admin_headers, destination="ftp://example.com")
    assert bad_destination.status_code == 400

    assert _create(client, admin_headers).status_code == 201
    duplicate = _create(client, admin_headers, destination="/otra")
    assert duplicate.status_code == 409


def test_update_and_delete_redirect(client, admin_headers) -> None:
    redirect_id = _create(client, admin_headers).get_json()["redirect"]["id"]

    loop = client.patch(f"/api/redirects/{redirect_id}", json={"destination": "/tratamientos-antiguos"},
                        headers=admin_headers)
    assert loop.status_code == 400

    updated = client.patch(f"/api/redirects/{redirect_id}", json={"permanent": False}, headers=admin_headers)
    assert updated.get_json()["redirect"]["status_code"] == 302

    assert client.delete(f"/api/redirects/{redirect_id}", headers=admin_headers).status_code == 200
    assert client.get("/tratamientos-antiguos").status_code == 404
