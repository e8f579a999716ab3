"""Tests for the health endpoints and the JSON error handlers."""
from __future__ import annotations

from clinic import create_app


def test_health_endpoint(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_database_health_endpoint_ok() -> None:
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    })
    client = app.test_client()

    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}


def test_unknown_route_returns_json_404(client) -> None:
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_wrong_method_returns_json_405(client) -> None:
    response = client.delete("/health")

    assert response.status_code == 405
    assert response.get_json()["error"] == "method_not_allowed"
