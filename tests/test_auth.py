"""Tests for login, token checks and password changes."""
from __future__ import annotations

from werkzeug.security import check_password_hash

from clinic.extensions import db
from clinic.models import AuthAccount


def test_login_success_returns_token(client, admin_user) -> None:
    response = client.post(
        "/api/auth/login",
        json={"email": admin_user["email"].upper(), "password": admin_user["password"]},
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["token"]
    assert data["user"]["email"] == admin_user["email"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.get_json()["user"]["role"] == "admin"


def test_login_rejects_bad_password(client, admin_user) -> None:
    response = client.post(
        "/api/auth/login",
        json={"email": admin_user["email"], "password": "wrong-password"},
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_login_requires_fields(client) -> None:
    response = client.post("/api/auth/login", json={"email": "admin@clinic.test"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_admin_routes_reject_missing_or_tampered_token(client, admin_headers) -> None:
    assert client.get("/api/bookings").status_code == 401

    tampered = {"Authorization": admin_headers["Authorization"] + "x"}
    response = client.get("/api/bookings", headers=tampered)
    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"

    assert client.get("/api/bookings", headers=admin_headers).status_code == 200


def test_change_password(app, client, admin_user, admin_headers) -> None:
    wrong = client.post(
        "/api/auth/change-password",
        json={"current_password": "nope", "new_password": "another-secret"},
        headers=admin_headers,
    )
    assert wrong.status_code == 401

    short = client.post(
        "/api/auth/change-password",
        json={"current_password": admin_user["password"], "new_password": "short"},
        headers=admin_headers,
    )
    assert short.status_code == 400
    assert "new_password" in short.get_json()["details"]

    response = client.post(
        "/api/auth/change-password",
        json={"current_password": admin_user["password"], "new_password": "another-secret"},
        headers=admin_headers,
    )
    assert response.status_code == 200

    with app.app_context():
        account = db.session.get(AuthAccount, admin_user["id"])
        assert check_password_hash(account.password_hash, "another-secret")
