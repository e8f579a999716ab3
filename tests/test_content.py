"""Tests for free-form page content sections."""
from __future__ import annotations


def test_put_creates_then_updates_a_section(client, admin_headers) -> None:
    created = client.put(
        "/api/content",
        json={"section": "aviso-legal", "title": "Aviso legal", "content": "Titular: Centro de bienestar"},
        headers=admin_headers,
    )
    assert created.status_code == 200
    assert created.get_json()["content"]["title"] == "Aviso legal"

    updated = client.put(
        "/api/content", json={"section": "aviso-legal", "subtitle": "Última revisión 2025"}, headers=admin_headers
    )
    content = updated.get_json()["content"]
    assert content["title"] == "Aviso legal"
    assert content["subtitle"] == "Última revisión 2025"

    fetched = client.get("/api/content/aviso-legal")
    assert fetched.status_code == 200
    assert fetched.get_json()["content"]["content"] == "Titular: Centro de bienestar"


def test_list_all_or_one_section(client, admin_headers) -> None:
    for key in ("privacidad", "cookies"):
        client.patch(f"/api/content/{key}", json={"title": key.title()}, headers=admin_headers)

    listed = client.get("/api/content").get_json()["content"]
    assert [item["section"] for item in listed] == ["cookies", "privacidad"]

    one = client.get("/api/content?section=privacidad")
    assert one.status_code == 200
    assert one.get_json()["content"]["title"] == "Privacidad"

    assert client.get("/api/content?section=terminos").status_code == 404
    assert client.get("/api/content/terminos").status_code == 404


def test_section_key_is_required_and_lowercase(client, admin_headers) -> None:
    missing = client.put("/api/content", json={"title": "Sin sección"}, headers=admin_headers)
    assert missing.status_code == 400
    assert "section" in missing.get_json()["details"]

    spaced = client.put("/api/content", json={"section": "Aviso Legal"}, headers=admin_headers)
    assert spaced.status_code == 400

    underscored = client.put("/api/content", json={"section": "home_hero"}, headers=admin_headers)
    assert underscored.status_code == 200

    not_text = client.patch("/api/content/cookies", json={"content": 42}, headers=admin_headers)
    assert not_text.status_code == 400


def test_content_writes_require_admin(client) -> None:
    assert client.put("/api/content", json={"section": "cookies"}).status_code == 401
    assert client.patch("/api/content/cookies", json={"title": "Cookies"}).status_code == 401
