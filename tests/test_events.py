"""Tests for workshops and retreats."""
from __future__ import annotations

from datetime import date, timedelta


def _future(days: int, hour: int = 10) -> str:
    return f"{(date.today() + timedelta(days=days)).isoformat()}T{hour:02d}:00:00"


def _event(client, headers, **overrides):
    body = {
        "title": "Retiro de Yoga",
        "start_date": _future(10),
        "end_date": _future(12, 18),
        "location": "Centro",
        "price": "120",
        "max_places": 12,
        "available_places": 12,
        "whatsapp_number": "+34 633 444 555",
        "whatsapp_message": "Quiero reservar plaza",
    }
    body.update(overrides)
    return client.post("/api/events", json=body, headers=headers)


def test_create_event_with_whatsapp_link(client, admin_headers) -> None:
    response = _event(client, admin_headers)

    assert response.status_code == 201
    event = response.get_json()["event"]
    assert event["slug"] == "retiro-de-yoga"
    assert event["status"] == "UPCOMING"
    assert event["price"] == 120.0
    assert event["whatsapp_link"] == "https://wa.me/34633444555?text=Quiero%20reservar%20plaza"

    by_slug = client.get("/api/events/retiro-de-yoga")
    assert by_slug.status_code == 200
    assert by_slug.get_json()["event"]["id"] == event["id"]


def test_event_validation(client, admin_headers) -> None:
    inverted = _event(client, admin_headers, end_date=_future(5))
    assert inverted.status_code == 400
    assert "end_date" in inverted.get_json()["details"]

    overbooked = _event(client, admin_headers, available_places=20)
    assert overbooked.status_code == 400
    assert "available_places" in overbooked.get_json()["details"]

    bad_location = _event(client, admin_headers, location="Playa")
    assert bad_location.status_code == 400


def test_free_event_has_zero_price(client, admin_headers) -> None:
    response = _event(client, admin_headers, is_free=True, price="50")

    assert response.status_code == 201
    assert response.get_json()["event"]["price"] == 0.0


def test_public_listing_hides_drafts_and_inactive(client, admin_headers) -> None:
    _event(client, admin_headers, title="Taller Publicado")
    _event(client, admin_headers, title="Borrador", status="DRAFT")
    _event(client, admin_headers, title="Oculto", active=False)
    _event(client, admin_headers, title="Pasado", start_date="2020-01-01T10:00:00", end_date=None)

    public = client.get("/api/events").get_json()["events"]
    assert [item["title"] for item in public] == ["Pasado", "Taller Publicado"]

    upcoming = client.get("/api/events?upcoming=true").get_json()["events"]
    assert [item["title"] for item in upcoming] == ["Taller Publicado"]

    admin = client.get("/api/events", headers=admin_headers).get_json()["events"]
    assert len(admin) == 4
    assert client.get("/api/events/borrador").status_code == 404
    assert client.get("/api/events/borrador", headers=admin_headers).status_code == 200


def test_update_and_delete_event(client, admin_headers) -> None:
    event_id = _event(client, admin_headers).get_json()["event"]["id"]

    updated = client.patch(
        f"/api/events/{event_id}",
        json={"available_places": 4, "status": "ONGOING", "includes": ["Comidas", "Alojamiento"]},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    event = updated.get_json()["event"]
    assert event["available_places"] == 4
    assert event["includes"] == ["Comidas", "Alojamiento"]

    too_many = client.patch(f"/api/events/{event_id}", json={"available_places": 13}, headers=admin_headers)
    assert too_many.status_code == 400

    assert client.delete(f"/api/events/{event_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/events/{event_id}", headers=admin_headers).status_code == 404
