"""Tests for working hours, blocked dates and the contact-info buffer."""
from __future__ import annotations

from clinic.extensions import db
from clinic.models import WorkingHour


def test_upsert_working_hours(app, client, admin_headers) -> None:
    monday = {
        "day_of_week": 1,
        "is_open": True,
        "open_time": "9:00",
        "close_time": "20:00",
        "break_start": "14:00",
        "break_end": "16:00",
    }
    response = client.post("/api/working-hours", json=monday, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()["working_hours"][0]["open_time"] == "09:00"

    monday["close_time"] = "18:00"
    batch = {"working_hours": [monday, {"day_of_week": 0, "is_open": False, "open_time": "09:00", "close_time": "14:00"}]}
    assert client.post("/api/working-hours", json=batch, headers=admin_headers).status_code == 200

    listed = client.get("/api/working-hours").get_json()["working_hours"]
    assert [row["day_of_week"] for row in listed] == [0, 1]
    assert listed[1]["close_time"] == "18:00"

    with app.app_context():
        assert WorkingHour.query.count() == 2


def test_working_hours_validation(client, admin_headers) -> None:
    bad_time = client.post(
        "/api/working-hours",
        json={"day_of_week": 2, "open_time": "24:00", "close_time": "20:00"},
        headers=admin_headers,
    )
    assert bad_time.status_code == 400
    assert "open_time" in bad_time.get_json()["details"]

    inverted = client.post(
        "/api/working-hours",
        json={"day_of_week": 2, "open_time": "18:00", "close_time": "09:00"},
        headers=admin_headers,
    )
    assert inverted.status_code == 400

    half_break = client.post(
        "/api/working-hours",
        json={"day_of_week": 2, "open_time": "09:00", "close_time": "18:00", "break_start": "13:00"},
        headers=admin_headers,
    )
    assert half_break.status_code == 400

    bad_day = client.post(
        "/api/working-hours",
        json={"day_of_week": 7, "open_time": "09:00", "close_time": "18:00"},
        headers=admin_headers,
    )
    assert bad_day.status_code == 400


def test_partial_blocked_date_round_trip(client, admin_headers) -> None:
    created = client.post(
        "/api/blocked-dates",
        json={"date": "2030-05-20", "all_day": False, "start_time": "10:00", "end_time": "12:30", "reason": "Formación"},
        headers=admin_headers,
    )
    assert created.status_code == 201

    rows = client.get("/api/blocked-dates?startDate=2030-05-01&endDate=2030-05-31").get_json()["blocked_dates"]
    assert len(rows) == 1
    assert rows[0]["date"] == "2030-05-20"
    assert rows[0]["all_day"] is False
    assert rows[0]["start_time"] == "10:00"
    assert rows[0]["end_time"] == "12:30"


def test_all_day_blocked_date_drops_times(client, admin_headers) -> None:
    created = client.post(
        "/api/blocked-dates",
        json={"date": "2030-05-21", "start_time": "10:00", "end_time": "12:00"},
        headers=admin_headers,
    )

    assert created.status_code == 201
    blocked = created.get_json()["blocked_date"]
    assert blocked["all_day"] is True
    assert blocked["start_time"] is None
    assert blocked["end_time"] is None

    deleted = client.delete(f"/api/blocked-dates/{blocked['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert client.get("/api/blocked-dates").get_json()["blocked_dates"] == []


def test_partial_block_requires_ordered_times(client, admin_headers) -> None:
    response = client.post(
        "/api/blocked-dates",
        json={"date": "2030-05-20", "all_day": False, "start_time": "12:00", "end_time": "10:00"},
        headers=admin_headers,
    )
    assert response.status_code == 400

    bad_date = client.post("/api/blocked-dates", json={"date": "20-05-2030"}, headers=admin_headers)
    assert bad_date.status_code == 400


def test_contact_info_buffer(client, admin_headers) -> None:
    default = client.get("/api/contact-info").get_json()["contact_info"]
    assert default["buffer_minutes"] == 15

    updated = client.put(
        "/api/contact-info",
        json={"buffer_minutes": 30, "phone": "+34 600 000 000", "email": "Hola@Clinic.test"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    info = updated.get_json()["contact_info"]
    assert info["buffer_minutes"] == 30
    assert info["email"] == "hola@clinic.test"

    too_long = client.put("/api/contact-info", json={"buffer_minutes": 61}, headers=admin_headers)
    assert too_long.status_code == 400
    assert client.get("/api/contact-info").get_json()["contact_info"]["buffer_minutes"] == 30
