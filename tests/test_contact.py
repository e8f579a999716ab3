"""Tests for the public contact form."""
from __future__ import annotations

from unittest.mock import patch

from clinic.models import NewsletterSubscriber


def _message(**overrides) -> dict[str, object]:
    body = {
        "name": "Rosa",
        "email": "rosa@example.com",
        "phone": "600222333",
        "message": "¿Tenéis cita el sábado?",
    }
    body.update(overrides)
    return body


def test_contact_notifies_clinic_and_visitor(client) -> None:
    with patch("clinic.notifications.send_email") as send_email:
        response = client.post("/api/contact", json=_message())

    assert response.status_code == 200
    recipients = [call.args[0] for call in send_email.call_args_list]
    assert recipients == ["owner@clinic.test", "rosa@example.com"]


def test_contact_newsletter_opt_in(app, client) -> None:
    response = client.post("/api/contact", json=_message(accepts_newsletter=True))

    assert response.status_code == 200
    with app.app_context():
        subscriber = NewsletterSubscriber.query.filter_by(email="rosa@example.com").one()
        assert subscriber.source == "contact_form"


def test_contact_requires_all_fields(client) -> None:
    response = client.post("/api/contact", json=_message(phone=""))

    assert response.status_code == 400
    assert "phone" in response.get_json()["details"]
