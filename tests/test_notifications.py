"""Tests for email delivery and WhatsApp links."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import requests

from clinic import notifications


def test_whatsapp_link_keeps_only_digits() -> None:
    assert notifications.whatsapp_link("+34 (611) 22-33-44") == "https://wa.me/34611223344"
    assert notifications.whatsapp_link("611 223 344", "Hola María") == "https://wa.me/611223344?text=Hola%20Mar%C3%ADa"
    assert notifications.whatsapp_link(None) is None
    assert notifications.whatsapp_link("sin número") is None


def test_send_email_without_api_key_only_logs(app) -> None:
    with app.app_context(), patch("clinic.notifications.requests.post") as post:
        assert notifications.send_email("a@example.com", "A", "Hola", "<p>Hola</p>") is False
    post.assert_not_called()


def test_send_email_posts_to_brevo(app) -> None:
    app.config.update(BREVO_API_KEY="key-123", EMAIL_SENDER="citas@clinic.test", EMAIL_SENDER_NAME="Clínica")
    response = MagicMock()

    with app.app_context(), patch("clinic.notifications.requests.post", return_value=response) as post:
        sent = notifications.send_email("a@example.com", "Ana", "Tu cita", "<p>Confirmada</p>")

    assert sent is True
    response.raise_for_status.assert_called_once()
    args, kwargs = post.call_args
    assert args[0] == notifications.BREVO_SEND_URL
    assert kwargs["headers"]["api-key"] == "key-123"
    assert kwargs["timeout"] == notifications.REQUEST_TIMEOUT_SECONDS
    body = kwargs["json"]
    assert body["to"] == [{"email": "a@example.com", "name": "Ana"}]
    assert body["sender"] == {"email": "citas@clinic.test", "name": "Clínica"}
    assert body["textContent"] == "Confirmada"


def test_send_email_reports_transport_errors(app) -> None:
    app.config.update(BREVO_API_KEY="key-123")

    with app.app_context(), patch(
        "clinic.notifications.requests.post", side_effect=requests.ConnectionError("down")
    ):
        assert notifications.send_email("a@example.com", None, "Hola", "<p>Hola</p>") is False


def test_admin_email_skipped_without_address(app) -> None:
    app.config.update(ADMIN_NOTIFY_EMAIL=None)

    with app.app_context(), patch("clinic.notifications.send_email") as send_email:
        notifications.notify_contact_message("Rosa", "rosa@example.com", "600", "Hola")

    assert [call.args[0] for call in send_email.call_args_list] == ["rosa@example.com"]
