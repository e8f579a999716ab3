"""Outbound notifications: transactional email and WhatsApp deep links.

Email goes through the Brevo HTTP API. When no API key is configured the
message is only logged. Delivery problems are logged and reported through the
return value; they never propagate into the request that triggered them.
"""
from __future__ import annotations

import logging
import re
from urllib.parse import quote

import requests
from flask import current_app
from markupsafe import escape

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"
REQUEST_TIMEOUT_SECONDS = 10

_TAG_RE = re.compile(r"<[^>]*>")
_NON_DIGIT_RE = re.compile(r"\D")


def whatsapp_link(phone: str | None, message: str = "") -> str | None:
    """Build a ``wa.me`` link for ``phone`` with a prefilled message."""
    if not phone:
        return None
    digits = _NON_DIGIT_RE.sub("", phone)
    if not digits:
        return None
    link = f"https://wa.me/{digits}"
    if message:
        link += f"?text={quote(message)}"
    return link


def send_email(to_email: str, to_name: str | None, subject: str, html_content: str) -> bool:
    config = current_app.config
    api_key = config.get("BREVO_API_KEY")
    if not api_key:
        logger.info("Email delivery disabled, would send %r to %s", subject, to_email)
        return False

    recipient = {"email": to_email}
    if to_name:
        recipient["name"] = to_name
    body = {
        "sender": {"email": config.get("EMAIL_SENDER"), "name": config.get("EMAIL_SENDER_NAME")},
        "to": [recipient],
        "subject": subject,
        "htmlContent": html_content,
        "textContent": _TAG_RE.sub("", html_content),
    }
    try:
        response = requests.post(
            BREVO_SEND_URL,
            json=body,
            headers={"api-key": api_key, "accept": "application/json"},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.RequestException:
        logger.exception("Failed to send email %r to %s", subject, to_email)
        return False

    logger.info("Email %r sent to %s", subject, to_email)
    return True


def _detail_rows(rows: list[tuple[str, object]]) -> str:
    return "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>"
        for label, value in rows
        if value not in (None, "")
    )


def booking_confirmation_email(booking) -> tuple[str, str]:
    service_name = booking.service.name if booking.service else "Appointment"
    subject = f"Booking received - {service_name}"
    html = (
        f"<h2>Hello {escape(booking.client_name)},</h2>"
        "<p>We have received your booking request. We will confirm it shortly.</p>"
        + _detail_rows([
            ("Service", service_name),
            ("Date", booking.date.strftime("%d/%m/%Y")),
            ("Time", f"{booking.start_time} - {booking.end_time}"),
        ])
    )
    return subject, html


def booking_admin_email(booking) -> tuple[str, str]:
    service_name = booking.service.name if booking.service else "-"
    subject = f"New booking: {booking.client_name} ({booking.date.isoformat()} {booking.start_time})"
    link = whatsapp_link(
        booking.client_phone,
        f"Hello {booking.client_name}, about your {service_name} booking on "
        f"{booking.date.strftime('%d/%m/%Y')} at {booking.start_time}",
    )
    html = "<h2>New booking request</h2>" + _detail_rows([
        ("Client", booking.client_name),
        ("Email", booking.client_email),
        ("Phone", booking.client_phone),
        ("Service", service_name),
        ("Date", booking.date.strftime("%d/%m/%Y")),
        ("Time", f"{booking.start_time} - {booking.end_time}"),
        ("Notes", booking.client_notes),
    ])
    if link:
        html += f'<p><a href="{escape(link)}">Reply on WhatsApp</a></p>'
    return subject, html


def notify_booking_created(booking) -> None:
    subject, html = booking_confirmation_email(booking)
    send_email(booking.client_email, booking.client_name, subject, html)

    admin_email = current_app.config.get("ADMIN_NOTIFY_EMAIL")
    if admin_email:
        subject, html = booking_admin_email(booking)
        send_email(admin_email, None, subject, html)


def notify_sale_created(sale) -> None:
    admin_email = current_app.config.get("ADMIN_NOTIFY_EMAIL")
    if not admin_email:
        return
    product_name = sale.product.name if sale.product else "-"
    link = whatsapp_link(
        sale.client_phone,
        f"Hello {sale.client_name}, thank you for your interest in {product_name}.",
    )
    html = "<h2>New purchase request</h2>" + _detail_rows([
        ("Client", sale.client_name),
        ("Email", sale.client_email),
        ("Phone", sale.client_phone),
        ("Product", product_name),
        ("Notes", sale.client_notes),
    ])
    if link:
        html += f'<p><a href="{escape(link)}">Reply on WhatsApp</a></p>'
    send_email(admin_email, None, f"New purchase request: {product_name}", html)


def notify_contact_message(name: str, email: str, phone: str, message: str) -> None:
    admin_email = current_app.config.get("ADMIN_NOTIFY_EMAIL")
    if admin_email:
        html = "<h2>New contact message</h2>" + _detail_rows([
            ("Name", name),
            ("Email", email),
            ("Phone", phone),
            ("Message", message),
        ])
        send_email(admin_email, None, f"New message from {name}", html)

    reply = (
        f"<h2>Hello {escape(name)},</h2>"
        "<p>Thank you for getting in touch. We will answer as soon as possible.</p>"
    )
    send_email(email, name, "We received your message", reply)
