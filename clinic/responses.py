"""Shared JSON response helpers for the route modules."""
from __future__ import annotations

from flask import current_app, jsonify, request

from .extensions import db
from .validators import ValidationError, parse_bool


def error_response(code: str, message: str, status: int):
    return jsonify({"error": code, "message": message}), status


def invalid_response(exc: ValidationError):
    return jsonify(exc.to_dict()), 400


def database_error(message: str, exc: Exception):
    """Roll back, log the failure and answer with a generic 500."""
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error", "message": "the request could not be completed"}), 500


def bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return parse_bool(raw, name)


def notify_safely(sender, *args) -> None:
    """Run a notification; failures are logged and never reach the caller."""
    try:
        sender(*args)
    except Exception as exc:
        current_app.logger.exception("Notification %s failed", sender.__name__, exc_info=exc)
