"""Bearer token issuing and the dashboard access guard."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadData, URLSafeTimedSerializer

from .extensions import db
from .models import User

TOKEN_SALT = "auth-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def get_jwt_identity() -> int | None:
    """Extract and validate user_id from the Authorization header token.

    Returns the user_id if the token is valid, None if missing, tampered
    with or expired.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]

    try:
        payload = _serializer().loads(token, max_age=current_app.config.get("AUTH_TOKEN_MAX_AGE", 86400))
    except BadData:
        return None
    if not isinstance(payload, dict):
        return None
    return payload.get("user_id")


def admin_required(view):
    """Reject the request with 401 unless it carries a valid admin token."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user_id = get_jwt_identity()
        user = db.session.get(User, user_id) if user_id else None
        if user is None or user.role != "admin":
            return jsonify({"error": "unauthorized", "message": "authentication required"}), 401
        g.current_user = user
        return view(*args, **kwargs)

    return wrapper


def is_admin_request() -> bool:
    """True when the request carries a valid admin token, without rejecting it."""
    user_id = get_jwt_identity()
    if not user_id:
        return False
    user = db.session.get(User, user_id)
    return user is not None and user.role == "admin"
