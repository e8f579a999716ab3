"""Runtime configuration loaded from the environment."""
from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///clinic.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Comma separated list, "*" allows every origin
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    AUTH_TOKEN_MAX_AGE = _env_int("AUTH_TOKEN_MAX_AGE", 86400)

    # Used until the contact info row stores its own value
    DEFAULT_BUFFER_MINUTES = _env_int("DEFAULT_BUFFER_MINUTES", 15)

    BREVO_API_KEY = os.environ.get("BREVO_API_KEY", "")
    EMAIL_SENDER = os.environ.get("EMAIL_SENDER", "noreply@example.com")
    EMAIL_SENDER_NAME = os.environ.get("EMAIL_SENDER_NAME", "Clinic")
    ADMIN_NOTIFY_EMAIL = os.environ.get("ADMIN_NOTIFY_EMAIL", "")
    SITE_URL = os.environ.get("SITE_URL", "http://localhost:3000")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
