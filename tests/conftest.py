"""pytest configuration: path management and shared app fixtures."""
from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the clinic package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from clinic import create_app  # noqa: E402
from clinic.auth import build_token  # noqa: E402
from clinic.availability import day_of_week  # noqa: E402
from clinic.extensions import db  # noqa: E402
from clinic.models import AuthAccount, User  # noqa: E402


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret",
        "BREVO_API_KEY": "",
        "ADMIN_NOTIFY_EMAIL": "owner@clinic.test",
        "DEFAULT_BUFFER_MINUTES": 15,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app) -> dict[str, object]:
    password = "correct-horse-battery"
    with app.app_context():
        user = User(name="Aline", email="admin@clinic.test", role="admin")
        db.session.add(user)
        db.session.flush()
        db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
        return {"id": user.user_id, "email": user.email, "password": password}


@pytest.fixture
def admin_headers(app, admin_user) -> dict[str, str]:
    with app.app_context():
        token = build_token({"user_id": admin_user["id"], "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def next_weekday():
    """Return a callable giving the next future date on a weekday (0=Sunday)."""

    def _next(weekday: int) -> date:
        today = date.today()
        days_ahead = (weekday - day_of_week(today)) % 7 or 7
        return today + timedelta(days=days_ahead)

    return _next
