#!/usr/bin/env python3
"""Create the clinic tables and the rows the API expects to exist.

Seeds the contact-info singleton that bookings lock on, one closed
working-hours row per weekday and empty legal pages. Existing rows are
left untouched, so the script is safe to run again after a deploy.
"""
from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from clinic import create_app
from clinic.extensions import db
from clinic.models import ContactInfo, ContentSection, WorkingHour

LEGAL_SECTIONS = {
    "privacidad": "Política de privacidad",
    "aviso-legal": "Aviso legal",
    "cookies": "Política de cookies",
}

# Placeholder hours; every day starts closed until the owner opens it
DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "20:00"


def seed_defaults(buffer_minutes: int) -> dict[str, int]:
    """Add the missing default rows inside the current app context."""
    created = {"contact_info": 0, "working_hours": 0, "content_sections": 0}

    if ContactInfo.query.first() is None:
        db.session.add(ContactInfo(buffer_minutes=buffer_minutes))
        created["contact_info"] = 1

    existing_days = {day for (day,) in db.session.query(WorkingHour.day_of_week)}
    for day in range(7):
        if day not in existing_days:
            db.session.add(WorkingHour(
                day_of_week=day,
                is_open=False,
                open_time=DEFAULT_OPEN_TIME,
                close_time=DEFAULT_CLOSE_TIME,
            ))
            created["working_hours"] += 1

    existing_sections = {key for (key,) in db.session.query(ContentSection.section)}
    for key, title in LEGAL_SECTIONS.items():
        if key not in existing_sections:
            db.session.add(ContentSection(section=key, title=title, content=""))
            created["content_sections"] += 1

    db.session.commit()
    return created


def init_database(app=None) -> dict[str, int]:
    app = app or create_app()
    with app.app_context():
        db.create_all()
        tables = sorted(db.metadata.tables)
        print(f"Created {len(tables)} tables: {', '.join(tables)}")

        created = seed_defaults(app.config["DEFAULT_BUFFER_MINUTES"])
        for name, count in created.items():
            if count:
                print(f"Seeded {count} {name} row(s)")
    return created


if __name__ == "__main__":
    init_database()
