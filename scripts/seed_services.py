#!/usr/bin/env python3
"""Seed the database with a starter catalog and a weekly schedule."""
import sys
from decimal import Decimal
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from clinic import create_app
from clinic.catalog import slugify
from clinic.extensions import db
from clinic.models import Category, Service, WorkingHour

CATEGORIES = [
    {"name": "Corporal", "color": "#2C5F2D", "icon": "body"},
    {"name": "Facial", "color": "#A27B5C", "icon": "face"},
]

SERVICES = [
    {
        "name": "Drenaje Linfático Manual",
        "category": "Corporal",
        "duration_minutes": 60,
        "price": Decimal("55.00"),
        "short_description": "Manual technique that activates lymph circulation",
        "children": [
            {"name": "Drenaje Post-operatorio", "duration_minutes": 75, "price": Decimal("65.00")},
            {"name": "Drenaje en Embarazo", "duration_minutes": 60, "price": Decimal("55.00")},
        ],
    },
    {
        "name": "Masaje Reductor",
        "category": "Corporal",
        "duration_minutes": 60,
        "price": Decimal("50.00"),
        "short_description": "Shaping massage for localized fat",
        "children": [],
    },
    {
        "name": "Lifting Facial",
        "category": "Facial",
        "duration_minutes": 45,
        "price": None,
        "short_description": "Natural facial sculpting, price on consultation",
        "children": [],
    },
]

# 0=Sunday; Monday to Friday with a lunch break, Saturday mornings only
WEEK = [
    (0, False, "09:00", "14:00", None, None),
    (1, True, "09:00", "20:00", "14:00", "16:00"),
    (2, True, "09:00", "20:00", "14:00", "16:00"),
    (3, True, "09:00", "20:00", "14:00", "16:00"),
    (4, True, "09:00", "20:00", "14:00", "16:00"),
    (5, True, "09:00", "20:00", "14:00", "16:00"),
    (6, True, "09:00", "14:00", None, None),
]


def seed_services():
    """Add categories, services with sub-services, and working hours."""
    app = create_app()

    with app.app_context():
        db.create_all()

        categories = {}
        for order, data in enumerate(CATEGORIES):
            slug = slugify(data["name"])
            category = Category.query.filter_by(slug=slug).first()
            if category is None:
                category = Category(slug=slug, display_order=order, **data)
                db.session.add(category)
                print(f"📁 Category: {data['name']}")
            categories[data["name"]] = category
        db.session.flush()

        created = 0
        for order, data in enumerate(SERVICES):
            slug = slugify(data["name"])
            if Service.query.filter_by(slug=slug).first():
                print(f"⏭️  Skipping existing service: {data['name']}")
                continue
            parent = Service(
                name=data["name"],
                slug=slug,
                short_description=data["short_description"],
                duration_minutes=data["duration_minutes"],
                price=data["price"],
                category=categories[data["category"]],
                display_order=order,
            )
            db.session.add(parent)
            created += 1
            for child_order, child in enumerate(data["children"]):
                db.session.add(Service(
                    name=child["name"],
                    slug=slugify(child["name"]),
                    duration_minutes=child["duration_minutes"],
                    price=child["price"],
                    category=categories[data["category"]],
                    display_order=child_order,
                    parent=parent,
                ))
                created += 1

        for day, is_open, opens, closes, break_start, break_end in WEEK:
            if WorkingHour.query.filter_by(day_of_week=day).first():
                continue
            db.session.add(WorkingHour(
                day_of_week=day,
                is_open=is_open,
                open_time=opens,
                close_time=closes,
                break_start=break_start,
                break_end=break_end,
            ))

        db.session.commit()
        print(f"✅ Seeded {created} services")


if __name__ == "__main__":
    seed_services()
