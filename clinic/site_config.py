"""Editable sections of the public site.

Each section is a flat record of named fields. Stored values are merged over
the defaults below, so a section that was never saved still reads complete.
"""
from __future__ import annotations

import re

from .validators import ValidationError, parse_bool, parse_int

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

HOME_SERVICES_MIN = 3
HOME_SERVICES_MAX = 6

SECTION_DEFAULTS: dict[str, dict[str, object]] = {
    "hero": {
        "greeting": "Bienvenida",
        "main_title": "Centro de bienestar",
        "description": (
            "Regenera y depura tu sistema linfático. Activa tu metabolismo. "
            "Esculpe tu belleza facial y corporal."
        ),
        "primary_button_text": "Reservar cita",
        "primary_button_link": "/reservar",
        "secondary_button_text": "Ver servicios",
        "secondary_button_link": "/servicios",
        "background_image": None,
    },
    "colors": {
        "primary_color": "#2C5F2D",
        "primary_dark": "#1e3d1f",
        "secondary_color": "#A27B5C",
        "secondary_light": "#b89171",
        "cream_color": "#F5F1E8",
        "text_color": "#1F2937",
    },
    "about": {
        "hero_title": "Sobre mí",
        "hero_subtitle": None,
        "hero_image": None,
        "biography": None,
        "secondary_image": None,
        "video_url": None,
        "years_experience": None,
        "certifications": [],
    },
    "home-about": {
        "label": "Sobre mí",
        "name": None,
        "subtitle": None,
        "description": None,
        "quote": None,
        "button_text": "Conóceme",
        "button_link": "/sobre-mi",
        "image": None,
        "image_alt": None,
        "active": True,
    },
    "social-media": {
        "instagram": None,
        "facebook": None,
        "tiktok": None,
        "youtube": None,
        "linkedin": None,
        "twitter": None,
    },
    "seo-analytics": {
        "google_search_console": None,
        "google_analytics_id": None,
        "meta_pixel_id": None,
        "google_tag_manager_id": None,
    },
    "home-services": {
        "title": "Nuestros servicios",
        "subtitle": None,
        "selected_services": [],
        "active": True,
    },
    "events-page": {
        "hero_title": "Eventos",
        "hero_subtitle": None,
        "hero_image": None,
    },
}

_COLOR_FIELDS = frozenset(SECTION_DEFAULTS["colors"])
_BOOL_FIELDS = frozenset({"active"})
_INT_FIELDS = frozenset({"years_experience"})
_LIST_FIELDS = frozenset({"certifications"})

CSS_VARIABLES = (
    ("--primary-color", "primary_color"),
    ("--primary-dark", "primary_dark"),
    ("--secondary-color", "secondary_color"),
    ("--secondary-light", "secondary_light"),
    ("--cream-color", "cream_color"),
    ("--text-color", "text_color"),
)


def is_known_section(key: str) -> bool:
    return key in SECTION_DEFAULTS


def merge_section(key: str, stored: dict | None) -> dict[str, object]:
    """Stored values over defaults; fields no longer defined are dropped."""
    merged = {field: _copy(value) for field, value in SECTION_DEFAULTS[key].items()}
    for field, value in (stored or {}).items():
        if field in merged:
            merged[field] = value
    return merged


def _copy(value: object) -> object:
    return list(value) if isinstance(value, list) else value


def _clean_value(field: str, value: object) -> object:
    if field in _COLOR_FIELDS:
        if not isinstance(value, str) or not _HEX_COLOR_RE.match(value.strip()):
            raise ValidationError(field, f"{field} must be a hex color like #1A2B3C")
        return value.strip()
    if field in _BOOL_FIELDS:
        return parse_bool(value, field)
    if field in _INT_FIELDS:
        return None if value in (None, "") else parse_int(value, field, minimum=0)
    if field in _LIST_FIELDS:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ValidationError(field, f"{field} must be a list of strings")
        return [item.strip() for item in value if item.strip()]
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    return value.strip() or None


def clean_section_update(key: str, payload: dict) -> dict[str, object]:
    """Validate the known fields of ``payload``; unknown fields are ignored."""
    defaults = SECTION_DEFAULTS[key]
    cleaned: dict[str, object] = {}
    for field, value in payload.items():
        if field not in defaults:
            continue
        if field == "selected_services":
            cleaned[field] = _clean_selected_services(value)
        else:
            cleaned[field] = _clean_value(field, value)
    return cleaned


def _clean_selected_services(value: object) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError("selected_services", "selected_services must be a list of service ids")
    ids = [parse_int(item, "selected_services", minimum=1) for item in value]
    if len(set(ids)) != len(ids):
        raise ValidationError("selected_services", "selected_services cannot repeat a service")
    if len(ids) < HOME_SERVICES_MIN:
        raise ValidationError("selected_services", f"select at least {HOME_SERVICES_MIN} services")
    if len(ids) > HOME_SERVICES_MAX:
        raise ValidationError("selected_services", f"select at most {HOME_SERVICES_MAX} services")
    return ids


def render_colors_css(colors: dict[str, object]) -> str:
    lines = [":root {"]
    for variable, field in CSS_VARIABLES:
        lines.append(f"  {variable}: {colors.get(field) or SECTION_DEFAULTS['colors'][field]};")
    lines.append("}")
    return "\n".join(lines) + "\n"
