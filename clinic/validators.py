"""Helpers for reading and checking JSON payload fields."""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable
from urllib.parse import urlparse

from .availability import format_time, is_valid_time, parse_time

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValidationError(ValueError):
    """A payload field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {
            "error": "invalid_payload",
            "message": self.message,
            "details": {self.field: self.message},
        }


def require_text(payload: dict, field: str, min_length: int = 1, max_length: int | None = None) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or len(value.strip()) < min_length:
        if min_length > 1:
            raise ValidationError(field, f"{field} must have at least {min_length} characters")
        raise ValidationError(field, f"{field} is required")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(field, f"{field} must have at most {max_length} characters")
    return value


def optional_text(payload: dict, field: str) -> str | None:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    return value.strip() or None


def parse_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false", "1", "0"}:
        return value.lower() in {"true", "1"}
    raise ValidationError(field, f"{field} must be a boolean")


def parse_int(value: object, field: str, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be an integer") from None
    if isinstance(value, float) and value != number:
        raise ValidationError(field, f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(field, f"{field} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(field, f"{field} must be <= {maximum}")
    return number


def parse_optional_int(value: object, field: str, minimum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    return parse_int(value, field, minimum=minimum)


def parse_price(value: object, field: str, positive: bool = False) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"{field} must be a number") from None
    if not amount.is_finite():
        raise ValidationError(field, f"{field} must be a number")
    if positive and amount <= 0:
        raise ValidationError(field, f"{field} must be greater than 0")
    if amount < 0:
        raise ValidationError(field, f"{field} cannot be negative")
    return amount.quantize(Decimal("0.01"))


def parse_optional_price(value: object, field: str, positive: bool = False) -> Decimal | None:
    if value is None or value == "":
        return None
    return parse_price(value, field, positive=positive)


def parse_date(value: object, field: str = "date") -> date:
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise ValidationError(field, f"{field} must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(field, f"{field} must be in YYYY-MM-DD format") from None


def parse_datetime(value: object, field: str) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} must be an ISO datetime")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(field, f"{field} must be an ISO datetime") from None
    # Stored as naive wall-clock time
    return parsed.replace(tzinfo=None)


def parse_time_field(value: object, field: str) -> str:
    if not is_valid_time(value):
        raise ValidationError(field, f"{field} must be a HH:MM 24-hour time")
    return format_time(parse_time(value, field))


def parse_optional_time(value: object, field: str) -> str | None:
    if value is None or value == "":
        return None
    return parse_time_field(value, field)


def parse_email(value: object, field: str = "email") -> str:
    if not isinstance(value, str) or not _EMAIL_RE.match(value.strip()):
        raise ValidationError(field, f"{field} must be a valid email address")
    return value.strip().lower()


def parse_url(value: object, field: str) -> str | None:
    """Absolute http(s) URL, or None when empty."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a URL")
    parsed = urlparse(value.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError(field, f"{field} must be an http(s) URL")
    return value.strip()


def parse_choice(value: object, field: str, choices: Iterable[str]) -> str:
    allowed = tuple(choices)
    if value not in allowed:
        raise ValidationError(field, f"{field} must be one of: {', '.join(allowed)}")
    return value


def parse_string_list(value: object, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(field, f"{field} must be a list of strings")
    return [item.strip() for item in value if item.strip()]


def parse_images(value: object, field: str = "images", min_items: int = 0) -> list[dict[str, object]]:
    """Normalize an ordered image list of ``{url, alt, position}`` records."""
    if value is None:
        value = []
    if not isinstance(value, list):
        raise ValidationError(field, f"{field} must be a list")
    images: list[dict[str, object]] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict) or not isinstance(item.get("url"), str) or not item["url"].strip():
            raise ValidationError(field, f"{field}[{index}] must have a url")
        image = {
            "url": item["url"].strip(),
            "alt": (item.get("alt") or "").strip() if isinstance(item.get("alt"), str) else "",
            "position": parse_int(item.get("position", index), f"{field}[{index}].position", minimum=0),
        }
        if isinstance(item.get("publicId"), str):
            image["publicId"] = item["publicId"]
        images.append(image)
    if len(images) < min_items:
        raise ValidationError(field, f"{field} requires at least {min_items} image(s)")
    return sorted(images, key=lambda image: image["position"])


def parse_order_items(payload: dict) -> list[tuple[int, int]]:
    """Read ``{"items": [{"id": .., "order": ..}]}`` as (id, order) pairs."""
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items", "items must be a non-empty list")
    pairs: list[tuple[int, int]] = []
    seen: set[int] = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("items", f"items[{index}] must be an object")
        item_id = parse_int(item.get("id"), f"items[{index}].id", minimum=1)
        order = parse_int(item.get("order", index), f"items[{index}].order", minimum=0)
        if item_id in seen:
            raise ValidationError("items", f"id {item_id} appears more than once")
        seen.add(item_id)
        pairs.append((item_id, order))
    return pairs
