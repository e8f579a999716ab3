"""Catalog helpers: slugs, the two-level service tree and display ordering."""
from __future__ import annotations

import re
import unicodedata
from collections import defaultdict
from typing import Iterable, Sequence

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase, drop diacritics and join alphanumeric runs with hyphens.

    ``"Drenaje Linfático Manual"`` becomes ``"drenaje-linfatico-manual"``.
    """
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub("-", stripped).strip("-")


class HierarchyError(ValueError):
    """A parent assignment would break the two-level service tree."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ServiceTree:
    """Arena of service ids with a parent -> children index.

    Built from ``(service_id, parent_id)`` pairs. Only two levels are allowed:
    a parent must itself be top-level, and a service that already has
    children cannot be placed under another service.
    """

    def __init__(self, nodes: Iterable[tuple[int, int | None]]) -> None:
        self._parent: dict[int, int | None] = {}
        self._children: dict[int, list[int]] = defaultdict(list)
        for service_id, parent_id in nodes:
            self._parent[service_id] = parent_id
        for service_id, parent_id in self._parent.items():
            if parent_id is not None:
                self._children[parent_id].append(service_id)

    @classmethod
    def from_services(cls, services: Iterable) -> "ServiceTree":
        return cls((service.service_id, service.parent_service_id) for service in services)

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._parent

    def parent_of(self, service_id: int) -> int | None:
        return self._parent.get(service_id)

    def children_of(self, service_id: int) -> list[int]:
        return list(self._children.get(service_id, ()))

    def has_children(self, service_id: int) -> bool:
        return bool(self._children.get(service_id))

    def roots(self) -> list[int]:
        return [service_id for service_id, parent in self._parent.items() if parent is None]

    def validate_parent(self, service_id: int | None, parent_id: int | None) -> None:
        """Raise ``HierarchyError`` unless ``parent_id`` is a legal parent.

        ``service_id`` is None for a service that does not exist yet.
        """
        if parent_id is None:
            return
        if parent_id not in self._parent:
            raise HierarchyError("parent_not_found", "Parent service not found")
        if service_id is not None and parent_id == service_id:
            raise HierarchyError("invalid_parent", "A service cannot be its own parent")
        if self._parent[parent_id] is not None:
            raise HierarchyError("invalid_parent", "A sub-service cannot have sub-services of its own")
        if service_id is not None and self.has_children(service_id):
            raise HierarchyError(
                "invalid_parent",
                "A service with sub-services cannot be nested under another service",
            )


def resolve_parent_id(is_sub_service: bool, parent_id: int | None) -> int | None:
    """Only a service flagged as sub-service keeps its parent selection."""
    return parent_id if is_sub_service else None


def apply_display_order(rows: Sequence, pk_attr: str, pairs: Sequence[tuple[int, int]]) -> list[int]:
    """Write ``display_order`` onto ``rows`` from ``(id, order)`` pairs.

    Returns the ids that were not found among ``rows``; nothing is written
    when any id is missing.
    """
    by_id = {getattr(row, pk_attr): row for row in rows}
    missing = [item_id for item_id, _ in pairs if item_id not in by_id]
    if missing:
        return missing
    for item_id, order in pairs:
        by_id[item_id].display_order = order
    return []
