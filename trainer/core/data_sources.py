"""Helpers for heterogeneous user data-source records.

Callers hand over results as a list of {"source": name, "raw": payload}
dicts (user_profile, user_settings, all_locations, workout_history).
"""

from __future__ import annotations

from typing import Any


def data_source_map(data_sources: list[dict[str, Any]] | None) -> dict[str, Any]:
    """Key data-source results by source name; later duplicates win."""
    mapped: dict[str, Any] = {}
    for result in data_sources or []:
        source = result.get("source")
        if source:
            mapped[source] = result.get("raw")
    return mapped


def current_location(locations: list[dict[str, Any]] | None) -> dict[str, Any] | None:
    """Return the location flagged current_location, else the first one."""
    if not locations:
        return None
    for location in locations:
        if location.get("current_location"):
            return location
    return locations[0]


def equipment_names(location: dict[str, Any] | None) -> list[str]:
    """Flatten a location's equipment list, which may hold strings or {"name": ...} objects."""
    if not location:
        return []
    names = []
    for item in location.get("equipment") or []:
        name = item if isinstance(item, str) else (item or {}).get("name")
        if name:
            names.append(name)
    return names
