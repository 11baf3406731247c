"""Normalization of generated and historical workout data.

Historical rows and model output use several names for the same field.
FIELD_ALIASES is the single place those names are resolved; nothing past
this module ever sees an alias.
"""

from __future__ import annotations

import math
from typing import Any

from trainer.core.data_sources import current_location, data_source_map, equipment_names
from trainer.core.time import utc_now
from trainer.workouts.types import ALL_TYPE_FIELDS, TYPE_FIELDS, Exercise, InstanceMetadata, WorkoutInstance

# canonical field -> accepted keys, in priority order
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "exercise_name": ("exercise_name", "name"),
    "exercise_type": ("exercise_type", "type"),
    "load_each": ("load_each", "load_kg_each"),
    "hold_duration_sec": ("hold_duration_sec", "hold_sec"),
    "distance_km": ("distance_km", "distance"),
    "rest_seconds": ("rest_seconds", "rest_sec"),
    "exercise_description": ("exercise_description", "description"),
}

_VALID_TYPES = set(TYPE_FIELDS)


def _resolve(raw: dict[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES.get(field, (field,)):
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(round(number)) if number is not None else None


def _to_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    text = str(value).strip()
    return text or None


def _to_list(value: Any) -> list[Any] | None:
    if value is None:
        return None
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _int_list(value: Any) -> list[int] | None:
    items = _to_list(value)
    if items is None:
        return None
    numbers = [_to_int(item) for item in items]
    cleaned = [number for number in numbers if number is not None]
    return cleaned or None


def _float_list(value: Any) -> list[float] | None:
    items = _to_list(value)
    if items is None:
        return None
    cleaned = [number for number in (_to_float(item) for item in items) if number is not None]
    return cleaned or None


def _exercise_type(raw: dict[str, Any]) -> str:
    value = str(_resolve(raw, "exercise_type") or "").strip().lower()
    return value if value in _VALID_TYPES else "reps"


_COERCERS = {
    "sets": _to_int,
    "reps": _int_list,
    "load_each": _float_list,
    "hold_duration_sec": _int_list,
    "duration_min": _to_float,
    "distance_km": _to_float,
    "rounds": _to_int,
    "work_sec": _to_int,
    "rest_seconds": _to_int,
}


def normalize_exercise(raw: dict[str, Any] | Exercise) -> Exercise:
    """Map any historical or generated exercise shape onto Exercise.

    Unset scalars become None and unset lists become []. Fields that do not
    belong to the exercise's type are dropped to None.
    """
    if isinstance(raw, Exercise):
        raw = raw.model_dump()
    exercise_type = _exercise_type(raw)
    owned = TYPE_FIELDS[exercise_type]

    typed: dict[str, Any] = {}
    for field in ALL_TYPE_FIELDS:
        if field not in owned:
            typed[field] = None
            continue
        value = _resolve(raw, field)
        coerce = _COERCERS.get(field)
        typed[field] = coerce(value) if coerce else _to_str(value)

    equipment = _to_list(raw.get("equipment")) or []
    return Exercise(
        exercise_name=_to_str(_resolve(raw, "exercise_name")) or "Exercise",
        exercise_type=exercise_type,
        muscles_utilized=_to_list(raw.get("muscles_utilized")) or [],
        goals_addressed=_to_list(raw.get("goals_addressed")) or [],
        reasoning=_to_str(raw.get("reasoning")) or "",
        exercise_description=_to_str(_resolve(raw, "exercise_description")),
        equipment=[text for text in (_to_str(item) for item in equipment) if text],
        **typed,
    )


def normalize_workout_instance(
    raw: dict[str, Any] | None,
    metadata_overrides: dict[str, Any] | None = None,
) -> WorkoutInstance:
    """Wrap generation output or user input into a WorkoutInstance.

    Args:
        raw: Arbitrary instance-like dict
        metadata_overrides: intent, request_text and planned_session to record

    Returns:
        WorkoutInstance with defaults applied ("Today's Workout", no exercises)
    """
    raw = raw or {}
    overrides = metadata_overrides or {}
    planned_session = overrides.get("planned_session")
    exercises = raw.get("exercises")
    duration = raw.get("estimated_duration_min")
    if duration is None:
        duration = raw.get("duration_min")

    return WorkoutInstance(
        title=_to_str(raw.get("title")) or "Today's Workout",
        estimated_duration_min=_to_int(duration),
        focus=[text for text in (_to_str(item) for item in _to_list(raw.get("focus")) or []) if text],
        exercises=[normalize_exercise(item) for item in exercises if isinstance(item, (dict, Exercise))]
        if isinstance(exercises, list)
        else [],
        metadata=InstanceMetadata(
            intent=_to_str(overrides.get("intent")) or "planned",
            request_text=_to_str(overrides.get("request_text")),
            planned_session=planned_session if isinstance(planned_session, dict) else None,
            generated_at=_to_str(overrides.get("generated_at")) or utc_now().isoformat(),
        ),
    )


def _or_unknown(value: Any) -> Any:
    return value if value not in (None, "") else "unknown"


def build_user_context_summary(data_sources: list[dict[str, Any]] | None) -> str:
    """Flatten user data-source records into a compact block for prompting.

    Missing optional values render as "unknown" rather than being omitted.
    An empty input yields "".
    """
    data = data_source_map(data_sources)
    lines = []

    if "user_profile" in data:
        profile = data["user_profile"] or {}
        lines.append(
            f"Body stats: sex={_or_unknown(profile.get('sex'))}, "
            f"height_cm={_or_unknown(profile.get('height_cm'))}, "
            f"weight_kg={_or_unknown(profile.get('weight_kg'))}."
        )

    location = current_location(data.get("all_locations"))
    if location:
        equipment = equipment_names(location)
        lines.append(
            f"Current location: {_or_unknown(location.get('name'))}. "
            f"Equipment: {', '.join(equipment) if equipment else 'none listed'}."
        )

    history = data.get("workout_history") or []
    if history:
        recent = []
        for item in history[:3]:
            names = [_or_unknown(ex.get("name") or ex.get("exercise_name")) for ex in item.get("exercises") or []]
            recent.append(", ".join(names) if names else "workout")
        lines.append(f"Recent workouts: {'; '.join(recent)}.")

    if "user_settings" in data:
        user_settings = data["user_settings"] or {}
        lines.append(
            f"Units: weight={_or_unknown(user_settings.get('weight_unit'))}, "
            f"distance={_or_unknown(user_settings.get('distance_unit'))}."
        )

    return "\n".join(lines)
