"""Deterministic per-session statistics. No model calls, no store access."""

from __future__ import annotations

import re
from typing import Any

from trainer.core.time import parse_datetime
from trainer.workouts.prescription import round_half_up

PAIN_NOTE_PATTERN = re.compile(r"\b(pain|painful|hurt|hurts|injur\w*|tweak\w*)\b", re.IGNORECASE)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _event_data(event: Any) -> dict[str, Any]:
    data = _get(event, "data") or {}
    payload = data.get("payload") if isinstance(data, dict) else None
    return payload if isinstance(payload, dict) else data


def _event_index(event: Any) -> int | None:
    data = _get(event, "data") or {}
    payload = data.get("payload") if isinstance(data, dict) else None
    if isinstance(payload, dict) and payload.get("index") is not None:
        return payload["index"]
    return data.get("index") if isinstance(data, dict) else None


def _metadata(session: Any) -> dict[str, Any]:
    # ORM rows carry it as metadata_json; "metadata" is the declarative MetaData there
    if isinstance(session, dict):
        value = session.get("metadata") or session.get("metadata_json")
    else:
        value = getattr(session, "metadata_json", None)
    return value if isinstance(value, dict) else {}


def empty_session_stats() -> dict[str, Any]:
    return {
        "total_exercises": 0,
        "exercises_completed": 0,
        "exercises_skipped": 0,
        "total_sets": 0,
        "total_reps": 0,
        "total_volume": 0,
        "cardio_time_min": 0,
        "workout_duration_min": None,
        "pain_flags": 0,
        "energy_rating": None,
    }


def _workout_duration(session: Any) -> int | None:
    start = parse_datetime(_get(session, "created_at"))
    end = parse_datetime(_get(session, "updated_at"))
    if start is None or end is None or end <= start:
        return None
    return round_half_up((end - start).total_seconds() / 60)


def _count_pain_notes(session: Any, events: list[Any]) -> int:
    notes = [_get(session, "notes")]
    notes.extend(_event_data(event).get("text") for event in events if _get(event, "event_type") == "coach_message")
    return sum(1 for note in notes if isinstance(note, str) and PAIN_NOTE_PATTERN.search(note))


def calculate_session_stats(
    instance: dict[str, Any] | None,
    events: list[Any] | None,
    session: Any = None,
    workout: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Aggregate one session's instance and event log into stats.

    Args:
        instance: Latest instance snapshot (dict)
        events: Session events (dicts or rows)
        session: Session record (dict or row) for timestamps, notes and metadata
        workout: Optional tracked exercises; used for sets, reps and volume only
            when the event log has no set events

    Returns:
        Stats dict. A missing instance or an empty event log yields all zeros.
    """
    if not instance or not events:
        return empty_session_stats()
    exercises = instance.get("exercises") or []

    set_events = [event for event in events if _get(event, "event_type") == "log_set"]
    interval_events = [event for event in events if _get(event, "event_type") == "log_interval"]
    safety_events = [event for event in events if _get(event, "event_type") == "safety_flag"]

    total_sets = 0
    total_reps = 0
    total_volume = 0.0
    for event in set_events:
        data = _event_data(event)
        reps = _number(data.get("reps_completed") or data.get("reps"))
        load = _number(data.get("load") or data.get("weight"))
        total_sets += 1
        total_reps += reps
        total_volume += reps * load

    if not set_events and workout:
        for tracked in workout:
            total_reps += _number(tracked.get("total_reps"))
            total_volume += _number(tracked.get("volume"))
            payload = tracked.get("payload_json") or {}
            performance_sets = (payload.get("performance") or {}).get("sets") or []
            total_sets += sum(
                1
                for performance in performance_sets
                if any(
                    performance.get(key) is not None
                    for key in ("actual_reps", "actual_load", "actual_duration_sec", "actual_distance_km")
                )
            )

    cardio_min = 0.0
    for event in interval_events:
        data = _event_data(event)
        cardio_min += _number(data.get("duration_sec") or data.get("work_sec")) / 60
    for exercise in exercises:
        if exercise.get("exercise_type") == "duration" and exercise.get("duration_min"):
            cardio_min += _number(exercise["duration_min"])

    logged = {index for index in (_event_index(event) for event in set_events + interval_events) if index is not None}
    completed = len(logged)
    if not logged and workout:
        completed = sum(1 for tracked in workout if tracked.get("status") == "completed")

    return {
        "total_exercises": len(exercises),
        "exercises_completed": completed,
        "exercises_skipped": max(0, len(exercises) - completed),
        "total_sets": total_sets,
        "total_reps": total_reps,
        "total_volume": total_volume,
        "cardio_time_min": round(cardio_min, 1),
        "workout_duration_min": _workout_duration(session),
        "pain_flags": len(safety_events) + _count_pain_notes(session, events),
        "energy_rating": _metadata(session).get("energy_level"),
    }
