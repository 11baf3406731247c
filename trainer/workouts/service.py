"""Workout session lifecycle: start, instance versions, event log, completion."""

from __future__ import annotations

from typing import Any

from loguru import logger

from trainer.calendar.events import complete_event
from trainer.core.errors import InvalidActionError, NotFoundError
from trainer.core.time import as_utc
from trainer.db.models import WorkoutEvent, WorkoutSession
from trainer.db.session import get_session
from trainer.services.llm.client import TextGenerationClient, get_llm_client
from trainer.tracking.service import finalize_session, initialize_tracking
from trainer.weights.service import update_after_session
from trainer.workouts.generation import generate_session_summary, generate_workout_instance
from trainer.workouts.repository import (
    create_session_row,
    get_latest_instance_row,
    get_session_row,
    insert_instance,
    list_event_rows,
)
from trainer.workouts.repository import log_event as log_event_row
from trainer.workouts.types import EVENT_TYPES, WorkoutInstance


def session_to_dict(row: WorkoutSession) -> dict[str, Any]:
    started_at = as_utc(row.started_at)
    completed_at = as_utc(row.completed_at)
    return {
        "id": row.id,
        "user_id": row.user_id,
        "status": row.status,
        "coach_mode": row.coach_mode,
        "calendar_event_id": row.calendar_event_id,
        "metadata": row.metadata_json or {},
        "summary": row.summary_json,
        "session_rpe": row.session_rpe,
        "started_at": started_at.isoformat() if started_at else None,
        "completed_at": completed_at.isoformat() if completed_at else None,
        "created_at": as_utc(row.created_at).isoformat() if row.created_at else None,
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }


def event_to_dict(row: WorkoutEvent) -> dict[str, Any]:
    return {
        "id": row.id,
        "session_id": row.session_id,
        "sequence": row.sequence,
        "event_type": row.event_type,
        "data": row.data or {},
        "created_at": as_utc(row.created_at).isoformat() if row.created_at else None,
    }


def create_session(
    user_id: str,
    metadata: dict[str, Any] | None = None,
    coach_mode: str = "quiet",
    calendar_event_id: str | None = None,
) -> dict[str, Any]:
    with get_session() as session:
        row = create_session_row(
            session,
            user_id=user_id,
            metadata=metadata,
            coach_mode=coach_mode,
            calendar_event_id=calendar_event_id,
        )
        return session_to_dict(row)


def get_session_record(session_id: str, user_id: str) -> dict[str, Any]:
    """Return the session, raising NotFoundError when it is missing or not the user's."""
    with get_session() as session:
        row = get_session_row(session, session_id=session_id)
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"Session not found: {session_id}")
        return session_to_dict(row)


def log_event(session_id: str, event_type: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    if event_type not in EVENT_TYPES:
        raise InvalidActionError(f"Unknown event type: {event_type}")
    with get_session() as session:
        return event_to_dict(log_event_row(session, session_id=session_id, event_type=event_type, data=data))


def list_events(session_id: str, after_sequence: int | None = None) -> list[dict[str, Any]]:
    with get_session() as session:
        return [event_to_dict(row) for row in list_event_rows(session, session_id=session_id, after_sequence=after_sequence)]


def create_instance(session_id: str, instance: WorkoutInstance) -> int:
    """Store a full instance snapshot and return its version."""
    with get_session() as session:
        record = insert_instance(session, session_id=session_id, instance_json=instance.model_dump())
        return record.version


def get_latest_instance(session_id: str) -> tuple[WorkoutInstance, int] | None:
    with get_session() as session:
        record = get_latest_instance_row(session, session_id=session_id)
        if record is None:
            return None
        return WorkoutInstance.model_validate(record.instance_json), record.version


async def start_session(
    user_id: str,
    constraints: dict[str, Any] | None = None,
    data_sources: list[dict[str, Any]] | None = None,
    coach_mode: str = "quiet",
    calendar_event_id: str | None = None,
    client: TextGenerationClient | None = None,
) -> dict[str, Any]:
    """Generate today's workout and open a session around it.

    Generation runs before anything is written, so a failed generation
    leaves no half-created session behind.
    """
    constraints = constraints or {}
    instance = await generate_workout_instance(user_id, constraints, data_sources, client=client)

    metadata = {}
    for key in ("intent", "request_text", "time_available_min", "planned_session"):
        if constraints.get(key) is not None:
            metadata[key] = constraints[key]
    energy = (constraints.get("readiness") or {}).get("energy")
    if isinstance(energy, (int, float)) and not isinstance(energy, bool):
        metadata["energy_level"] = energy

    with get_session() as session:
        row = create_session_row(
            session,
            user_id=user_id,
            metadata=metadata,
            coach_mode=coach_mode,
            calendar_event_id=calendar_event_id,
        )
        log_event_row(session, session_id=row.id, event_type="session_started", data={"constraints": constraints})
        record = insert_instance(session, session_id=row.id, instance_json=instance.model_dump())
        log_event_row(
            session,
            session_id=row.id,
            event_type="instance_generated",
            data={"instance_version": record.version},
        )
        tracked = initialize_tracking(session, session_id=row.id, instance=instance)
        logger.info(
            f"[workout] Started session {row.id} for user {user_id} "
            f"({len(tracked)} exercises, instance v{record.version})"
        )
        return {
            "session": session_to_dict(row),
            "instance": instance.model_dump(),
            "instance_version": record.version,
            "exercise_ids": [exercise.id for exercise in tracked],
        }


async def complete_session(
    user_id: str,
    session_id: str,
    reflection: dict[str, Any] | None = None,
    mode: str = "complete",
    reason: str | None = None,
    client: TextGenerationClient | None = None,
) -> dict[str, Any]:
    """Finalize a session, then summarize it and fold it into the weights profile.

    A stopped session is finalized without the model summary or profile update.
    """
    summary = finalize_session(user_id, session_id, reflection=reflection, mode=mode, reason=reason)
    session_record = get_session_record(session_id, user_id)
    log_event(session_id, "session_completed", {"status": session_record["status"], "summary": summary})

    if session_record["calendar_event_id"] and mode == "complete":
        complete_event(user_id, session_record["calendar_event_id"])

    if mode != "complete":
        return summary

    client = client or get_llm_client()
    latest = get_latest_instance(session_id)
    instance = latest[0].model_dump() if latest else None
    events = list_events(session_id)
    workout_log = {
        "sets_completed": summary["completion"]["total_sets"],
        "events": [event for event in events if event["event_type"] in ("log_set", "log_interval", "safety_flag")],
    }
    model_summary = await generate_session_summary(instance, workout_log, reflection, client=client)
    await update_after_session(user_id, session_id, instance, model_summary, client=client)
    return {**summary, "coach_summary": model_summary}
