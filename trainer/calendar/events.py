"""Calendar event operations.

Events are returned as plain dicts. Storage keeps planned sessions in their
own table (one-to-many); normalize_event collapses that join to a single
planned_session before anything leaves this module.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from trainer.core.errors import NotFoundError
from trainer.core.time import as_utc, utc_now
from trainer.db.models import CalendarEvent, PlannedSessionRecord
from trainer.db.session import get_session

PLANNED_SESSIONS_KEY = "planned_sessions"

EventType = Literal["workout", "rest", "checkin", "assessment", "note"]
EventStatus = Literal["scheduled", "completed", "skipped", "canceled"]


class CalendarEventCreate(BaseModel):
    """Payload for a user-created calendar event."""

    event_type: EventType = "workout"
    start_at: datetime
    end_at: datetime | None = None
    title: str | None = None
    status: EventStatus = "scheduled"
    notes: str | None = None
    intent_json: dict[str, Any] | None = Field(default=None, description="Planned-session intent for workouts")


def normalize_event(event: dict[str, Any]) -> dict[str, Any]:
    """Collapse the planned-sessions join to a single planned_session.

    The first element of the join becomes planned_session; an empty or
    non-list join yields None. The raw join key is dropped and every other
    field passes through unchanged.
    """
    planned = event.get(PLANNED_SESSIONS_KEY)
    first = planned[0] if isinstance(planned, list) and planned else None
    normalized = {key: value for key, value in event.items() if key != PLANNED_SESSIONS_KEY}
    normalized["planned_session"] = first or None
    return normalized


def _planned_session_dict(row: PlannedSessionRecord) -> dict[str, Any]:
    return {"id": row.id, "intent_json": row.intent_json}


def _event_dict(row: CalendarEvent, planned_rows: list[PlannedSessionRecord]) -> dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "event_type": row.event_type,
        "start_at": as_utc(row.start_at),
        "end_at": as_utc(row.end_at),
        "title": row.title,
        "status": row.status,
        "source": row.source,
        "user_modified": row.user_modified,
        "notes": row.notes,
        "linked_program_id": row.linked_program_id,
        "linked_program_version": row.linked_program_version,
        PLANNED_SESSIONS_KEY: [_planned_session_dict(p) for p in planned_rows],
    }


def _load_planned(session: Session, event_ids: list[str]) -> dict[str, list[PlannedSessionRecord]]:
    if not event_ids:
        return {}
    rows = session.execute(
        select(PlannedSessionRecord)
        .where(PlannedSessionRecord.calendar_event_id.in_(event_ids))
        .order_by(PlannedSessionRecord.created_at.asc())
    ).scalars().all()
    by_event: dict[str, list[PlannedSessionRecord]] = {}
    for row in rows:
        by_event.setdefault(row.calendar_event_id, []).append(row)
    return by_event


def _get_event_row(session: Session, *, user_id: str, event_id: str) -> CalendarEvent:
    row = session.execute(
        select(CalendarEvent).where(CalendarEvent.id == event_id, CalendarEvent.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(f"Calendar event not found: {event_id}")
    return row


def _fetch_event_with_plan(session: Session, *, user_id: str, event_id: str) -> dict[str, Any]:
    row = _get_event_row(session, user_id=user_id, event_id=event_id)
    planned = _load_planned(session, [row.id])
    return normalize_event(_event_dict(row, planned.get(row.id, [])))


def create_planned_session(
    session: Session,
    *,
    user_id: str,
    calendar_event_id: str,
    intent_json: dict[str, Any],
) -> PlannedSessionRecord:
    planned = PlannedSessionRecord(user_id=user_id, calendar_event_id=calendar_event_id, intent_json=intent_json)
    session.add(planned)
    session.flush()
    return planned


def list_events(user_id: str, start: datetime | None = None, end: datetime | None = None) -> list[dict[str, Any]]:
    """List a user's events ordered by start time, optionally bounded by [start, end]."""
    with get_session() as session:
        query = select(CalendarEvent).where(CalendarEvent.user_id == user_id)
        if start is not None:
            query = query.where(CalendarEvent.start_at >= start)
        if end is not None:
            query = query.where(CalendarEvent.start_at <= end)
        rows = list(session.execute(query.order_by(CalendarEvent.start_at.asc())).scalars().all())
        planned = _load_planned(session, [row.id for row in rows])
        return [normalize_event(_event_dict(row, planned.get(row.id, []))) for row in rows]


def create_event(user_id: str, payload: CalendarEventCreate) -> dict[str, Any]:
    """Create a user-owned event; workouts with an intent also get a planned session."""
    with get_session() as session:
        row = CalendarEvent(
            user_id=user_id,
            event_type=payload.event_type,
            start_at=payload.start_at,
            end_at=payload.end_at,
            title=payload.title,
            status=payload.status,
            source="user_created",
            user_modified=True,
            notes=payload.notes,
        )
        session.add(row)
        session.flush()
        if payload.intent_json and payload.event_type == "workout":
            create_planned_session(session, user_id=user_id, calendar_event_id=row.id, intent_json=payload.intent_json)
        logger.info(f"[calendar] Created {payload.event_type} event {row.id} for user {user_id}")
        return _fetch_event_with_plan(session, user_id=user_id, event_id=row.id)


def reschedule_event(
    user_id: str,
    event_id: str,
    start_at: datetime,
    end_at: datetime | None = None,
) -> dict[str, Any]:
    """Move an event; the event becomes user-modified so regeneration leaves it alone."""
    with get_session() as session:
        row = _get_event_row(session, user_id=user_id, event_id=event_id)
        row.start_at = start_at
        row.end_at = end_at
        row.user_modified = True
        row.updated_at = utc_now()
        session.flush()
        return _fetch_event_with_plan(session, user_id=user_id, event_id=event_id)


def skip_event(user_id: str, event_id: str, reason: str | None = None) -> dict[str, Any]:
    with get_session() as session:
        row = _get_event_row(session, user_id=user_id, event_id=event_id)
        row.status = "skipped"
        row.notes = reason or None
        row.updated_at = utc_now()
        session.flush()
        return _fetch_event_with_plan(session, user_id=user_id, event_id=event_id)


def complete_event(user_id: str, event_id: str) -> dict[str, Any]:
    with get_session() as session:
        row = _get_event_row(session, user_id=user_id, event_id=event_id)
        row.status = "completed"
        row.updated_at = utc_now()
        session.flush()
        return _fetch_event_with_plan(session, user_id=user_id, event_id=event_id)


def has_upcoming_workouts(session: Session, *, user_id: str, now: datetime) -> bool:
    """Return True when a scheduled workout starts at or after now."""
    query = (
        select(CalendarEvent.id)
        .where(
            CalendarEvent.user_id == user_id,
            CalendarEvent.event_type == "workout",
            CalendarEvent.status == "scheduled",
            CalendarEvent.start_at >= now,
        )
        .limit(1)
    )
    return session.execute(query).first() is not None


def count_planned_workouts(session: Session, *, user_id: str, start: datetime, end: datetime) -> int:
    """Count workout events starting within [start, end]."""
    query = select(CalendarEvent.id).where(
        CalendarEvent.user_id == user_id,
        CalendarEvent.event_type == "workout",
        CalendarEvent.start_at >= start,
        CalendarEvent.start_at <= end,
    )
    return len(session.execute(query).all())
