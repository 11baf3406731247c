"""Persistence for workout sessions, instance snapshots and the session event log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trainer.db.models import WorkoutEvent, WorkoutInstanceRecord, WorkoutSession


def create_session_row(
    session: Session,
    *,
    user_id: str,
    metadata: dict | None = None,
    coach_mode: str = "quiet",
    calendar_event_id: str | None = None,
) -> WorkoutSession:
    row = WorkoutSession(
        user_id=user_id,
        status="in_progress",
        coach_mode=coach_mode,
        calendar_event_id=calendar_event_id,
        metadata_json=metadata or {},
    )
    session.add(row)
    session.flush()
    return row


def get_session_row(session: Session, *, session_id: str) -> WorkoutSession | None:
    return session.get(WorkoutSession, session_id)


def list_completed_session_rows(
    session: Session,
    *,
    user_id: str,
    start: datetime,
    end: datetime,
) -> list[WorkoutSession]:
    """Completed sessions whose start falls within [start, end], oldest first."""
    query = (
        select(WorkoutSession)
        .where(
            WorkoutSession.user_id == user_id,
            WorkoutSession.status == "completed",
            WorkoutSession.started_at >= start,
            WorkoutSession.started_at <= end,
        )
        .order_by(WorkoutSession.started_at.asc())
    )
    return list(session.execute(query).scalars().all())


def get_latest_instance_row(session: Session, *, session_id: str) -> WorkoutInstanceRecord | None:
    query = (
        select(WorkoutInstanceRecord)
        .where(WorkoutInstanceRecord.session_id == session_id)
        .order_by(WorkoutInstanceRecord.version.desc())
        .limit(1)
    )
    return session.execute(query).scalar_one_or_none()


def insert_instance(session: Session, *, session_id: str, instance_json: dict) -> WorkoutInstanceRecord:
    """Insert a full instance snapshot as version latest + 1."""
    latest = session.execute(
        select(func.max(WorkoutInstanceRecord.version)).where(WorkoutInstanceRecord.session_id == session_id)
    ).scalar()
    record = WorkoutInstanceRecord(session_id=session_id, version=(latest or 0) + 1, instance_json=instance_json)
    session.add(record)
    session.flush()
    return record


def log_event(session: Session, *, session_id: str, event_type: str, data: dict | None = None) -> WorkoutEvent:
    """Append an event to the session log with the next sequence number."""
    latest = session.execute(
        select(func.max(WorkoutEvent.sequence)).where(WorkoutEvent.session_id == session_id)
    ).scalar()
    event = WorkoutEvent(session_id=session_id, sequence=(latest or 0) + 1, event_type=event_type, data=data or {})
    session.add(event)
    session.flush()
    return event


def list_event_rows(session: Session, *, session_id: str, after_sequence: int | None = None) -> list[WorkoutEvent]:
    query = select(WorkoutEvent).where(WorkoutEvent.session_id == session_id)
    if after_sequence is not None:
        query = query.where(WorkoutEvent.sequence > after_sequence)
    return list(session.execute(query.order_by(WorkoutEvent.sequence.asc())).scalars().all())
