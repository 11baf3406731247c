"""Persistence for tracked exercises and the exercise command log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from trainer.db.models import ExerciseCommandLog, TrackedExercise, WorkoutSession


def insert_tracked_exercise(
    session: Session,
    *,
    session_id: str,
    exercise_order: int,
    payload: dict,
    metrics: dict,
) -> TrackedExercise:
    row = TrackedExercise(
        session_id=session_id,
        exercise_order=exercise_order,
        exercise_name=metrics["exercise_name"],
        exercise_type=payload["identity"]["type"],
        status="pending",
        payload_json=payload,
        initial_payload_json=payload,
        payload_version=1,
        exercise_rpe=metrics["exercise_rpe"],
        total_reps=metrics["total_reps"],
        volume=metrics["volume"],
        duration_sec=metrics["duration_sec"],
    )
    session.add(row)
    session.flush()
    return row


def get_tracked_exercise_row(session: Session, *, exercise_id: str) -> TrackedExercise | None:
    return session.get(TrackedExercise, exercise_id)


def list_tracked_exercise_rows(session: Session, *, session_id: str) -> list[TrackedExercise]:
    query = (
        select(TrackedExercise)
        .where(TrackedExercise.session_id == session_id)
        .order_by(TrackedExercise.exercise_order.asc())
    )
    return list(session.execute(query).scalars().all())


def get_command_row(session: Session, *, user_id: str, command_id: str) -> ExerciseCommandLog | None:
    query = select(ExerciseCommandLog).where(
        ExerciseCommandLog.user_id == user_id,
        ExerciseCommandLog.command_id == command_id,
    )
    return session.execute(query).scalar_one_or_none()


def list_command_rows(session: Session, *, exercise_id: str) -> list[ExerciseCommandLog]:
    query = (
        select(ExerciseCommandLog)
        .where(ExerciseCommandLog.exercise_id == exercise_id)
        .order_by(ExerciseCommandLog.resulting_version.asc())
    )
    return list(session.execute(query).scalars().all())


def insert_command_row(session: Session, **values) -> ExerciseCommandLog:
    row = ExerciseCommandLog(**values)
    session.add(row)
    session.flush()
    return row


def list_history_rows(
    session: Session,
    *,
    user_id: str,
    limit: int,
    before: datetime | None = None,
) -> list[WorkoutSession]:
    """Finished sessions newest first; fetches one extra row to detect another page."""
    query = select(WorkoutSession).where(
        WorkoutSession.user_id == user_id,
        WorkoutSession.status.in_(("completed", "stopped")),
    )
    if before is not None:
        query = query.where(WorkoutSession.started_at < before)
    query = query.order_by(WorkoutSession.started_at.desc()).limit(limit + 1)
    return list(session.execute(query).scalars().all())
