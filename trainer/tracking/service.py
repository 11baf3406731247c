"""Exercise tracking: command application, session finalization and history.

Every accepted command is written to the command log next to the resulting
payload version, so an exercise can be rebuilt by replaying its log from the
initial payload.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from trainer.core.errors import InvalidActionError, NotFoundError, VersionConflictError
from trainer.core.time import as_utc, parse_datetime, utc_now
from trainer.db.models import TrackedExercise
from trainer.db.session import get_session
from trainer.tracking.commands import CompleteExercise, CompleteSet, UpdateSetActual, parse_command
from trainer.tracking.payload import build_initial_payload, derive_exercise_metrics, has_any_set_performance
from trainer.tracking.reducer import reduce, replay_commands
from trainer.tracking.repository import (
    get_command_row,
    get_tracked_exercise_row,
    insert_command_row,
    insert_tracked_exercise,
    list_command_rows,
    list_history_rows,
    list_tracked_exercise_rows,
)
from trainer.tracking.types import ExerciseMetrics, ExercisePayload
from trainer.workouts.prescription import round_half_up
from trainer.workouts.repository import get_latest_instance_row, get_session_row
from trainer.workouts.types import WorkoutInstance

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 50


def initialize_tracking(session: Session, *, session_id: str, instance: WorkoutInstance) -> list[TrackedExercise]:
    """Create one pending tracked exercise per instance exercise, in order."""
    rows = []
    for order, exercise in enumerate(instance.exercises):
        payload = build_initial_payload(exercise)
        metrics = derive_exercise_metrics(payload)
        rows.append(
            insert_tracked_exercise(
                session,
                session_id=session_id,
                exercise_order=order,
                payload=payload.model_dump(),
                metrics=metrics.model_dump(),
            )
        )
    return rows


def _exercise_result(row: TrackedExercise) -> dict[str, Any]:
    return {
        "exercise_id": row.id,
        "payload_version": row.payload_version,
        "status": row.status,
        "payload_json": row.payload_json,
    }


def _owned_exercise(session: Session, *, exercise_id: str, user_id: str) -> TrackedExercise:
    row = get_tracked_exercise_row(session, exercise_id=exercise_id)
    if row is None:
        raise NotFoundError(f"Exercise not found: {exercise_id}")
    workout_session = get_session_row(session, session_id=row.session_id)
    if workout_session is None or workout_session.user_id != user_id:
        raise NotFoundError(f"Exercise not found: {exercise_id}")
    return row


def _stamp(command):
    """Attach a completion timestamp so the logged command replays identically."""
    if isinstance(command, (CompleteSet, UpdateSetActual, CompleteExercise)) and command.completed_at is None:
        return command.model_copy(update={"completed_at": utc_now().isoformat()})
    return command


def list_tracked_exercises(session_id: str, user_id: str) -> list[dict[str, Any]]:
    with get_session() as session:
        workout_session = get_session_row(session, session_id=session_id)
        if workout_session is None or workout_session.user_id != user_id:
            raise NotFoundError(f"Session not found: {session_id}")
        return [
            {
                **_exercise_result(row),
                "exercise_order": row.exercise_order,
                "exercise_name": row.exercise_name,
                "exercise_type": row.exercise_type,
                "exercise_rpe": row.exercise_rpe,
                "total_reps": row.total_reps,
                "volume": row.volume,
                "duration_sec": row.duration_sec,
            }
            for row in list_tracked_exercise_rows(session, session_id=session_id)
        ]


def apply_exercise_command(
    user_id: str,
    exercise_id: str,
    command_id: str,
    expected_version: int,
    command: dict[str, Any],
) -> dict[str, Any]:
    """Apply a tracking command with optimistic concurrency.

    Re-sending a command_id that was already applied returns the exercise's
    current state without applying it again.

    Raises:
        InvalidActionError: If command_id or expected_version is invalid
        NotFoundError: If the exercise does not exist or belongs to another user
        VersionConflictError: If expected_version is not the current payload version
    """
    parsed = parse_command(command)
    if not command_id:
        raise InvalidActionError("command_id is required")
    if not isinstance(expected_version, int) or expected_version < 1:
        raise InvalidActionError("expected_version must be a positive integer")

    with get_session() as session:
        existing = get_command_row(session, user_id=user_id, command_id=command_id)
        if existing is not None:
            row = get_tracked_exercise_row(session, exercise_id=existing.exercise_id)
            if row is None:
                raise NotFoundError(f"Exercise not found for command {command_id}")
            logger.info(f"[tracking] Duplicate command {command_id} for exercise {row.id}, returning current state")
            return _exercise_result(row)

        row = _owned_exercise(session, exercise_id=exercise_id, user_id=user_id)
        if row.payload_version != expected_version:
            raise VersionConflictError(
                f"Version conflict on exercise {exercise_id}: expected {expected_version}, "
                f"current {row.payload_version}",
                current_version=row.payload_version,
            )

        stamped = _stamp(parsed)
        payload, status, metrics = reduce(ExercisePayload.model_validate(row.payload_json), row.status, stamped)
        next_version = expected_version + 1

        if status == "completed":
            completed_at = utc_now()
        elif status == "skipped":
            completed_at = None
        else:
            completed_at = row.completed_at

        row.payload_json = payload.model_dump()
        row.payload_version = next_version
        row.status = status
        row.exercise_name = metrics.exercise_name
        row.exercise_rpe = metrics.exercise_rpe
        row.total_reps = metrics.total_reps
        row.volume = metrics.volume
        row.duration_sec = metrics.duration_sec
        row.completed_at = completed_at
        row.updated_at = utc_now()

        insert_command_row(
            session,
            command_id=command_id,
            user_id=user_id,
            session_id=row.session_id,
            exercise_id=row.id,
            command_type=stamped.type,
            command_json=stamped.model_dump(),
            expected_version=expected_version,
            resulting_version=next_version,
            resulting_status=status,
        )
        logger.debug(f"[tracking] {stamped.type} on exercise {row.id} -> v{next_version} ({status})")
        return _exercise_result(row)


def rebuild_exercise_state(exercise_id: str) -> tuple[ExercisePayload, str, ExerciseMetrics]:
    """Replay an exercise's command log from its initial payload."""
    with get_session() as session:
        row = get_tracked_exercise_row(session, exercise_id=exercise_id)
        if row is None:
            raise NotFoundError(f"Exercise not found: {exercise_id}")
        commands = [command.command_json for command in list_command_rows(session, exercise_id=exercise_id)]
        return replay_commands(ExercisePayload.model_validate(row.initial_payload_json), commands)


def build_completion_summary(
    title: str | None,
    exercises: list[TrackedExercise],
    reflection: dict[str, Any] | None,
) -> dict[str, Any]:
    reflection = reflection or {}
    total = len(exercises)
    done = sum(1 for row in exercises if row.status in ("completed", "skipped"))
    completed_sets = 0
    for row in exercises:
        payload = ExercisePayload.model_validate(row.payload_json)
        completed_sets += sum(1 for performance in payload.performance.sets if has_any_set_performance(performance))

    wins = []
    if done:
        wins.append(f"Completed {done} of {total} exercises.")
    if completed_sets:
        wins.append(f"Logged {completed_sets} completed sets.")

    rpe = reflection.get("rpe")
    return {
        "title": title or "Workout complete",
        "completion": {"exercises": done, "total_sets": completed_sets},
        "overall_rpe": rpe if isinstance(rpe, (int, float)) else None,
        "pain_notes": reflection.get("pain") or None,
        "wins": wins or ["Workout tracked successfully."],
        "next_session_focus": reflection.get("notes") or "Continue progressive training next session.",
    }


def _energy_level(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def finalize_session(
    user_id: str,
    session_id: str,
    reflection: dict[str, Any] | None = None,
    mode: str = "complete",
    reason: str | None = None,
) -> dict[str, Any]:
    """Close a session as completed (or stopped) and store its summary.

    Raises:
        NotFoundError: If the session does not exist or belongs to another user
        InvalidActionError: If mode is not "complete" or "stop"
    """
    if mode not in ("complete", "stop"):
        raise InvalidActionError(f"Unknown finalize mode: {mode}")
    reflection = reflection or {}

    with get_session() as session:
        workout_session = get_session_row(session, session_id=session_id)
        if workout_session is None or workout_session.user_id != user_id:
            raise NotFoundError(f"Session not found: {session_id}")

        instance_row = get_latest_instance_row(session, session_id=session_id)
        title = (instance_row.instance_json or {}).get("title") if instance_row else None
        exercises = list_tracked_exercise_rows(session, session_id=session_id)
        summary = build_completion_summary(title, exercises, reflection)
        summary["stop_reason"] = (reason or "user_stopped") if mode == "stop" else None

        now = utc_now()
        rpe = reflection.get("rpe")
        workout_session.status = "stopped" if mode == "stop" else "completed"
        workout_session.completed_at = now
        workout_session.updated_at = now
        workout_session.session_rpe = round_half_up(rpe) if isinstance(rpe, (int, float)) else None
        workout_session.notes = reflection.get("notes")
        energy = _energy_level(reflection.get("energy"))
        if energy is not None:
            workout_session.metadata_json = {**(workout_session.metadata_json or {}), "energy_level": energy}
        workout_session.summary_json = summary
        session.flush()

        logger.info(f"[tracking] Session {session_id} finalized as {workout_session.status} for user {user_id}")
        return summary


def list_history(user_id: str, limit: Any = DEFAULT_HISTORY_LIMIT, cursor: str | None = None) -> dict[str, Any]:
    """Page finished sessions newest first; cursor is the last item's started_at."""
    try:
        safe_limit = int(limit) or DEFAULT_HISTORY_LIMIT
    except (TypeError, ValueError):
        safe_limit = DEFAULT_HISTORY_LIMIT
    safe_limit = max(1, min(safe_limit, MAX_HISTORY_LIMIT))

    with get_session() as session:
        rows = list_history_rows(session, user_id=user_id, limit=safe_limit, before=parse_datetime(cursor))
        has_more = len(rows) > safe_limit
        page = rows[:safe_limit]

        items = []
        for row in page:
            exercises = list_tracked_exercise_rows(session, session_id=row.id)
            instance_row = get_latest_instance_row(session, session_id=row.id)
            instance = instance_row.instance_json if instance_row else {}
            started_at = as_utc(row.started_at)
            completed_at = as_utc(row.completed_at)
            actual_duration = None
            if started_at and completed_at:
                actual_duration = max(0, round_half_up((completed_at - started_at).total_seconds() / 60))
            items.append(
                {
                    "session_id": row.id,
                    "status": row.status,
                    "started_at": started_at.isoformat() if started_at else None,
                    "completed_at": completed_at.isoformat() if completed_at else None,
                    "title": instance.get("title") or "Workout",
                    "planned_duration_min": instance.get("estimated_duration_min"),
                    "actual_duration_min": actual_duration,
                    "exercise_count": len(exercises),
                    "completed_exercise_count": sum(1 for ex in exercises if ex.status == "completed"),
                    "skipped_exercise_count": sum(1 for ex in exercises if ex.status == "skipped"),
                    "total_volume": round_half_up(sum(ex.volume or 0 for ex in exercises)),
                    "session_rpe": row.session_rpe,
                }
            )

        next_cursor = items[-1]["started_at"] if has_more and items else None
        return {"items": items, "next_cursor": next_cursor}
