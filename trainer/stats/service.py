"""Weekly roll-up of session stats against the calendar."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from trainer.calendar.events import count_planned_workouts
from trainer.core.time import utc_now, week_bounds
from trainer.db.session import get_session
from trainer.stats.calculator import calculate_session_stats
from trainer.tracking.repository import list_tracked_exercise_rows
from trainer.workouts.repository import get_latest_instance_row, list_completed_session_rows, list_event_rows


def get_current_week_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return Monday 00:00 and Sunday 23:59:59.999 (UTC) of the current week."""
    return week_bounds(now or utc_now())


def _trend(current: float, prior: float) -> str:
    if current > prior:
        return "up"
    if current < prior:
        return "down"
    return "flat"


def _tracked_dicts(session: Session, session_id: str) -> list[dict[str, Any]]:
    return [
        {
            "status": row.status,
            "total_reps": row.total_reps,
            "volume": row.volume,
            "payload_json": row.payload_json,
        }
        for row in list_tracked_exercise_rows(session, session_id=session_id)
    ]


def collect_session_stats(session: Session, *, user_id: str, start: datetime, end: datetime) -> list[dict[str, Any]]:
    """Stats for each completed session in [start, end], oldest first."""
    results = []
    for row in list_completed_session_rows(session, user_id=user_id, start=start, end=end):
        instance_row = get_latest_instance_row(session, session_id=row.id)
        events = list_event_rows(session, session_id=row.id)
        stats = calculate_session_stats(
            instance_row.instance_json if instance_row else None,
            events,
            row,
            _tracked_dicts(session, row.id),
        )
        results.append({"session_id": row.id, "started_at": row.started_at, **stats})
    return results


def _totals(stats: list[dict[str, Any]]) -> dict[str, float]:
    return {
        "sessions": len(stats),
        "volume": sum(item["total_volume"] for item in stats),
        "cardio": sum(item["cardio_time_min"] for item in stats),
    }


def calculate_weekly_stats(user_id: str, week_start: datetime, week_end: datetime) -> dict[str, Any]:
    """Aggregate a week of completed sessions plus planned-vs-completed counts.

    A week with no sessions yields zeros and None averages, not an error.
    """
    with get_session() as session:
        sessions = collect_session_stats(session, user_id=user_id, start=week_start, end=week_end)
        planned = count_planned_workouts(session, user_id=user_id, start=week_start, end=week_end)
        prior = collect_session_stats(
            session,
            user_id=user_id,
            start=week_start - timedelta(days=7),
            end=week_start - timedelta(microseconds=1),
        )

    completed = len(sessions)
    total_workout_min = sum(item["workout_duration_min"] or 0 for item in sessions)
    energies = [item["energy_rating"] for item in sessions if isinstance(item["energy_rating"], (int, float))]
    current_totals = _totals(sessions)
    prior_totals = _totals(prior)

    return {
        "week_start": week_start.isoformat(),
        "week_end": week_end.isoformat(),
        "sessions_completed": completed,
        "sessions_planned": planned,
        "total_reps": sum(item["total_reps"] for item in sessions),
        "total_volume": round(current_totals["volume"]),
        "total_cardio_min": round(current_totals["cardio"], 1),
        "total_workout_min": total_workout_min,
        "avg_energy_rating": round(sum(energies) / len(energies), 1) if energies else None,
        "avg_session_duration_min": round(total_workout_min / completed) if completed else None,
        "trends": {
            "sessions": _trend(current_totals["sessions"], prior_totals["sessions"]),
            "volume": _trend(current_totals["volume"], prior_totals["volume"]),
            "cardio": _trend(current_totals["cardio"], prior_totals["cardio"]),
        },
    }
