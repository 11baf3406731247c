"""Out-of-cycle calendar regeneration for users who fell behind."""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from trainer.calendar.events import has_upcoming_workouts
from trainer.calendar.scheduler import regenerate_weekly_calendar
from trainer.core.time import utc_now
from trainer.db.session import get_session
from trainer.programs.service import get_active_program


def check_and_run_catch_up_review(user_id: str, now: datetime | None = None) -> dict:
    """Regenerate the calendar when the user has nothing scheduled ahead.

    Returns:
        {"regenerated": False, "reason": "has_upcoming_events"} when a workout is still scheduled,
        {"regenerated": False, "reason": "no_active_program"} when there is nothing to project,
        otherwise {"regenerated": True, "created": n}.
    """
    now = now or utc_now()
    with get_session() as session:
        upcoming = has_upcoming_workouts(session, user_id=user_id, now=now)
    if upcoming:
        return {"regenerated": False, "reason": "has_upcoming_events"}

    logger.info(f"[catch-up] No upcoming events for user {user_id}, checking active program")
    program = get_active_program(user_id)
    if program is None:
        return {"regenerated": False, "reason": "no_active_program"}

    result = regenerate_weekly_calendar(user_id, program.document, now=now)
    logger.info(f"[catch-up] Regenerated calendar for user {user_id} from program version {program.version}")
    return {"regenerated": True, "created": result["created"]}
