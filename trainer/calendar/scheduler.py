"""Calendar projection of the active program.

The calendar is a pure function of (program document, day count): slots
are recomputed and rewritten wholesale rather than diffed, so regeneration
is idempotent and safe to call defensively.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete, select

from trainer.calendar.events import create_planned_session
from trainer.calendar.parser import PlannedSession, parse_days_per_week, parse_sessions_from_markdown
from trainer.core.time import start_of_day, utc_now
from trainer.db.models import CalendarEvent, PlannedSessionRecord
from trainer.db.session import get_session
from trainer.programs.repository import get_active_program_row

PROJECTION_SOURCE = "program_projection"
WINDOW_DAYS = 7


class CalendarSlot(BaseModel):
    """One projected workout: a day offset within the window and its session."""

    day_offset: int
    planned_session: PlannedSession


def build_weekly_slots(sessions: list[PlannedSession], days_per_week: int) -> list[CalendarSlot]:
    """Spread days_per_week workouts over a 7-day window.

    Slot i lands on day floor(i * 7 / n). Sessions are assigned in document
    order and cycle when there are more training days than sessions; with no
    parsed sessions every slot gets a generic 45-minute workout.
    """
    count = max(1, min(days_per_week, WINDOW_DAYS))
    slots = []
    for index in range(count):
        if sessions:
            planned = sessions[index % len(sessions)]
        else:
            planned = PlannedSession(day_number=index + 1, name="Workout")
        slots.append(CalendarSlot(day_offset=(index * WINDOW_DAYS) // count, planned_session=planned))
    return slots


def projection_anchor(now: datetime | None = None) -> datetime:
    """First day of the projection window: the start of tomorrow (UTC)."""
    return start_of_day(now or utc_now()) + timedelta(days=1)


def regenerate_weekly_calendar(user_id: str, document: str | None, now: datetime | None = None) -> dict:
    """Rewrite the user's projected workouts for the next 7 days from a program document.

    Future projected events that the user has not touched are deleted and
    replaced; user-created or user-modified events are left as they are.

    Args:
        user_id: Owner of the calendar
        document: Program markdown to project
        now: Reference time (defaults to the current UTC time)

    Returns:
        {"created": int, "deleted": int, "window_start": datetime}
    """
    sessions = parse_sessions_from_markdown(document)
    days_per_week = parse_days_per_week(document)
    slots = build_weekly_slots(sessions, days_per_week)
    anchor = projection_anchor(now)

    with get_session() as session:
        program = get_active_program_row(session, user_id=user_id)

        stale_ids = list(
            session.execute(
                select(CalendarEvent.id).where(
                    CalendarEvent.user_id == user_id,
                    CalendarEvent.source == PROJECTION_SOURCE,
                    CalendarEvent.user_modified.is_(False),
                    CalendarEvent.start_at >= anchor,
                )
            ).scalars().all()
        )
        if stale_ids:
            session.execute(delete(PlannedSessionRecord).where(PlannedSessionRecord.calendar_event_id.in_(stale_ids)))
            session.execute(delete(CalendarEvent).where(CalendarEvent.id.in_(stale_ids)))
            session.flush()

        for slot in slots:
            planned = slot.planned_session
            event = CalendarEvent(
                user_id=user_id,
                event_type="workout",
                start_at=anchor + timedelta(days=slot.day_offset),
                title=planned.name,
                status="scheduled",
                source=PROJECTION_SOURCE,
                user_modified=False,
                linked_program_id=program.id if program else None,
                linked_program_version=program.version if program else None,
            )
            session.add(event)
            session.flush()
            create_planned_session(
                session,
                user_id=user_id,
                calendar_event_id=event.id,
                intent_json={
                    "focus": planned.name,
                    "day_number": planned.day_number,
                    "duration_min": planned.duration_min,
                    "intensity": planned.intensity,
                },
            )

    logger.info(
        f"[calendar] Regenerated calendar for user {user_id}: "
        f"{len(slots)} created, {len(stale_ids)} replaced ({len(sessions)} parsed sessions, {days_per_week} days/week)"
    )
    return {"created": len(slots), "deleted": len(stale_ids), "window_start": anchor}
