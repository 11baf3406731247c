"""Weekly review: fold a week of training into the next program version.

The steps run strictly in order (stats, profile, rewrite, save, calendar)
so a program is never left half-updated.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any

from loguru import logger

from trainer.calendar.scheduler import regenerate_weekly_calendar
from trainer.core.time import as_utc
from trainer.db.session import get_session
from trainer.programs.service import get_active_program, save_new_program_version
from trainer.review.rewriter import rewrite_program
from trainer.services.llm.client import TextGenerationClient
from trainer.stats.service import calculate_weekly_stats, get_current_week_bounds
from trainer.weights.service import get_latest_profile
from trainer.workouts.repository import list_completed_session_rows


def get_week_session_summaries(user_id: str, week_start: datetime, week_end: datetime) -> list[dict[str, Any]]:
    """Completed sessions in the week with their stored summaries, oldest first."""
    with get_session() as session:
        rows = list_completed_session_rows(session, user_id=user_id, start=week_start, end=week_end)
        return [
            {
                "session_id": row.id,
                "date": as_utc(row.started_at).isoformat(),
                "summary": row.summary_json or None,
            }
            for row in rows
        ]


async def run_weekly_review(
    user_id: str,
    client: TextGenerationClient | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run the weekly review for one user.

    Returns:
        {"skipped": True, "reason": "no_sessions" | "no_active_program"} when there
        is nothing to review, otherwise {"skipped": False, "weekly_stats": ...,
        "program_version": n, "calendar": {...}}.

    Raises:
        GenerationFailedError: If the rewrite output is unusable
    """
    logger.info(f"[weekly-review] Starting review for user {user_id}")
    started = time.monotonic()
    week_start, week_end = get_current_week_bounds(now)

    week_summaries = get_week_session_summaries(user_id, week_start, week_end)
    if not week_summaries:
        logger.info(f"[weekly-review] No sessions this week for user {user_id}, skipping")
        return {"skipped": True, "reason": "no_sessions"}

    current_program = get_active_program(user_id)
    if current_program is None:
        logger.info(f"[weekly-review] No active program for user {user_id}, skipping")
        return {"skipped": True, "reason": "no_active_program"}

    weekly_stats = calculate_weekly_stats(user_id, week_start, week_end)
    weights_profile = get_latest_profile(user_id)
    logger.info(
        f"[weekly-review] Data gathered for user {user_id}: {len(week_summaries)} sessions, "
        f"weights profile {'v' + str(weights_profile.version) if weights_profile else 'none'}"
    )

    rewrite_started = time.monotonic()
    new_document = await rewrite_program(current_program, week_summaries, weekly_stats, weights_profile, client=client)
    logger.info(f"[weekly-review] Program rewritten in {time.monotonic() - rewrite_started:.1f}s")

    saved = save_new_program_version(user_id, new_document, event_type="weekly_review")
    calendar = regenerate_weekly_calendar(user_id, new_document, now=now)

    logger.info(f"[weekly-review] Complete for user {user_id} in {time.monotonic() - started:.1f}s")
    return {
        "skipped": False,
        "weekly_stats": weekly_stats,
        "program_version": saved.version,
        "calendar": calendar,
    }
