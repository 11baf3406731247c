"""Weekly review batch across every user with an active program."""

from __future__ import annotations

import time

from loguru import logger

from trainer.programs.service import get_active_users
from trainer.review.service import run_weekly_review
from trainer.services.llm.client import TextGenerationClient


async def run_weekly_review_batch(client: TextGenerationClient | None = None) -> dict[str, int]:
    """Review each active user in turn; one user's failure never stops the batch.

    Returns:
        {"total", "success", "skipped", "errors"} counts
    """
    started = time.monotonic()
    user_ids = get_active_users()
    logger.info(f"[weekly-review] Batch started for {len(user_ids)} active users")

    counts = {"total": len(user_ids), "success": 0, "skipped": 0, "errors": 0}
    for user_id in user_ids:
        try:
            result = await run_weekly_review(user_id, client=client)
        except Exception:
            counts["errors"] += 1
            logger.exception(f"[weekly-review] Review failed for user {user_id}")
            continue
        if result.get("skipped"):
            counts["skipped"] += 1
        else:
            counts["success"] += 1

    logger.info(
        f"[weekly-review] Batch complete in {time.monotonic() - started:.1f}s: "
        f"success={counts['success']}, skipped={counts['skipped']}, errors={counts['errors']}"
    )
    return counts
