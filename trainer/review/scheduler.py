"""Cron registration for the weekly review batch."""

from __future__ import annotations

import asyncio

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from trainer.config.settings import settings
from trainer.review.batch import run_weekly_review_batch

WEEKLY_REVIEW_JOB_ID = "weekly_review"


def weekly_review_tick() -> None:
    """Run one batch; failures are logged so the scheduler keeps its job."""
    logger.info("[SCHEDULER] Weekly review tick")
    try:
        asyncio.run(run_weekly_review_batch())
    except Exception as e:
        logger.error(f"[SCHEDULER] Weekly review batch failed: {e}", exc_info=True)


def build_weekly_review_trigger(cron: str | None = None) -> CronTrigger:
    return CronTrigger.from_crontab(cron or settings.weekly_review_cron, timezone="UTC")


def start_weekly_review_scheduler(scheduler: BaseScheduler | None = None, cron: str | None = None) -> BaseScheduler:
    """Register the weekly batch on a cron trigger and start the scheduler."""
    scheduler = scheduler or BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        weekly_review_tick,
        trigger=build_weekly_review_trigger(cron),
        id=WEEKLY_REVIEW_JOB_ID,
        name="Weekly Program Review",
        replace_existing=True,
    )
    logger.info(f"[SCHEDULER] Weekly review scheduled: {cron or settings.weekly_review_cron} (UTC)")
    if not scheduler.running:
        scheduler.start()
    return scheduler
