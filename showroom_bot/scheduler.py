"""Background jobs: inventory refresh, daily follow-ups, coaching cycle."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from showroom_bot.config import Settings

if TYPE_CHECKING:
    from showroom_bot.app_state import AppState

logger = structlog.get_logger()


def build_scheduler(state: "AppState", config: Settings) -> AsyncIOScheduler:
    """Register the recurring jobs. The caller starts and stops the scheduler."""
    scheduler = AsyncIOScheduler(timezone=config.timezone)

    scheduler.add_job(
        state.inventory.refresh,
        trigger=IntervalTrigger(minutes=config.inventory_refresh_minutes),
        id="inventory_refresh",
        name="Refresh live inventory",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        state.follow_ups.run_follow_up_check,
        trigger=CronTrigger(hour=config.follow_up_hour, minute=0, timezone=config.timezone),
        id="follow_up_check",
        name=f"Daily follow-ups at {config.follow_up_hour}:00",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        state.coaching.run_cycle,
        trigger=IntervalTrigger(hours=config.coaching_interval_hours),
        id="coaching_cycle",
        name="Learn coaching tips from recent conversations",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        "scheduler_configured",
        jobs=[job.id for job in scheduler.get_jobs()],
        timezone=config.timezone,
    )
    return scheduler
