"""APScheduler setup for the resolution loop.

Uses AsyncIOScheduler with an in-memory job store. Resolution and managed
refresh run on an interval and the digest once a day. ``max_instances=1``
and ``coalesce=True`` mean a slow run is never overlapped and missed ticks
collapse into one.
"""

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signal_outcomes.config import Settings
from signal_outcomes.workers.jobs import (
    log_performance_digest,
    refresh_managed_positions,
    resolve_outcomes,
)


def build_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(
        jobstores={
            "default": MemoryJobStore(),
        },
        job_defaults={
            "coalesce": True,
            "misfire_grace_time": 300,
            "max_instances": 1,
        },
        timezone="UTC",
    )


def register_jobs(
    scheduler: AsyncIOScheduler,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> None:
    """Register the outcome, managed-position and digest jobs.

    Schedule:
        resolve_outcomes:          every resolver_interval_seconds
        refresh_managed_positions: every resolver_interval_seconds
        log_performance_digest:    daily at 06:00 UTC
    """
    interval = settings.resolver_interval_seconds

    scheduler.add_job(
        resolve_outcomes,
        trigger=IntervalTrigger(seconds=interval),
        args=[session_factory, settings],
        id="resolve_outcomes",
        name="Resolve signal outcomes",
        replace_existing=True,
    )
    logger.info("Registered job: resolve_outcomes (every {}s)", interval)

    scheduler.add_job(
        refresh_managed_positions,
        trigger=IntervalTrigger(seconds=interval),
        args=[session_factory, settings],
        id="refresh_managed_positions",
        name="Refresh managed positions",
        replace_existing=True,
    )
    logger.info("Registered job: refresh_managed_positions (every {}s)", interval)

    scheduler.add_job(
        log_performance_digest,
        trigger=CronTrigger(hour=6, minute=0, timezone="UTC"),
        args=[session_factory, settings],
        id="log_performance_digest",
        name="Log performance digest",
        replace_existing=True,
    )
    logger.info("Registered job: log_performance_digest (daily at 06:00 UTC)")
