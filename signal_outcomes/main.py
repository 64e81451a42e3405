"""Worker entry point: run the resolution scheduler until stopped."""

import asyncio

from loguru import logger

from signal_outcomes.config import get_settings
from signal_outcomes.database import build_engine, build_session_factory, create_tables
from signal_outcomes.utils.logging import setup_logging
from signal_outcomes.workers.scheduler import build_scheduler, register_jobs


async def serve(stop_event: asyncio.Event | None = None) -> None:
    """Start the scheduler and block until ``stop_event`` is set."""
    settings = get_settings()

    # Configure structured logging first so all startup logs are formatted
    setup_logging(settings.log_level, settings.log_json)

    engine = build_engine(settings.database_url)
    await create_tables(engine)
    session_factory = build_session_factory(engine)

    scheduler = build_scheduler()
    register_jobs(scheduler, session_factory, settings)
    scheduler.start()
    logger.info(
        "signal-outcomes worker started | horizons={} interval={}m",
        settings.outcome_horizons_min,
        settings.bar_interval_min,
    )

    stop_event = stop_event or asyncio.Event()
    try:
        await stop_event.wait()
    finally:
        scheduler.shutdown(wait=False)
        await engine.dispose()
        logger.info("signal-outcomes worker stopped")


def run() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
