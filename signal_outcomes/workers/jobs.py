"""Scheduled job functions for outcome resolution, managed positions and reporting.

These run outside any request context, so each creates its own session
from the factory it is given. All exceptions are caught and logged so a
failing run never takes the scheduler down; the next tick simply retries.
"""

import time

import pandas as pd
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signal_outcomes.config import Settings
from signal_outcomes.schemas.enums import OutcomeState
from signal_outcomes.services.candle_repository import CandleRepository
from signal_outcomes.services.managed_stats import (
    ManagedPnlStats,
    compute_managed_stats,
    format_managed_pnl,
    format_managed_r,
)
from signal_outcomes.services.managed_tracker import ManagedPositionTracker
from signal_outcomes.services.outcome_resolver import OutcomeResolver
from signal_outcomes.services.outcome_stats import summarize_by_horizon
from signal_outcomes.services.outcome_store import OutcomeStore


def now_ms() -> int:
    return int(time.time() * 1000)


async def resolve_outcomes(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    now: int | None = None,
) -> int:
    """Run one batch of horizon resolution.

    Returns:
        Number of records that reached a final state in this run.
    """
    try:
        clock = now if now is not None else now_ms()
        async with session_factory() as session:
            resolver = OutcomeResolver(
                OutcomeStore(session),
                CandleRepository(session),
                settings.resolver_config(),
            )
            records = await resolver.resolve_pending(clock, settings.outcome_batch_size)

        finalized = sum(1 for r in records if r.outcome_state != OutcomeState.PENDING.value)
        logger.info(
            "resolve_outcomes complete | attempted={attempted} finalized={finalized}",
            attempted=len(records),
            finalized=finalized,
        )
        return finalized

    except Exception:
        logger.exception("resolve_outcomes failed")
        return 0


async def refresh_managed_positions(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    now: int | None = None,
) -> int:
    """Recompute open managed positions.

    Returns:
        Number of positions that are closed after this run.
    """
    try:
        clock = now if now is not None else now_ms()
        async with session_factory() as session:
            tracker = ManagedPositionTracker(
                OutcomeStore(session),
                CandleRepository(session),
                settings.managed_config(),
            )
            states = await tracker.refresh_open(clock, settings.outcome_batch_size)

        closed = sum(1 for s in states if s.is_closed)
        logger.info(
            "refresh_managed_positions complete | refreshed={refreshed} closed={closed}",
            refreshed=len(states),
            closed=closed,
        )
        return closed

    except Exception:
        logger.exception("refresh_managed_positions failed")
        return 0


async def log_performance_digest(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> tuple[pd.DataFrame, ManagedPnlStats] | None:
    """Log the per-horizon outcome summary and managed P&L statistics.

    Returns:
        (horizon summary, managed stats), or None when the run failed.
    """
    try:
        async with session_factory() as session:
            store = OutcomeStore(session)
            outcomes = await store.list_outcomes(OutcomeState.COMPLETE)
            positions = await store.list_managed()

        summary = summarize_by_horizon(outcomes)
        managed = compute_managed_stats(positions, settings.managed_risk_per_trade)

        for row in summary.to_dict("records"):
            logger.info(
                "performance_digest horizon={}m | count={} wins={} losses={} flats={} "
                "win_rate={:.2f} avg_r={:.2f}",
                row["horizon_min"],
                row["count"],
                row["wins"],
                row["losses"],
                row["flats"],
                row["win_rate"],
                row["avg_r"],
            )
        logger.info(
            "performance_digest managed | closed={closed} win_rate={win_rate:.2f} "
            "total_r={total_r} pnl={pnl}",
            closed=managed.total_closed,
            win_rate=managed.managed_win_rate,
            total_r=format_managed_r(managed.total_managed_r),
            pnl=format_managed_pnl(managed.total_managed_pnl),
        )
        return summary, managed

    except Exception:
        logger.exception("log_performance_digest failed")
        return None
