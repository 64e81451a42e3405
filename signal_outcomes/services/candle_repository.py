"""Bar source for the outcome engine.

``BarProvider`` is the only thing the resolver and the managed tracker
know about market data. ``CandleRepository`` implements it on top of the
``candles`` table that the market-data ingestor keeps filled.
"""

from datetime import datetime, timezone
from typing import Protocol

import pandas as pd
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from signal_outcomes.models.candle import Candle, timeframe_code
from signal_outcomes.schemas.bar import Bar, bars_from_frame

# Connection drops and timeouts are worth another try; anything else is a bug
_RETRYABLE_ERRORS = (ConnectionError, TimeoutError)


class BarProvider(Protocol):
    async def fetch_bars(
        self, symbol: str, interval_min: int, start_ms: int, end_ms: int
    ) -> list[Bar]:
        """Return bars whose open time lies in [start_ms, end_ms], ascending."""
        ...


def _ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class CandleRepository:
    """BarProvider reading stored candles for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def fetch_bars(
        self, symbol: str, interval_min: int, start_ms: int, end_ms: int
    ) -> list[Bar]:
        stmt = (
            select(Candle)
            .where(
                Candle.symbol == symbol,
                Candle.timeframe == timeframe_code(interval_min),
                Candle.timestamp >= _ms_to_datetime(start_ms),
                Candle.timestamp <= _ms_to_datetime(end_ms),
            )
            .order_by(Candle.timestamp.asc())
        )
        result = await self.session.execute(stmt)
        rows = result.scalars().all()

        frame = pd.DataFrame(
            [
                {
                    "timestamp": row.timestamp,
                    "open": row.open,
                    "high": row.high,
                    "low": row.low,
                    "close": row.close,
                }
                for row in rows
            ],
            columns=["timestamp", "open", "high", "low", "close"],
        )
        return bars_from_frame(frame)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_RETRYABLE_ERRORS),
    reraise=True,
)
async def fetch_bars_with_retry(
    provider: BarProvider, symbol: str, interval_min: int, start_ms: int, end_ms: int
) -> list[Bar]:
    """Fetch bars, retrying transient provider failures (3 attempts, exponential backoff)."""
    bars = await provider.fetch_bars(symbol, interval_min, start_ms, end_ms)
    logger.debug(
        "candle_repository: fetched {} bars symbol={} interval={} start={} end={}",
        len(bars),
        symbol,
        interval_min,
        start_ms,
        end_ms,
    )
    return bars
