"""OHLC bar value type and bar-sequence normalisation."""

from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True, slots=True)
class Bar:
    """One OHLC bar. ``time`` is the bar open time in epoch milliseconds."""

    time: int
    open: float
    high: float
    low: float
    close: float


def normalize_bars(bars: Iterable[Bar], entry_time: int) -> list[Bar]:
    """Return bars sorted ascending, de-duplicated by time, at or after entry.

    When two bars share a timestamp the later one in the input wins, so a
    provider that re-sends a corrected bar replaces the stale one.
    """
    by_time: dict[int, Bar] = {}
    for bar in bars:
        if bar.time >= entry_time:
            by_time[bar.time] = bar
    return [by_time[t] for t in sorted(by_time)]


def bars_from_frame(candles: pd.DataFrame) -> list[Bar]:
    """Convert an OHLC DataFrame into bars.

    Args:
        candles: DataFrame with columns [timestamp, open, high, low, close].
                 ``timestamp`` may be datetimes (tz-aware or naive UTC) or
                 integer epoch milliseconds.

    Returns:
        List of Bar in frame order (call normalize_bars to sort/dedupe).
    """
    required_columns = {"timestamp", "open", "high", "low", "close"}
    missing = required_columns - set(candles.columns)
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    if candles.empty:
        return []

    stamps = candles["timestamp"]
    if pd.api.types.is_datetime64_any_dtype(stamps):
        utc = pd.to_datetime(stamps, utc=True)
        times = (utc - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)
    else:
        times = stamps.astype("int64")

    return [
        Bar(
            time=int(t),
            open=float(o),
            high=float(h),
            low=float(lo),
            close=float(c),
        )
        for t, o, h, lo, c in zip(
            times, candles["open"], candles["high"], candles["low"], candles["close"]
        )
    ]
