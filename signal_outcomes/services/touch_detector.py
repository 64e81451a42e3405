"""Direction-aware level touch checks on a single OHLC bar.

LONG:  STOP/BREAKEVEN touched when low <= level, TP when high >= level.
SHORT: STOP/BREAKEVEN touched when high >= level, TP when low <= level.

Touches are inclusive: a wick that exactly reaches the level counts.
"""

from signal_outcomes.schemas.bar import Bar
from signal_outcomes.schemas.enums import Direction, LevelKind


def touched(direction: Direction, bar: Bar, level: float, kind: LevelKind) -> bool:
    """Return True if ``bar`` reaches ``level`` of the given kind."""
    protective = kind in (LevelKind.STOP, LevelKind.BREAKEVEN)
    if direction == Direction.LONG:
        return bar.low <= level if protective else bar.high >= level
    return bar.high >= level if protective else bar.low <= level


def price_to_r(direction: Direction, entry: float, stop: float, price: float) -> float:
    """Convert a price into R-multiples of the entry→stop risk.

    Returns 0.0 when the risk distance is zero.
    """
    risk = entry - stop if direction == Direction.LONG else stop - entry
    if risk == 0:
        return 0.0
    if direction == Direction.LONG:
        return (price - entry) / risk
    return (entry - price) / risk
