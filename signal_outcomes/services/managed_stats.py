"""Summary statistics for managed positions.

Computes counts, R totals and rates over a set of managed positions
(persisted rows or pure states, anything exposing the same attributes).
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass

from signal_outcomes.schemas.enums import ManagedStatus
from signal_outcomes.services.managed_position import TP1_PARTIAL_R


@dataclass
class ManagedPnlStats:
    """Aggregated managed P&L.

    ``wins`` counts closed positions with managed R > 0; everything else
    closed is a loss (a flat timeout counts as a loss).
    """

    total_closed: int
    wins: int
    losses: int
    be_saves: int  # TP1 then breakeven
    tp1_only_exits: int  # TP1 then timeout
    total_managed_r: float
    avg_managed_r: float
    max_win_r: float
    max_loss_r: float
    total_managed_pnl: float
    avg_managed_pnl: float
    managed_win_rate: float
    tp1_touch_rate: float
    tp2_conversion_rate: float
    risk_per_trade: float


def _status(position) -> str:
    status = position.status
    return status.value if isinstance(status, ManagedStatus) else status


def compute_managed_stats(positions: Iterable, risk_per_trade: float) -> ManagedPnlStats:
    """Compute managed P&L statistics.

    Args:
        positions: ManagedPosition rows or ManagedPositionState values.
        risk_per_trade: Currency amount of 1R.

    Returns:
        ManagedPnlStats; rates are fractions in [0, 1], 0 when undefined.
    """
    positions = list(positions)
    closed = [p for p in positions if p.managed_r is not None]
    managed_rs = [p.managed_r for p in closed]

    wins = sum(1 for r in managed_rs if r > 0)
    tp1_touches = [p for p in positions if p.tp1_partial_at is not None]
    tp2_hits = sum(1 for p in positions if _status(p) == ManagedStatus.CLOSED_TP2.value)
    be_saves = sum(
        1
        for p in tp1_touches
        if _status(p) == ManagedStatus.CLOSED_BE_AFTER_TP1.value
        and math.isclose(p.managed_r, TP1_PARTIAL_R)
    )
    tp1_only_exits = sum(
        1 for p in tp1_touches if _status(p) == ManagedStatus.CLOSED_TIMEOUT.value
    )

    total_r = sum(managed_rs)
    n_closed = len(closed)
    total_pnl = total_r * risk_per_trade

    return ManagedPnlStats(
        total_closed=n_closed,
        wins=wins,
        losses=n_closed - wins,
        be_saves=be_saves,
        tp1_only_exits=tp1_only_exits,
        total_managed_r=total_r,
        avg_managed_r=total_r / n_closed if n_closed else 0.0,
        max_win_r=max(managed_rs) if managed_rs else 0.0,
        max_loss_r=min(managed_rs) if managed_rs else 0.0,
        total_managed_pnl=total_pnl,
        avg_managed_pnl=total_pnl / n_closed if n_closed else 0.0,
        managed_win_rate=wins / n_closed if n_closed else 0.0,
        tp1_touch_rate=len(tp1_touches) / len(positions) if positions else 0.0,
        tp2_conversion_rate=tp2_hits / len(tp1_touches) if tp1_touches else 0.0,
        risk_per_trade=risk_per_trade,
    )


def format_managed_r(r: float | None) -> str:
    """Signed R for display, e.g. ``+1.50R``; ``--`` when unknown."""
    if r is None or not math.isfinite(r):
        return "--"
    sign = "+" if r >= 0 else ""
    return f"{sign}{r:.2f}R"


def format_managed_pnl(amount: float | None, currency_symbol: str = "$") -> str:
    if amount is None or not math.isfinite(amount):
        return "--"
    sign = "+" if amount >= 0 else "-"
    return f"{sign}{currency_symbol}{abs(amount):.2f}"
