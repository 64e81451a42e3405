"""Managed position simulator: partial profit at TP1, breakeven runner.

R = 1 is the full initial risk (entry to stop distance).

Outcomes:
1. Stop before TP1                 -> -1.0R  (CLOSED_STOP)
2. TP1, then TP2                   -> +0.5R + 1.0R = +1.5R  (CLOSED_TP2)
3. TP1, then breakeven             -> +0.5R + 0R = +0.5R  (CLOSED_BE_AFTER_TP1)
4. TP1, runner open at expiry      -> +0.5R + runner value  (CLOSED_TIMEOUT)
       MARKET_CLOSE:      0.5 * price_to_r(last close)
       BREAKEVEN_ASSUMED: 0
5. No TP1, no stop, expiry reached -> full position closed at last close

Same-bar ambiguity is resolved conservatively in both phases: stop beats
TP1 before the partial, breakeven beats TP2 on the runner.

The simulation is a pure function of its inputs. Re-running it on the same
bars, clock and parameters always returns an equal state.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from signal_outcomes.schemas.bar import Bar, normalize_bars
from signal_outcomes.schemas.enums import (
    LevelKind,
    ManagedStatus,
    RunnerExitReason,
    SameBarPolicy,
    TimeoutMode,
)
from signal_outcomes.schemas.signal import TradeSignal
from signal_outcomes.services.touch_detector import price_to_r, touched

STOP_R = -1.0
PARTIAL_FRACTION = 0.5
TP1_PARTIAL_R = 0.5
TP2_TOTAL_R = 1.5


@dataclass(frozen=True)
class SameBarConflict:
    stage: str  # FULL_POSITION or RUNNER
    bar_time: int
    hits: tuple[str, ...]
    resolution: str


@dataclass(frozen=True)
class ManagedPositionState:
    """Managed P&L for one signal.

    ``managed_r`` and ``managed_pnl_currency`` are only set once the status
    is terminal (any CLOSED_* value). ``realized_r`` is the R already
    locked in, e.g. +0.5 while the runner is still open.
    """

    signal_id: int
    status: ManagedStatus
    realized_r: float
    managed_r: float | None
    managed_pnl_currency: float | None
    tp1_partial_at: int | None
    runner_breakeven_at: int | None
    runner_exit_at: int | None
    runner_exit_reason: RunnerExitReason | None
    timeout_exit_price: float | None
    risk_currency_snapshot: float
    last_price: float | None = None
    same_bar_conflicts: tuple[SameBarConflict, ...] = field(default_factory=tuple)

    @property
    def is_closed(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class LiveEstimate:
    """Read-only projection of an open position at a given price."""

    realized_r: float
    unrealized_r: float
    live_managed_r: float
    live_pnl_currency: float


def _closed(
    signal: TradeSignal,
    status: ManagedStatus,
    total_r: float,
    risk_per_trade: float,
    **kwargs,
) -> ManagedPositionState:
    defaults = {
        "tp1_partial_at": None,
        "runner_breakeven_at": None,
        "runner_exit_at": None,
        "runner_exit_reason": None,
        "timeout_exit_price": None,
        "last_price": None,
        "same_bar_conflicts": (),
    }
    defaults.update(kwargs)
    return ManagedPositionState(
        signal_id=signal.signal_id,
        status=status,
        realized_r=total_r,
        managed_r=total_r,
        managed_pnl_currency=total_r * risk_per_trade,
        risk_currency_snapshot=risk_per_trade,
        **defaults,
    )


def simulate_managed_position(
    signal: TradeSignal,
    bars: Sequence[Bar],
    *,
    expires_at: int,
    now_ms: int,
    timeout_mode: TimeoutMode,
    risk_per_trade: float,
    same_bar_policy: SameBarPolicy = SameBarPolicy.CONSERVATIVE,
) -> ManagedPositionState:
    """Replay the full bar history of a signal through the managed policy.

    Args:
        signal: Validated trade signal.
        bars: Bar history from entry onwards (any order, duplicates allowed).
        expires_at: Epoch ms after which the position is force-closed.
        now_ms: Current time; expiry only applies once now_ms >= expires_at.
        timeout_mode: How an open runner is valued at expiry.
        risk_per_trade: Currency amount of 1R.
        same_bar_policy: Tie-break for protective level vs. target.

    Returns:
        ManagedPositionState. PENDING when the signal has no stop or no
        bars are available yet.
    """
    if same_bar_policy != SameBarPolicy.CONSERVATIVE:
        raise ValueError(f"Unsupported same-bar policy: {same_bar_policy}")

    replay = [b for b in normalize_bars(bars, signal.entry_time) if b.time <= expires_at]

    pending = ManagedPositionState(
        signal_id=signal.signal_id,
        status=ManagedStatus.PENDING,
        realized_r=0.0,
        managed_r=None,
        managed_pnl_currency=None,
        tp1_partial_at=None,
        runner_breakeven_at=None,
        runner_exit_at=None,
        runner_exit_reason=None,
        timeout_exit_price=None,
        risk_currency_snapshot=risk_per_trade,
    )
    if signal.stop_price is None or not replay:
        return pending

    direction = signal.direction
    entry = signal.entry_price
    stop = signal.stop_price
    tp1 = signal.tp1_price
    tp2 = signal.tp2_price
    expired = now_ms >= expires_at
    last_close = replay[-1].close
    conflicts: list[SameBarConflict] = []

    # Phase 1: full position until stop or TP1.
    tp1_index: int | None = None
    for i, bar in enumerate(replay):
        stop_hit = touched(direction, bar, stop, LevelKind.STOP)
        tp1_hit = tp1 is not None and touched(direction, bar, tp1, LevelKind.TP)

        if stop_hit:
            if tp1_hit:
                conflicts.append(
                    SameBarConflict("FULL_POSITION", bar.time, ("STOP", "TP1"), "STOP_WINS")
                )
            return _closed(
                signal,
                ManagedStatus.CLOSED_STOP,
                STOP_R,
                risk_per_trade,
                runner_exit_at=bar.time,
                runner_exit_reason=RunnerExitReason.STOP_BEFORE_TP1,
                last_price=bar.close,
                same_bar_conflicts=tuple(conflicts),
            )
        if tp1_hit:
            tp1_index = i
            break

    if tp1_index is None:
        if not expired:
            return replace(pending, last_price=last_close)
        return _closed(
            signal,
            ManagedStatus.CLOSED_TIMEOUT,
            price_to_r(direction, entry, stop, last_close),
            risk_per_trade,
            runner_exit_at=expires_at,
            runner_exit_reason=RunnerExitReason.TIMEOUT_MARKET,
            timeout_exit_price=last_close,
            last_price=last_close,
        )

    tp1_at = replay[tp1_index].time

    # Phase 2: runner with its stop moved to entry.
    for bar in replay[tp1_index + 1:]:
        be_hit = touched(direction, bar, entry, LevelKind.BREAKEVEN)
        tp2_hit = tp2 is not None and touched(direction, bar, tp2, LevelKind.TP)

        if be_hit:
            if tp2_hit:
                conflicts.append(
                    SameBarConflict("RUNNER", bar.time, ("BE", "TP2"), "BE_WINS")
                )
            return _closed(
                signal,
                ManagedStatus.CLOSED_BE_AFTER_TP1,
                TP1_PARTIAL_R,
                risk_per_trade,
                tp1_partial_at=tp1_at,
                runner_breakeven_at=bar.time,
                runner_exit_at=bar.time,
                runner_exit_reason=RunnerExitReason.BREAK_EVEN,
                last_price=bar.close,
                same_bar_conflicts=tuple(conflicts),
            )
        if tp2_hit:
            return _closed(
                signal,
                ManagedStatus.CLOSED_TP2,
                TP2_TOTAL_R,
                risk_per_trade,
                tp1_partial_at=tp1_at,
                runner_exit_at=bar.time,
                runner_exit_reason=RunnerExitReason.TP2,
                last_price=bar.close,
            )

    if not expired:
        return replace(
            pending,
            status=ManagedStatus.PARTIAL_TP1_OPEN,
            realized_r=TP1_PARTIAL_R,
            tp1_partial_at=tp1_at,
            last_price=last_close,
        )

    if timeout_mode == TimeoutMode.MARKET_CLOSE:
        runner_r = PARTIAL_FRACTION * price_to_r(direction, entry, stop, last_close)
        return _closed(
            signal,
            ManagedStatus.CLOSED_TIMEOUT,
            TP1_PARTIAL_R + runner_r,
            risk_per_trade,
            tp1_partial_at=tp1_at,
            runner_exit_at=expires_at,
            runner_exit_reason=RunnerExitReason.TIMEOUT_MARKET,
            timeout_exit_price=last_close,
            last_price=last_close,
        )
    return _closed(
        signal,
        ManagedStatus.CLOSED_TIMEOUT,
        TP1_PARTIAL_R,
        risk_per_trade,
        tp1_partial_at=tp1_at,
        runner_exit_at=expires_at,
        runner_exit_reason=RunnerExitReason.TIMEOUT_BREAKEVEN,
        timeout_exit_price=entry,
        last_price=last_close,
    )


def project_live(
    state: ManagedPositionState, signal: TradeSignal, current_price: float
) -> LiveEstimate:
    """Estimate the managed R of a position at ``current_price``.

    Closed positions return their final managed R. Nothing is mutated; the
    estimate is never authoritative until the state is terminal.
    """
    if state.is_closed:
        total = state.managed_r if state.managed_r is not None else state.realized_r
        return LiveEstimate(
            realized_r=total,
            unrealized_r=0.0,
            live_managed_r=total,
            live_pnl_currency=total * state.risk_currency_snapshot,
        )

    if signal.stop_price is None:
        return LiveEstimate(0.0, 0.0, 0.0, 0.0)

    move_r = price_to_r(signal.direction, signal.entry_price, signal.stop_price, current_price)
    if state.status == ManagedStatus.PARTIAL_TP1_OPEN:
        unrealized = PARTIAL_FRACTION * move_r
    else:
        unrealized = move_r
    live = state.realized_r + unrealized
    return LiveEstimate(
        realized_r=state.realized_r,
        unrealized_r=unrealized,
        live_managed_r=live,
        live_pnl_currency=live * state.risk_currency_snapshot,
    )


def expiry_for(signal: TradeSignal, window_ms: int) -> int:
    """Managed window end for a signal."""
    return signal.entry_time + window_ms
