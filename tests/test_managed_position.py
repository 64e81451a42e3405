"""Tests for the managed position simulator (TP1 partial, breakeven runner).

All tests are pure: bars in, state out, no database.
"""

import pytest

from conftest import MINUTE, T0
from signal_outcomes.schemas.bar import Bar
from signal_outcomes.schemas.enums import (
    Direction,
    ManagedStatus,
    RunnerExitReason,
    TimeoutMode,
)
from signal_outcomes.schemas.signal import TradeSignal
from signal_outcomes.services.managed_position import (
    expiry_for,
    project_live,
    simulate_managed_position,
)

EXPIRES = T0 + 60 * MINUTE
AFTER_EXPIRY = EXPIRES + MINUTE
BEFORE_EXPIRY = T0 + 30 * MINUTE


def _make_signal(direction=Direction.LONG, **overrides) -> TradeSignal:
    if direction == Direction.LONG:
        levels = {"stop_price": 95.0, "tp1_price": 105.0, "tp2_price": 110.0}
    else:
        levels = {"stop_price": 105.0, "tp1_price": 95.0, "tp2_price": 90.0}
    values = {
        "signal_id": 1,
        "symbol": "BTCUSDT",
        "direction": direction,
        "entry_price": 100.0,
        "entry_time": T0,
        **levels,
    }
    values.update(overrides)
    return TradeSignal(**values)


def _simulate(signal, bars, now=AFTER_EXPIRY, mode=TimeoutMode.MARKET_CLOSE):
    return simulate_managed_position(
        signal,
        bars,
        expires_at=EXPIRES,
        now_ms=now,
        timeout_mode=mode,
        risk_per_trade=15.0,
    )


def _bar(minutes, o, h, lo, c):
    return Bar(T0 + minutes * MINUTE, o, h, lo, c)


class TestPhaseOne:
    def test_stop_before_tp1_is_minus_one_r(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 101, 94, 96)])

        assert state.status == ManagedStatus.CLOSED_STOP
        assert state.managed_r == -1.0
        assert state.managed_pnl_currency == pytest.approx(-15.0)
        assert state.runner_exit_reason == RunnerExitReason.STOP_BEFORE_TP1
        assert state.tp1_partial_at is None
        assert state.is_closed

    def test_same_bar_stop_and_tp1_takes_the_stop(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 106, 94, 100)])

        assert state.status == ManagedStatus.CLOSED_STOP
        assert state.managed_r == -1.0
        assert len(state.same_bar_conflicts) == 1
        conflict = state.same_bar_conflicts[0]
        assert conflict.stage == "FULL_POSITION"
        assert conflict.resolution == "STOP_WINS"

    def test_no_tp1_before_expiry_stays_pending(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 103, 98, 102)], now=BEFORE_EXPIRY)

        assert state.status == ManagedStatus.PENDING
        assert state.managed_r is None
        assert state.last_price == 102

    def test_no_tp1_at_expiry_closes_full_position_at_market(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 103, 98, 102)])

        assert state.status == ManagedStatus.CLOSED_TIMEOUT
        assert state.managed_r == pytest.approx(0.4)
        assert state.runner_exit_reason == RunnerExitReason.TIMEOUT_MARKET
        assert state.timeout_exit_price == 102
        assert state.runner_exit_at == EXPIRES


class TestRunner:
    def test_tp1_then_tp2_is_one_and_a_half_r(self):
        bars = [_bar(0, 100, 106, 99, 104), _bar(5, 104, 111, 103, 110)]
        state = _simulate(_make_signal(), bars)

        assert state.status == ManagedStatus.CLOSED_TP2
        assert state.managed_r == pytest.approx(1.5)
        assert state.managed_pnl_currency == pytest.approx(22.5)
        assert state.tp1_partial_at == T0
        assert state.runner_exit_at == T0 + 5 * MINUTE
        assert state.runner_exit_reason == RunnerExitReason.TP2

    def test_tp1_then_breakeven_is_half_r(self):
        bars = [_bar(5, 100, 106, 99, 104), _bar(10, 104, 104, 99.5, 100)]
        state = _simulate(_make_signal(), bars)

        assert state.status == ManagedStatus.CLOSED_BE_AFTER_TP1
        assert state.managed_r == pytest.approx(0.5)
        assert state.tp1_partial_at == T0 + 5 * MINUTE
        assert state.runner_breakeven_at == T0 + 10 * MINUTE
        assert state.runner_exit_reason == RunnerExitReason.BREAK_EVEN

    def test_breakeven_is_only_checked_after_the_tp1_bar(self):
        # The TP1 bar itself dips below entry
        state = _simulate(_make_signal(), [_bar(0, 100, 106, 99, 104)], now=BEFORE_EXPIRY)

        assert state.status == ManagedStatus.PARTIAL_TP1_OPEN
        assert state.realized_r == pytest.approx(0.5)
        assert state.managed_r is None

    def test_same_bar_breakeven_and_tp2_takes_breakeven(self):
        bars = [_bar(0, 100, 106, 101, 104), _bar(5, 104, 111, 99, 105)]
        state = _simulate(_make_signal(), bars)

        assert state.status == ManagedStatus.CLOSED_BE_AFTER_TP1
        assert state.managed_r == pytest.approx(0.5)
        assert state.same_bar_conflicts[0].stage == "RUNNER"
        assert state.same_bar_conflicts[0].resolution == "BE_WINS"

    def test_timeout_market_close_at_entry_is_half_r(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 106, 99, 100)])

        assert state.status == ManagedStatus.CLOSED_TIMEOUT
        assert state.managed_r == pytest.approx(0.5)
        assert state.runner_exit_reason == RunnerExitReason.TIMEOUT_MARKET

    def test_timeout_market_close_values_runner_at_last_close(self):
        state = _simulate(_make_signal(), [_bar(0, 100, 106, 101, 104)])

        assert state.managed_r == pytest.approx(0.9)
        assert state.timeout_exit_price == 104

    def test_timeout_breakeven_assumed_is_half_r(self):
        state = _simulate(
            _make_signal(),
            [_bar(0, 100, 106, 101, 104)],
            mode=TimeoutMode.BREAKEVEN_ASSUMED,
        )

        assert state.status == ManagedStatus.CLOSED_TIMEOUT
        assert state.managed_r == pytest.approx(0.5)
        assert state.runner_exit_reason == RunnerExitReason.TIMEOUT_BREAKEVEN
        assert state.timeout_exit_price == 100.0

    def test_without_tp2_runner_only_exits_by_breakeven_or_timeout(self):
        bars = [_bar(0, 100, 106, 101, 104), _bar(5, 104, 130, 103, 125)]
        state = _simulate(_make_signal(tp2_price=None), bars, now=BEFORE_EXPIRY)

        assert state.status == ManagedStatus.PARTIAL_TP1_OPEN

    def test_bars_after_expiry_are_ignored(self):
        bars = [_bar(0, 100, 106, 101, 104), _bar(65, 104, 111, 103, 110)]
        state = _simulate(_make_signal(), bars)

        assert state.status == ManagedStatus.CLOSED_TIMEOUT
        assert state.managed_r == pytest.approx(0.9)

    def test_short_tp1_then_tp2(self):
        bars = [_bar(0, 100, 101, 94, 96), _bar(5, 96, 99, 89, 90)]
        state = _simulate(_make_signal(Direction.SHORT), bars)

        assert state.status == ManagedStatus.CLOSED_TP2
        assert state.managed_r == pytest.approx(1.5)


class TestInputs:
    def test_missing_stop_is_pending(self):
        signal = _make_signal(stop_price=None)
        state = _simulate(signal, [_bar(0, 100, 106, 94, 100)])

        assert state.status == ManagedStatus.PENDING

    def test_no_bars_is_pending(self):
        assert _simulate(_make_signal(), []).status == ManagedStatus.PENDING

    def test_bars_before_entry_are_ignored(self):
        bars = [_bar(-5, 100, 101, 90, 92), _bar(0, 100, 106, 101, 104)]
        state = _simulate(_make_signal(), bars, now=BEFORE_EXPIRY)

        assert state.status == ManagedStatus.PARTIAL_TP1_OPEN

    def test_recomputation_is_pure(self):
        bars = [_bar(5, 100, 106, 99, 104), _bar(10, 104, 104, 99.5, 100)]
        signal = _make_signal()

        assert _simulate(signal, bars) == _simulate(signal, list(reversed(bars)))

    def test_expiry_for(self):
        assert expiry_for(_make_signal(), 60 * MINUTE) == EXPIRES


class TestProjectLive:
    def test_open_runner_counts_half_of_the_move(self):
        signal = _make_signal()
        state = _simulate(signal, [_bar(0, 100, 106, 101, 104)], now=BEFORE_EXPIRY)
        live = project_live(state, signal, 108.0)

        assert live.realized_r == pytest.approx(0.5)
        assert live.unrealized_r == pytest.approx(0.8)
        assert live.live_managed_r == pytest.approx(1.3)
        assert live.live_pnl_currency == pytest.approx(19.5)
        assert state.status == ManagedStatus.PARTIAL_TP1_OPEN

    def test_pending_counts_the_full_move(self):
        signal = _make_signal()
        state = _simulate(signal, [_bar(0, 100, 103, 98, 102)], now=BEFORE_EXPIRY)

        assert project_live(state, signal, 97.0).live_managed_r == pytest.approx(-0.6)

    def test_closed_position_returns_final_r(self):
        signal = _make_signal()
        state = _simulate(signal, [_bar(0, 100, 101, 94, 96)])

        live = project_live(state, signal, 200.0)
        assert live.live_managed_r == -1.0
        assert live.unrealized_r == 0.0
