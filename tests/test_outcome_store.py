"""Tests for OutcomeStore: seeding, conditional writes and managed rows."""

import pytest

from conftest import MINUTE, T0
from signal_outcomes.models.signal import Signal
from signal_outcomes.schemas.enums import ManagedStatus, RunnerExitReason
from signal_outcomes.services.managed_position import (
    ManagedPositionState,
    SameBarConflict,
)
from signal_outcomes.services.outcome_store import OutcomeStore, managed_state_from_row


async def _add_signal(session, **overrides) -> Signal:
    values = {
        "symbol": "BTCUSDT",
        "direction": "LONG",
        "entry_price": 100.0,
        "stop_price": 95.0,
        "tp1_price": 105.0,
        "tp2_price": 110.0,
        "entry_time": T0,
        "horizons": [15, 30],
    }
    values.update(overrides)
    row = Signal(**values)
    session.add(row)
    await session.commit()
    return row


def _closed_state(signal_id: int) -> ManagedPositionState:
    return ManagedPositionState(
        signal_id=signal_id,
        status=ManagedStatus.CLOSED_BE_AFTER_TP1,
        realized_r=0.5,
        managed_r=0.5,
        managed_pnl_currency=7.5,
        tp1_partial_at=T0 + 5 * MINUTE,
        runner_breakeven_at=T0 + 10 * MINUTE,
        runner_exit_at=T0 + 10 * MINUTE,
        runner_exit_reason=RunnerExitReason.BREAK_EVEN,
        timeout_exit_price=None,
        risk_currency_snapshot=15.0,
        last_price=100.0,
        same_bar_conflicts=(
            SameBarConflict("RUNNER", T0 + 10 * MINUTE, ("BE", "TP2"), "BE_WINS"),
        ),
    )


def _pending_state(signal_id: int) -> ManagedPositionState:
    return ManagedPositionState(
        signal_id=signal_id,
        status=ManagedStatus.PENDING,
        realized_r=0.0,
        managed_r=None,
        managed_pnl_currency=None,
        tp1_partial_at=None,
        runner_breakeven_at=None,
        runner_exit_at=None,
        runner_exit_reason=None,
        timeout_exit_price=None,
        risk_currency_snapshot=15.0,
    )


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session)

    assert await store.seed(signal.id, [15, 30]) == 2
    assert await store.seed(signal.id, [15, 30]) == 0

    records = await store.list_for_signal(signal.id)
    assert [r.horizon_min for r in records] == [15, 30]
    assert all(r.outcome_state == "PENDING" for r in records)
    assert all(r.attempted_at is None for r in records)


@pytest.mark.asyncio
async def test_finalize_is_compare_and_set(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session)
    await store.seed(signal.id, [15])
    record = await store.get(signal.id, 15)

    first, won_first = await store.finalize(
        record.id, {"outcome_state": "COMPLETE", "result": "WIN", "resolved_at": 1}
    )
    second, won_second = await store.finalize(
        record.id, {"outcome_state": "INVALID", "result": "NONE", "resolved_at": 2}
    )

    assert won_first is True
    assert won_second is False
    assert second.outcome_state == "COMPLETE"
    assert second.result == "WIN"
    assert second.resolved_at == 1


@pytest.mark.asyncio
async def test_stamp_attempt_ignores_final_rows(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session)
    await store.seed(signal.id, [15])
    record = await store.get(signal.id, 15)
    await store.finalize(record.id, {"outcome_state": "COMPLETE", "attempted_at": 5})

    stamped = await store.stamp_attempt(record.id, {"attempted_at": 99})

    assert stamped.attempted_at == 5


@pytest.mark.asyncio
async def test_list_pending_filters_due_and_orders_by_attempt(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session, horizons=[15, 30, 60])
    await store.seed(signal.id, [15, 30, 60])
    r15 = await store.get(signal.id, 15)
    await store.stamp_attempt(r15.id, {"attempted_at": T0 + 20 * MINUTE})

    pending = await store.list_pending(limit=10, due_at=T0 + 30 * MINUTE)

    # 60m not due yet; never-attempted 30m comes before 15m
    assert [(r.horizon_min, s.id) for r, s in pending] == [(30, signal.id), (15, signal.id)]


@pytest.mark.asyncio
async def test_managed_round_trip(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session)
    state = _closed_state(signal.id)

    assert await store.save_managed(state, computed_at=T0) is True

    row = await store.load_managed(signal.id)
    assert row.computed_at == T0
    assert managed_state_from_row(row) == state


@pytest.mark.asyncio
async def test_managed_terminal_rows_are_never_overwritten(db_session):
    store = OutcomeStore(db_session)
    signal = await _add_signal(db_session)

    assert await store.save_managed(_pending_state(signal.id), computed_at=1) is True
    assert await store.save_managed(_closed_state(signal.id), computed_at=2) is True
    assert await store.save_managed(_pending_state(signal.id), computed_at=3) is False

    row = await store.load_managed(signal.id)
    assert row.status == "CLOSED_BE_AFTER_TP1"
    assert row.computed_at == 2


@pytest.mark.asyncio
async def test_list_open_managed_signals(db_session):
    store = OutcomeStore(db_session)
    open_signal = await _add_signal(db_session)
    closed_signal = await _add_signal(db_session)
    await _add_signal(db_session, stop_price=None)
    await store.save_managed(_closed_state(closed_signal.id), computed_at=1)

    signals = await store.list_open_managed_signals(limit=10)

    assert [s.id for s in signals] == [open_signal.id]


def test_signal_table_holds_only_engine_fields():
    assert set(Signal.__table__.columns.keys()) == {
        "id",
        "symbol",
        "direction",
        "entry_price",
        "stop_price",
        "tp1_price",
        "tp2_price",
        "entry_time",
        "horizons",
        "created_at",
    }
