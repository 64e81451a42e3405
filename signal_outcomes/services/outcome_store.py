"""Persistence of outcome records and managed positions.

Every state transition is a conditional UPDATE: outcome rows are only
written while ``outcome_state = 'PENDING'`` and managed positions only
while their status is still open. Concurrent resolvers can therefore
race freely; the first finalising write wins and the others read it back.
"""

from dataclasses import asdict
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from signal_outcomes.models.managed_position import ManagedPosition
from signal_outcomes.models.outcome import OutcomeRecord
from signal_outcomes.models.signal import Signal
from signal_outcomes.schemas.enums import ManagedStatus, OutcomeState, RunnerExitReason
from signal_outcomes.services.coverage_validator import MINUTE_MS
from signal_outcomes.services.managed_position import (
    ManagedPositionState,
    SameBarConflict,
)

_OPEN_MANAGED = (ManagedStatus.PENDING.value, ManagedStatus.PARTIAL_TP1_OPEN.value)


def managed_state_from_row(row: ManagedPosition) -> ManagedPositionState:
    """Rebuild the pure state value from its persisted row."""
    return ManagedPositionState(
        signal_id=row.signal_id,
        status=ManagedStatus(row.status),
        realized_r=row.realized_r,
        managed_r=row.managed_r,
        managed_pnl_currency=row.managed_pnl_currency,
        tp1_partial_at=row.tp1_partial_at,
        runner_breakeven_at=row.runner_breakeven_at,
        runner_exit_at=row.runner_exit_at,
        runner_exit_reason=(
            RunnerExitReason(row.runner_exit_reason) if row.runner_exit_reason else None
        ),
        timeout_exit_price=row.timeout_exit_price,
        risk_currency_snapshot=row.risk_currency_snapshot,
        last_price=row.last_price,
        same_bar_conflicts=tuple(
            SameBarConflict(
                stage=c["stage"],
                bar_time=c["bar_time"],
                hits=tuple(c["hits"]),
                resolution=c["resolution"],
            )
            for c in (row.same_bar_conflicts or [])
        ),
    )


def _managed_values(state: ManagedPositionState, computed_at: int) -> dict[str, Any]:
    return {
        "status": state.status.value,
        "realized_r": state.realized_r,
        "managed_r": state.managed_r,
        "managed_pnl_currency": state.managed_pnl_currency,
        "tp1_partial_at": state.tp1_partial_at,
        "runner_breakeven_at": state.runner_breakeven_at,
        "runner_exit_at": state.runner_exit_at,
        "runner_exit_reason": (
            state.runner_exit_reason.value if state.runner_exit_reason else None
        ),
        "timeout_exit_price": state.timeout_exit_price,
        "risk_currency_snapshot": state.risk_currency_snapshot,
        "last_price": state.last_price,
        "same_bar_conflicts": [
            {**asdict(c), "hits": list(c.hits)} for c in state.same_bar_conflicts
        ],
        "computed_at": computed_at,
    }


class OutcomeStore:
    """Outcome and managed-position persistence bound to one async session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _insert(self, model):
        if self.session.bind.dialect.name == "sqlite":
            return sqlite_insert(model)
        return pg_insert(model)

    async def rollback(self) -> None:
        await self.session.rollback()

    # ------------------------------------------------------------------
    # Outcome records
    # ------------------------------------------------------------------

    async def seed(self, signal_id: int, horizons: tuple[int, ...] | list[int]) -> int:
        """Insert a PENDING row per horizon, skipping rows that already exist.

        Returns:
            Number of rows actually inserted.
        """
        if not horizons:
            return 0
        stmt = (
            self._insert(OutcomeRecord)
            .values(
                [
                    {
                        "signal_id": signal_id,
                        "horizon_min": horizon,
                        "window_status": "PARTIAL",
                        "outcome_state": OutcomeState.PENDING.value,
                        "result": "NONE",
                        "hit_sl": False,
                        "hit_tp1": False,
                        "hit_tp2": False,
                        "ambiguous": False,
                        "n_bars": 0,
                        "bars_expected": 0,
                        "coverage_pct": 0.0,
                    }
                    for horizon in horizons
                ]
            )
            .on_conflict_do_nothing(index_elements=["signal_id", "horizon_min"])
        )
        result = await self.session.execute(stmt)
        inserted = max(result.rowcount, 0)
        await self.session.commit()
        return inserted

    async def get(self, signal_id: int, horizon_min: int) -> OutcomeRecord | None:
        stmt = (
            select(OutcomeRecord)
            .where(
                OutcomeRecord.signal_id == signal_id,
                OutcomeRecord.horizon_min == horizon_min,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_signal(self, signal_id: int) -> list[OutcomeRecord]:
        stmt = (
            select(OutcomeRecord)
            .where(OutcomeRecord.signal_id == signal_id)
            .order_by(OutcomeRecord.horizon_min.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_pending(
        self, limit: int, due_at: int | None = None
    ) -> list[tuple[OutcomeRecord, Signal]]:
        """Return PENDING records with their signal, least recently attempted first.

        Args:
            limit: Maximum number of records.
            due_at: When given, only records whose horizon ended at or before
                this epoch-ms instant (entry_time + horizon) are returned.
        """
        stmt = (
            select(OutcomeRecord, Signal)
            .join(Signal, Signal.id == OutcomeRecord.signal_id)
            .where(OutcomeRecord.outcome_state == OutcomeState.PENDING.value)
        )
        if due_at is not None:
            stmt = stmt.where(
                Signal.entry_time + OutcomeRecord.horizon_min * MINUTE_MS <= due_at
            )
        stmt = stmt.order_by(
            OutcomeRecord.attempted_at.asc().nulls_first(),
            OutcomeRecord.id.asc(),
        ).limit(limit)
        result = await self.session.execute(stmt)
        return [(record, signal) for record, signal in result.all()]

    async def list_unseeded_signals(self) -> list[Signal]:
        """Signals that have no outcome rows yet.

        ``seed`` inserts every horizon of a signal in one statement, so a
        signal with any row has all of them.
        """
        stmt = (
            select(Signal)
            .outerjoin(OutcomeRecord, OutcomeRecord.signal_id == Signal.id)
            .where(OutcomeRecord.id.is_(None))
            .order_by(Signal.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_outcomes(self, outcome_state: OutcomeState | None = None) -> list[OutcomeRecord]:
        stmt = select(OutcomeRecord).order_by(OutcomeRecord.id.asc())
        if outcome_state is not None:
            stmt = stmt.where(OutcomeRecord.outcome_state == outcome_state.value)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def stamp_attempt(self, record_id: int, values: dict[str, Any]) -> OutcomeRecord:
        """Record a non-final attempt (attempted_at, reason, coverage) on a PENDING row."""
        stmt = (
            update(OutcomeRecord)
            .where(
                OutcomeRecord.id == record_id,
                OutcomeRecord.outcome_state == OutcomeState.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()
        return await self._reload(record_id)

    async def finalize(
        self, record_id: int, values: dict[str, Any]
    ) -> tuple[OutcomeRecord, bool]:
        """Compare-and-set a PENDING row to its final state.

        Returns:
            (record as stored, won). ``won`` is False when another writer
            finalised the row first; the stored row is then the winner's.
        """
        stmt = (
            update(OutcomeRecord)
            .where(
                OutcomeRecord.id == record_id,
                OutcomeRecord.outcome_state == OutcomeState.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        won = result.rowcount == 1
        await self.session.commit()
        return await self._reload(record_id), won

    async def _reload(self, record_id: int) -> OutcomeRecord:
        return await self.session.get(OutcomeRecord, record_id, populate_existing=True)

    # ------------------------------------------------------------------
    # Managed positions
    # ------------------------------------------------------------------

    async def load_managed(self, signal_id: int) -> ManagedPosition | None:
        stmt = (
            select(ManagedPosition)
            .where(ManagedPosition.signal_id == signal_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_managed(self, state: ManagedPositionState, computed_at: int) -> bool:
        """Persist a managed state unless the stored one is already terminal.

        Returns:
            True when the row was written.
        """
        values = _managed_values(state, computed_at)

        insert_stmt = (
            self._insert(ManagedPosition)
            .values(signal_id=state.signal_id, **values)
            .on_conflict_do_nothing(index_elements=["signal_id"])
        )
        result = await self.session.execute(insert_stmt)
        if result.rowcount == 1:
            await self.session.commit()
            return True

        update_stmt = (
            update(ManagedPosition)
            .where(
                ManagedPosition.signal_id == state.signal_id,
                ManagedPosition.status.in_(_OPEN_MANAGED),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(update_stmt)
        written = result.rowcount == 1
        await self.session.commit()
        return written

    async def list_open_managed_signals(self, limit: int) -> list[Signal]:
        """Signals with a stop whose managed position is missing or still open."""
        stmt = (
            select(Signal)
            .outerjoin(ManagedPosition, ManagedPosition.signal_id == Signal.id)
            .where(
                Signal.stop_price.is_not(None),
                (ManagedPosition.id.is_(None)) | (ManagedPosition.status.in_(_OPEN_MANAGED)),
            )
            .order_by(Signal.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_managed(self) -> list[ManagedPosition]:
        stmt = select(ManagedPosition).order_by(ManagedPosition.signal_id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
