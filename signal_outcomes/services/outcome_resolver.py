"""Multi-horizon outcome resolver.

Drives each (signal, horizon) record from PENDING to a final state:

1. Record missing            -> seed it.  Not PENDING -> return as stored.
2. Signal has no stop        -> stamp attempt, MISSING_STOP, stay PENDING.
3. Horizon not over yet      -> nothing to do (entry + horizon + grace).
4. Attempted recently        -> nothing to do (retry throttle).
5. Fetch bars, validate coverage of the window.
6. COMPLETE window           -> evaluate, finalise COMPLETE.
7. PARTIAL, still young      -> stamp attempt with the reason, stay PENDING.
8. PARTIAL past threshold    -> finalise INVALID.

Finalising writes are compare-and-set on ``outcome_state = 'PENDING'``,
so a record resolves exactly once no matter how many workers poll it.
The clock is always passed in (``now_ms``); nothing here reads wall time.
"""

from typing import Any

from loguru import logger
from pydantic import ValidationError

from signal_outcomes.config import ResolverConfig
from signal_outcomes.models.outcome import OutcomeRecord
from signal_outcomes.schemas.bar import normalize_bars
from signal_outcomes.schemas.enums import InvalidReason, OutcomeState, WindowStatus
from signal_outcomes.schemas.signal import TradeSignal
from signal_outcomes.services.candle_repository import BarProvider, fetch_bars_with_retry
from signal_outcomes.services.coverage_validator import (
    MINUTE_MS,
    WindowCoverage,
    align_down,
    expected_bar_count,
    validate_window,
)
from signal_outcomes.services.horizon_evaluator import HorizonEvaluation, evaluate_horizon
from signal_outcomes.services.outcome_store import OutcomeStore


def _coverage_values(coverage: WindowCoverage) -> dict[str, Any]:
    return {
        "window_status": coverage.window_status.value,
        "invalid_reason": (
            coverage.invalid_reason.value if coverage.invalid_reason else None
        ),
        "window_start": coverage.window_start,
        "window_end": coverage.window_end,
        "n_bars": coverage.n_bars,
        "bars_expected": coverage.expected,
        "coverage_pct": coverage.coverage_pct,
    }


def _evaluation_values(evaluation: HorizonEvaluation) -> dict[str, Any]:
    return {
        "result": evaluation.result.value,
        "exit_reason": evaluation.exit_reason.value,
        "exit_price": evaluation.exit_price,
        "exit_time": evaluation.exit_time,
        "first_touch_time": evaluation.first_touch_time,
        "hit_sl": evaluation.hit_sl,
        "hit_tp1": evaluation.hit_tp1,
        "hit_tp2": evaluation.hit_tp2,
        "ambiguous": evaluation.ambiguous,
        "ret_pct": evaluation.ret_pct,
        "r_multiple": evaluation.r_multiple,
        "r_mfe": evaluation.r_mfe,
        "r_mae": evaluation.r_mae,
        "mfe_pct": evaluation.mfe_pct,
        "mae_pct": evaluation.mae_pct,
    }


class OutcomeResolver:
    """Resolves horizon outcomes for signals against a bar provider.

    Attributes:
        store: OutcomeStore bound to the caller's session.
        bar_provider: Source of OHLC bars.
        config: Interval, grace, retry and invalidation settings.
    """

    def __init__(
        self,
        store: OutcomeStore,
        bar_provider: BarProvider,
        config: ResolverConfig,
    ) -> None:
        self.store = store
        self.bar_provider = bar_provider
        self.config = config

    async def seed_signal(self, signal: TradeSignal) -> int:
        """Create a PENDING record for every horizon of the signal (idempotent)."""
        inserted = await self.store.seed(signal.signal_id, signal.horizons)
        if inserted:
            logger.info(
                "outcome_resolver: seeded {} records signal_id={} horizons={}",
                inserted,
                signal.signal_id,
                list(signal.horizons),
            )
        return inserted

    async def seed_new_signals(self) -> int:
        """Seed every stored signal that has no outcome rows yet.

        Returns:
            Number of records inserted.
        """
        rows = await self.store.list_unseeded_signals()

        signals: list[TradeSignal] = []
        for row in rows:
            try:
                signals.append(row.to_trade_signal(self.config.horizons))
            except ValidationError:
                logger.exception("outcome_resolver: invalid signal row signal_id={}", row.id)

        inserted = 0
        for signal in signals:
            inserted += await self.seed_signal(signal)
        return inserted

    async def resolve(self, signal: TradeSignal, horizon_min: int, now_ms: int) -> OutcomeRecord:
        """Make one resolution attempt for a single horizon.

        Returns:
            The record as stored after the attempt.
        """
        record = await self.store.get(signal.signal_id, horizon_min)
        if record is None:
            await self.store.seed(signal.signal_id, [horizon_min])
            record = await self.store.get(signal.signal_id, horizon_min)
        if not record.is_pending:
            return record

        if signal.stop_price is None:
            if self._throttled(record, now_ms):
                return record
            logger.warning(
                "outcome_resolver: missing stop signal_id={} horizon={}",
                signal.signal_id,
                horizon_min,
            )
            return await self.store.stamp_attempt(
                record.id,
                {
                    "attempted_at": now_ms,
                    "invalid_reason": InvalidReason.MISSING_STOP.value,
                },
            )

        horizon_end = signal.entry_time + horizon_min * MINUTE_MS
        if now_ms < horizon_end + self.config.grace_ms:
            return record
        if self._throttled(record, now_ms):
            return record

        interval = self.config.interval_min
        window_start = align_down(signal.entry_time, interval)
        step = interval * MINUTE_MS
        fetch_end = window_start + expected_bar_count(horizon_min, interval) * step - 1

        try:
            raw_bars = await fetch_bars_with_retry(
                self.bar_provider, signal.symbol, interval, window_start, fetch_end
            )
        except Exception:
            logger.exception(
                "outcome_resolver: bar fetch failed signal_id={} horizon={}",
                signal.signal_id,
                horizon_min,
            )
            return await self.store.stamp_attempt(record.id, {"attempted_at": now_ms})

        bars = normalize_bars(raw_bars, window_start)
        coverage = validate_window(window_start, horizon_min, interval, bars)

        if coverage.window_status == WindowStatus.COMPLETE:
            evaluation = evaluate_horizon(
                signal.direction,
                signal.entry_price,
                signal.stop_price,
                signal.tp1_price,
                signal.tp2_price,
                coverage.bars,
                window_elapsed=True,
                same_bar_policy=self.config.same_bar_policy,
            )
            values = {
                **_coverage_values(coverage),
                **_evaluation_values(evaluation),
                "outcome_state": OutcomeState.COMPLETE.value,
                "attempted_at": now_ms,
                "computed_at": now_ms,
                "resolved_at": now_ms,
            }
            return await self._finalize(record, values, signal, horizon_min)

        if now_ms >= horizon_end + self.config.invalidate_after_ms:
            values = {
                **_coverage_values(coverage),
                "outcome_state": OutcomeState.INVALID.value,
                "result": "NONE",
                "attempted_at": now_ms,
                "computed_at": now_ms,
                "resolved_at": now_ms,
            }
            return await self._finalize(record, values, signal, horizon_min)

        logger.info(
            "outcome_resolver: window partial signal_id={} horizon={} reason={} bars={}/{}",
            signal.signal_id,
            horizon_min,
            coverage.invalid_reason.value,
            coverage.n_bars,
            coverage.expected,
        )
        return await self.store.stamp_attempt(
            record.id, {**_coverage_values(coverage), "attempted_at": now_ms}
        )

    async def resolve_signal(self, signal: TradeSignal, now_ms: int) -> list[OutcomeRecord]:
        """Attempt every horizon of a signal."""
        return [await self.resolve(signal, horizon, now_ms) for horizon in signal.horizons]

    async def resolve_pending(self, now_ms: int, limit: int) -> list[OutcomeRecord]:
        """Seed new signals, then attempt up to ``limit`` due PENDING records.

        One failing record is logged and skipped; the rest of the batch runs.
        """
        await self.seed_new_signals()
        batch = await self.store.list_pending(limit, due_at=now_ms - self.config.grace_ms)

        # Rows expire on rollback, so take plain values before any write
        work: list[tuple[TradeSignal, int]] = []
        for record, signal_row in batch:
            try:
                signal = signal_row.to_trade_signal(self.config.horizons)
                work.append((signal, record.horizon_min))
            except ValidationError:
                logger.exception(
                    "outcome_resolver: invalid signal row signal_id={}", record.signal_id
                )

        resolved: list[OutcomeRecord] = []
        for signal, horizon_min in work:
            try:
                resolved.append(await self.resolve(signal, horizon_min, now_ms))
            except Exception:
                logger.exception(
                    "outcome_resolver: resolve failed signal_id={} horizon={}",
                    signal.signal_id,
                    horizon_min,
                )
                await self.store.rollback()
        return resolved

    def _throttled(self, record: OutcomeRecord, now_ms: int) -> bool:
        return (
            record.attempted_at is not None
            and now_ms - record.attempted_at < self.config.retry_after_ms
        )

    async def _finalize(
        self,
        record: OutcomeRecord,
        values: dict[str, Any],
        signal: TradeSignal,
        horizon_min: int,
    ) -> OutcomeRecord:
        stored, won = await self.store.finalize(record.id, values)
        if won:
            logger.info(
                "outcome_resolver: {} signal_id={} horizon={} result={} exit={} r={}",
                stored.outcome_state,
                signal.signal_id,
                horizon_min,
                stored.result,
                stored.exit_reason,
                stored.r_multiple,
            )
        else:
            logger.info(
                "outcome_resolver: lost finalise race signal_id={} horizon={} stored={}",
                signal.signal_id,
                horizon_min,
                stored.outcome_state,
            )
        return stored
