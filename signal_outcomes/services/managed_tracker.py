"""Keeps persisted managed positions in step with the bar history."""

from loguru import logger
from pydantic import ValidationError

from signal_outcomes.config import ManagedConfig
from signal_outcomes.schemas.signal import TradeSignal
from signal_outcomes.services.candle_repository import BarProvider, fetch_bars_with_retry
from signal_outcomes.services.coverage_validator import align_down
from signal_outcomes.services.managed_position import (
    LiveEstimate,
    ManagedPositionState,
    expiry_for,
    project_live,
    simulate_managed_position,
)
from signal_outcomes.services.outcome_store import OutcomeStore, managed_state_from_row


class ManagedPositionTracker:
    """Recomputes the managed position of open signals and stores the result.

    Each refresh replays the whole history from the entry bar, so the
    result never depends on how often or when the tracker ran. Closed
    positions are read back and never recomputed.
    """

    def __init__(
        self,
        store: OutcomeStore,
        bar_provider: BarProvider,
        config: ManagedConfig,
    ) -> None:
        self.store = store
        self.bar_provider = bar_provider
        self.config = config

    async def refresh(self, signal: TradeSignal, now_ms: int) -> ManagedPositionState:
        existing = await self.store.load_managed(signal.signal_id)
        if existing is not None:
            stored = managed_state_from_row(existing)
            if stored.is_closed:
                return stored

        start = align_down(signal.entry_time, self.config.interval_min)
        expires_at = expiry_for(signal, self.config.window_ms)
        bars = await fetch_bars_with_retry(
            self.bar_provider,
            signal.symbol,
            self.config.interval_min,
            start,
            min(now_ms, expires_at),
        )
        state = simulate_managed_position(
            signal,
            bars,
            expires_at=expires_at,
            now_ms=now_ms,
            timeout_mode=self.config.timeout_mode,
            risk_per_trade=self.config.risk_per_trade,
            same_bar_policy=self.config.same_bar_policy,
        )

        written = await self.store.save_managed(state, computed_at=now_ms)
        if not written:
            # Another worker closed it first
            return managed_state_from_row(await self.store.load_managed(signal.signal_id))

        if state.is_closed:
            logger.info(
                "managed_tracker: closed signal_id={} status={} managed_r={:.2f} pnl={:.2f}",
                signal.signal_id,
                state.status.value,
                state.managed_r,
                state.managed_pnl_currency,
            )
        for conflict in state.same_bar_conflicts:
            logger.debug(
                "managed_tracker: same-bar conflict signal_id={} stage={} hits={} -> {}",
                signal.signal_id,
                conflict.stage,
                conflict.hits,
                conflict.resolution,
            )
        return state

    async def refresh_open(self, now_ms: int, limit: int) -> list[ManagedPositionState]:
        """Refresh up to ``limit`` signals whose managed position is still open."""
        rows = await self.store.list_open_managed_signals(limit)

        signals: list[TradeSignal] = []
        for row in rows:
            try:
                signals.append(row.to_trade_signal())
            except ValidationError:
                logger.exception("managed_tracker: invalid signal row signal_id={}", row.id)

        states: list[ManagedPositionState] = []
        for signal in signals:
            try:
                states.append(await self.refresh(signal, now_ms))
            except Exception:
                logger.exception(
                    "managed_tracker: refresh failed signal_id={}", signal.signal_id
                )
                await self.store.rollback()
        return states

    async def live_estimate(
        self, signal: TradeSignal, current_price: float
    ) -> LiveEstimate | None:
        """Project the stored position at ``current_price``; None if never computed."""
        row = await self.store.load_managed(signal.signal_id)
        if row is None:
            return None
        return project_live(managed_state_from_row(row), signal, current_price)
