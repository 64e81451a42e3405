"""Trade signal model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Float, String, func
from sqlalchemy.orm import Mapped, mapped_column

from signal_outcomes.models.base import Base, BigIntPK
from signal_outcomes.schemas.signal import TradeSignal


class Signal(Base):
    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(20))
    direction: Mapped[str] = mapped_column(String(5))  # "LONG" or "SHORT"
    entry_price: Mapped[float] = mapped_column(Float)
    stop_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tp1_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tp2_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    entry_time: Mapped[int] = mapped_column(BigInteger)  # epoch ms
    horizons: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def to_trade_signal(
        self, default_horizons: tuple[int, ...] = (15, 30, 60, 120, 240)
    ) -> TradeSignal:
        """Validate this row into the immutable record the engine consumes.

        Rows recorded without their own horizons get ``default_horizons``.
        """
        return TradeSignal(
            signal_id=self.id,
            symbol=self.symbol,
            direction=self.direction,
            entry_price=self.entry_price,
            stop_price=self.stop_price,
            tp1_price=self.tp1_price,
            tp2_price=self.tp2_price,
            entry_time=self.entry_time,
            horizons=tuple(self.horizons or default_horizons),
        )
