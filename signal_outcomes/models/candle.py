"""OHLC candle rows written by the market-data ingestor and read as bars."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from signal_outcomes.models.base import Base, BigIntPK


def timeframe_code(interval_min: int) -> str:
    """Map a bar interval in minutes to the stored timeframe code (M5, H1, D1)."""
    if interval_min % 1440 == 0:
        return f"D{interval_min // 1440}"
    if interval_min % 60 == 0:
        return f"H{interval_min // 60}"
    return f"M{interval_min}"


class Candle(Base):
    __tablename__ = "candles"

    __table_args__ = (
        UniqueConstraint("symbol", "timeframe", "timestamp", name="uq_candle_identity"),
        Index("idx_candles_lookup", "symbol", "timeframe", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(20))
    timeframe: Mapped[str] = mapped_column(String(5))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))  # bar open time
    open: Mapped[float] = mapped_column(Float)
    high: Mapped[float] = mapped_column(Float)
    low: Mapped[float] = mapped_column(Float)
    close: Mapped[float] = mapped_column(Float)
    volume: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
