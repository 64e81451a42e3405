"""Managed position (TP1 partial + breakeven runner) persisted per signal."""

from typing import Optional

from sqlalchemy import JSON, BigInteger, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from signal_outcomes.models.base import Base, BigIntPK


class ManagedPosition(Base):
    __tablename__ = "managed_positions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    signal_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("signals.id"), unique=True
    )
    status: Mapped[str] = mapped_column(String(24), default="PENDING")
    realized_r: Mapped[float] = mapped_column(Float, default=0.0)
    managed_r: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    managed_pnl_currency: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tp1_partial_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    runner_breakeven_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    runner_exit_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    runner_exit_reason: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    timeout_exit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    risk_currency_snapshot: Mapped[float] = mapped_column(Float)
    last_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    same_bar_conflicts: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    computed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # epoch ms
