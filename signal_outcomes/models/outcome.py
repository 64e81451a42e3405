"""Per-horizon signal outcome model.

One row per (signal_id, horizon_min). Rows are seeded PENDING when the
signal is recorded and finalised exactly once, to COMPLETE or INVALID.
All time columns are epoch milliseconds.
"""

from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from signal_outcomes.models.base import Base, BigIntPK
from signal_outcomes.schemas.enums import OutcomeState


class OutcomeRecord(Base):
    __tablename__ = "signal_outcomes"

    __table_args__ = (
        UniqueConstraint("signal_id", "horizon_min", name="uq_outcome_signal_horizon"),
        Index("idx_outcomes_state_horizon", "outcome_state", "horizon_min"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    signal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("signals.id"))
    horizon_min: Mapped[int] = mapped_column(Integer)

    # Window coverage
    window_status: Mapped[str] = mapped_column(String(10), default="PARTIAL")
    invalid_reason: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    window_start: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    window_end: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    n_bars: Mapped[int] = mapped_column(Integer, default=0)
    bars_expected: Mapped[int] = mapped_column(Integer, default=0)
    coverage_pct: Mapped[float] = mapped_column(Float, default=0.0)

    # Resolution
    outcome_state: Mapped[str] = mapped_column(String(10), default=OutcomeState.PENDING.value)
    result: Mapped[str] = mapped_column(String(5), default="NONE")  # WIN, LOSS, FLAT, NONE
    exit_reason: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    exit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    exit_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    hit_sl: Mapped[bool] = mapped_column(Boolean, default=False)
    hit_tp1: Mapped[bool] = mapped_column(Boolean, default=False)
    hit_tp2: Mapped[bool] = mapped_column(Boolean, default=False)
    ambiguous: Mapped[bool] = mapped_column(Boolean, default=False)
    first_touch_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Metrics
    ret_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    r_multiple: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    r_mfe: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    r_mae: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mfe_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mae_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Bookkeeping
    attempted_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    computed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    resolved_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.outcome_state == OutcomeState.PENDING.value
