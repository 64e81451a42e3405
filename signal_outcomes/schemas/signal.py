"""Validated trade signal record consumed by the outcome engine."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from signal_outcomes.schemas.enums import Direction


class TradeSignal(BaseModel):
    """Immutable trade setup checked at the system boundary.

    ``stop_price`` may be missing: such a signal is accepted but cannot be
    evaluated (outcome records stay PENDING with reason MISSING_STOP).
    Missing targets disable the matching branch of the evaluators.
    """

    model_config = ConfigDict(frozen=True)

    signal_id: int = Field(gt=0)
    symbol: str = Field(min_length=1)
    direction: Direction
    entry_price: float = Field(gt=0)
    stop_price: float | None = Field(default=None, gt=0)
    tp1_price: float | None = Field(default=None, gt=0)
    tp2_price: float | None = Field(default=None, gt=0)
    entry_time: int = Field(ge=0)  # epoch ms
    horizons: tuple[int, ...] = (15, 30, 60, 120, 240)

    @field_validator("horizons")
    @classmethod
    def check_horizons(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("at least one horizon is required")
        if any(h <= 0 for h in value):
            raise ValueError(f"horizons must be positive minutes, got {value}")
        return tuple(sorted(set(value)))

    @model_validator(mode="after")
    def check_levels(self) -> "TradeSignal":
        """Reject levels sitting on the wrong side of entry for the direction."""
        sign = 1 if self.direction == Direction.LONG else -1
        entry = self.entry_price

        if self.stop_price is not None and sign * (entry - self.stop_price) <= 0:
            raise ValueError(
                f"stop {self.stop_price} must be on the risk side of entry {entry} "
                f"for a {self.direction.value} signal"
            )
        for name in ("tp1_price", "tp2_price"):
            level = getattr(self, name)
            if level is not None and sign * (level - entry) <= 0:
                raise ValueError(
                    f"{name} {level} must be on the profit side of entry {entry} "
                    f"for a {self.direction.value} signal"
                )
        if (
            self.tp1_price is not None
            and self.tp2_price is not None
            and sign * (self.tp2_price - self.tp1_price) <= 0
        ):
            raise ValueError("tp2_price must lie beyond tp1_price")
        return self

    @property
    def risk(self) -> float | None:
        """Distance entry→stop in price units (positive), or None without a stop."""
        if self.stop_price is None:
            return None
        return abs(self.entry_price - self.stop_price)
