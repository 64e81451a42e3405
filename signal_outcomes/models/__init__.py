"""ORM models package -- import all models so Alembic autogenerate discovers them."""

from signal_outcomes.models.base import Base
from signal_outcomes.models.candle import Candle
from signal_outcomes.models.managed_position import ManagedPosition
from signal_outcomes.models.outcome import OutcomeRecord
from signal_outcomes.models.signal import Signal

__all__ = [
    "Base",
    "Candle",
    "ManagedPosition",
    "OutcomeRecord",
    "Signal",
]
