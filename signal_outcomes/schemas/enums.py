"""String enums shared by the evaluators, ORM models and settings."""

from enum import Enum


class Direction(str, Enum):
    """Trade direction."""

    LONG = "LONG"
    SHORT = "SHORT"


class LevelKind(str, Enum):
    """Kind of price level checked by the touch detector."""

    STOP = "STOP"
    TP = "TP"
    BREAKEVEN = "BREAKEVEN"


class WindowStatus(str, Enum):
    PARTIAL = "PARTIAL"
    COMPLETE = "COMPLETE"


class InvalidReason(str, Enum):
    NOT_ENOUGH_BARS = "NOT_ENOUGH_BARS"
    BAD_ALIGN = "BAD_ALIGN"
    MISSING_STOP = "MISSING_STOP"


class OutcomeState(str, Enum):
    """Lifecycle of an outcome record. PENDING is the only non-terminal state."""

    PENDING = "PENDING"
    COMPLETE = "COMPLETE"
    INVALID = "INVALID"


class OutcomeResult(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    FLAT = "FLAT"
    NONE = "NONE"


class ExitReason(str, Enum):
    TP1 = "TP1"
    TP2 = "TP2"
    STOP = "STOP"
    NONE = "NONE"


class ManagedStatus(str, Enum):
    """Managed position lifecycle. Every CLOSED_* value is terminal."""

    PENDING = "PENDING"
    PARTIAL_TP1_OPEN = "PARTIAL_TP1_OPEN"
    CLOSED_STOP = "CLOSED_STOP"
    CLOSED_TP2 = "CLOSED_TP2"
    CLOSED_BE_AFTER_TP1 = "CLOSED_BE_AFTER_TP1"
    CLOSED_TIMEOUT = "CLOSED_TIMEOUT"

    @property
    def is_terminal(self) -> bool:
        return self.value.startswith("CLOSED_")


class RunnerExitReason(str, Enum):
    TP2 = "TP2"
    BREAK_EVEN = "BREAK_EVEN"
    TIMEOUT_MARKET = "TIMEOUT_MARKET"
    TIMEOUT_BREAKEVEN = "TIMEOUT_BREAKEVEN"
    STOP_BEFORE_TP1 = "STOP_BEFORE_TP1"


class TimeoutMode(str, Enum):
    """How an open runner is valued when the managed window expires."""

    MARKET_CLOSE = "MARKET_CLOSE"
    BREAKEVEN_ASSUMED = "BREAKEVEN_ASSUMED"


class SameBarPolicy(str, Enum):
    """Tie-break when a protective level and a target touch in one bar.

    CONSERVATIVE: the protective level (stop, or breakeven for the runner)
    is assumed to have been hit first.
    """

    CONSERVATIVE = "CONSERVATIVE"
