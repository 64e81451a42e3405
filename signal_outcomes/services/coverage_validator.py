"""Window coverage validation for horizon evaluation.

Decides whether the bars received for a horizon window are complete and
on the interval grid before any price outcome is trusted:

- fewer bars than expected              -> PARTIAL / NOT_ENOUGH_BARS
- enough bars, but a slot is off-grid   -> PARTIAL / BAD_ALIGN
- every slot present at start + k*step  -> COMPLETE

A PARTIAL window must never be finalised as a COMPLETE outcome.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from signal_outcomes.schemas.bar import Bar
from signal_outcomes.schemas.enums import InvalidReason, WindowStatus

MINUTE_MS = 60_000


@dataclass(frozen=True)
class WindowCoverage:
    """Coverage verdict for one horizon window.

    ``bars`` is the aligned slice to evaluate (exactly ``expected`` bars)
    when COMPLETE, otherwise whatever bars fell inside the window.
    """

    window_status: WindowStatus
    invalid_reason: InvalidReason | None
    bars: list[Bar]
    window_start: int
    window_end: int
    n_bars: int
    expected: int

    @property
    def coverage_pct(self) -> float:
        if self.expected <= 0:
            return 0.0
        return min(self.n_bars, self.expected) / self.expected * 100

    @property
    def is_complete(self) -> bool:
        return self.window_status == WindowStatus.COMPLETE


def expected_bar_count(horizon_min: int, interval_min: int) -> int:
    """Number of bars covering ``horizon_min`` at ``interval_min`` (ceil division)."""
    return (horizon_min + interval_min - 1) // interval_min


def align_down(ts: int, interval_min: int) -> int:
    """Floor an epoch-ms timestamp onto the interval grid."""
    step = interval_min * MINUTE_MS
    return ts - ts % step


def validate_window(
    window_start: int,
    horizon_min: int,
    interval_min: int,
    bars: Sequence[Bar],
) -> WindowCoverage:
    """Classify coverage of ``bars`` for the window starting at ``window_start``.

    Args:
        window_start: First expected bar open time (epoch ms, on the grid).
        horizon_min: Horizon length in minutes.
        interval_min: Bar interval in minutes.
        bars: Bars received for the window, ascending and de-duplicated.
              Bars outside [start, start + expected*step) are ignored.

    Returns:
        WindowCoverage with status, reason and the slice to evaluate.
    """
    step = interval_min * MINUTE_MS
    expected = expected_bar_count(horizon_min, interval_min)
    window_end = window_start + (expected - 1) * step

    in_window = [b for b in bars if window_start <= b.time < window_start + expected * step]
    n_bars = len(in_window)

    if n_bars < expected:
        return WindowCoverage(
            window_status=WindowStatus.PARTIAL,
            invalid_reason=InvalidReason.NOT_ENOUGH_BARS,
            bars=in_window,
            window_start=window_start,
            window_end=window_end,
            n_bars=n_bars,
            expected=expected,
        )

    head = in_window[:expected]
    aligned = all(bar.time == window_start + k * step for k, bar in enumerate(head))
    if not aligned:
        return WindowCoverage(
            window_status=WindowStatus.PARTIAL,
            invalid_reason=InvalidReason.BAD_ALIGN,
            bars=in_window,
            window_start=window_start,
            window_end=window_end,
            n_bars=n_bars,
            expected=expected,
        )

    return WindowCoverage(
        window_status=WindowStatus.COMPLETE,
        invalid_reason=None,
        bars=head,
        window_start=window_start,
        window_end=window_end,
        n_bars=n_bars,
        expected=expected,
    )
