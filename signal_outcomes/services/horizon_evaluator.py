"""Single-horizon outcome evaluator: first touch of stop vs. target.

Replays an ordered bar slice once and reports which of stop or target was
touched first. The raw evaluator models a one-shot trade with a single
take-profit: TP1 is the target, TP2 is only used when TP1 is absent.

Stop and target touching in the same bar always resolves to STOP with
``ambiguous=True`` (pessimistic tie-break, SameBarPolicy.CONSERVATIVE),
whatever the relative size of the two touches.

Excursions (MFE/MAE) are tracked over the whole slice regardless of when
the trade exits, so they stay comparable across exits.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from signal_outcomes.schemas.bar import Bar
from signal_outcomes.schemas.enums import (
    Direction,
    ExitReason,
    LevelKind,
    OutcomeResult,
    SameBarPolicy,
)
from signal_outcomes.services.touch_detector import price_to_r, touched


@dataclass(frozen=True)
class HorizonEvaluation:
    """Raw first-touch result for one (signal, horizon) pair."""

    result: OutcomeResult
    exit_reason: ExitReason
    exit_price: float
    exit_time: int | None
    first_touch_time: int | None
    hit_sl: bool
    hit_tp1: bool
    hit_tp2: bool
    ambiguous: bool
    ret_pct: float
    r_multiple: float
    r_mfe: float
    r_mae: float
    mfe_pct: float
    mae_pct: float
    bars_evaluated: int


def _ret_pct(direction: Direction, entry: float, price: float) -> float:
    if entry == 0:
        return 0.0
    move = price - entry if direction == Direction.LONG else entry - price
    return move / entry * 100


def evaluate_horizon(
    direction: Direction,
    entry: float,
    stop: float,
    tp1: float | None,
    tp2: float | None,
    bars: Sequence[Bar],
    window_elapsed: bool,
    same_bar_policy: SameBarPolicy = SameBarPolicy.CONSERVATIVE,
) -> HorizonEvaluation:
    """Evaluate one horizon window.

    Args:
        direction: LONG or SHORT.
        entry: Entry price.
        stop: Stop price (required; callers skip signals without one).
        tp1: First target, primary target of the raw evaluation.
        tp2: Second target, only a target when tp1 is None.
        bars: Bars restricted to the horizon window, ascending by time.
        window_elapsed: Whether the full horizon has elapsed. Decides
            FLAT (elapsed, no touch) versus NONE (still open, no touch).
        same_bar_policy: Tie-break for stop and target in one bar.

    Returns:
        HorizonEvaluation with exit decision and excursion metrics.
    """
    if same_bar_policy != SameBarPolicy.CONSERVATIVE:
        raise ValueError(f"Unsupported same-bar policy: {same_bar_policy}")

    target, target_reason = (tp1, ExitReason.TP1) if tp1 is not None else (tp2, ExitReason.TP2)
    is_long = direction == Direction.LONG

    exit_reason = ExitReason.NONE
    exit_price = bars[-1].close if bars else entry
    exit_time: int | None = None
    ambiguous = False
    hit_sl = hit_tp1 = hit_tp2 = False

    best_price = entry
    worst_price = entry

    for bar in bars:
        favorable = bar.high if is_long else bar.low
        adverse = bar.low if is_long else bar.high
        if price_to_r(direction, entry, stop, favorable) > price_to_r(direction, entry, stop, best_price):
            best_price = favorable
        if price_to_r(direction, entry, stop, adverse) < price_to_r(direction, entry, stop, worst_price):
            worst_price = adverse

        if exit_reason != ExitReason.NONE:
            continue

        stop_hit = touched(direction, bar, stop, LevelKind.STOP)
        tp1_hit = tp1 is not None and touched(direction, bar, tp1, LevelKind.TP)
        tp2_hit = tp2 is not None and touched(direction, bar, tp2, LevelKind.TP)
        hit_sl = hit_sl or stop_hit
        hit_tp1 = hit_tp1 or tp1_hit
        hit_tp2 = hit_tp2 or tp2_hit
        target_hit = tp1_hit if target_reason == ExitReason.TP1 else tp2_hit

        if stop_hit:
            # Conservative: stop wins a same-bar tie with the target.
            ambiguous = target_hit
            exit_reason = ExitReason.STOP
            exit_price = stop
            exit_time = bar.time
        elif target_hit:
            exit_reason = target_reason
            exit_price = target
            exit_time = bar.time

    if exit_reason == ExitReason.STOP:
        result = OutcomeResult.LOSS
    elif exit_reason in (ExitReason.TP1, ExitReason.TP2):
        result = OutcomeResult.WIN
    elif window_elapsed:
        result = OutcomeResult.FLAT
    else:
        result = OutcomeResult.NONE

    return HorizonEvaluation(
        result=result,
        exit_reason=exit_reason,
        exit_price=exit_price,
        exit_time=exit_time if exit_time is not None else (bars[-1].time if bars else None),
        first_touch_time=exit_time,
        hit_sl=hit_sl,
        hit_tp1=hit_tp1,
        hit_tp2=hit_tp2,
        ambiguous=ambiguous,
        ret_pct=_ret_pct(direction, entry, exit_price),
        r_multiple=price_to_r(direction, entry, stop, exit_price),
        r_mfe=price_to_r(direction, entry, stop, best_price),
        r_mae=price_to_r(direction, entry, stop, worst_price),
        mfe_pct=_ret_pct(direction, entry, best_price),
        mae_pct=_ret_pct(direction, entry, worst_price),
        bars_evaluated=len(bars),
    )
