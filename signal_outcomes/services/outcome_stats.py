"""Per-horizon summary of resolved outcomes."""

from collections.abc import Iterable

import pandas as pd

from signal_outcomes.schemas.enums import OutcomeResult, OutcomeState

SUMMARY_COLUMNS = [
    "horizon_min",
    "count",
    "wins",
    "losses",
    "flats",
    "ambiguous",
    "win_rate",
    "avg_r",
    "avg_mfe_r",
    "avg_mae_r",
]


def outcomes_to_dataframe(records: Iterable) -> pd.DataFrame:
    """Flatten outcome records into a DataFrame (one row per signal/horizon)."""
    rows = [
        {
            "signal_id": r.signal_id,
            "horizon_min": r.horizon_min,
            "outcome_state": r.outcome_state,
            "result": r.result,
            "ambiguous": bool(r.ambiguous),
            "r_multiple": r.r_multiple,
            "r_mfe": r.r_mfe,
            "r_mae": r.r_mae,
        }
        for r in records
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "signal_id",
            "horizon_min",
            "outcome_state",
            "result",
            "ambiguous",
            "r_multiple",
            "r_mfe",
            "r_mae",
        ],
    )


def summarize_by_horizon(records: Iterable) -> pd.DataFrame:
    """Summarise COMPLETE outcomes per horizon.

    Win rate is wins / (wins + losses); FLAT results do not count as
    decided trades. Horizons without a decided trade get a NaN win rate.

    Returns:
        DataFrame with SUMMARY_COLUMNS, sorted by horizon.
    """
    df = outcomes_to_dataframe(records)
    df = df[df["outcome_state"] == OutcomeState.COMPLETE.value]
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = df.assign(
        is_win=df["result"] == OutcomeResult.WIN.value,
        is_loss=df["result"] == OutcomeResult.LOSS.value,
        is_flat=df["result"] == OutcomeResult.FLAT.value,
    )
    summary = (
        df.groupby("horizon_min")
        .agg(
            count=("signal_id", "size"),
            wins=("is_win", "sum"),
            losses=("is_loss", "sum"),
            flats=("is_flat", "sum"),
            ambiguous=("ambiguous", "sum"),
            avg_r=("r_multiple", "mean"),
            avg_mfe_r=("r_mfe", "mean"),
            avg_mae_r=("r_mae", "mean"),
        )
        .reset_index()
    )
    decided = summary["wins"] + summary["losses"]
    summary["win_rate"] = (summary["wins"] / decided.where(decided > 0)).astype(float)
    return summary[SUMMARY_COLUMNS].sort_values("horizon_min").reset_index(drop=True)
