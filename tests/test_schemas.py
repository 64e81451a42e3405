"""Tests for boundary validation of signals and bar normalisation."""

from datetime import datetime, timezone

import pandas as pd
import pytest
from pydantic import ValidationError

from conftest import MINUTE, T0
from signal_outcomes.schemas.bar import Bar, bars_from_frame, normalize_bars
from signal_outcomes.schemas.enums import Direction
from signal_outcomes.schemas.signal import TradeSignal


def _payload(**overrides):
    values = {
        "signal_id": 7,
        "symbol": "ETHUSDT",
        "direction": "LONG",
        "entry_price": 100.0,
        "stop_price": 95.0,
        "tp1_price": 105.0,
        "tp2_price": 110.0,
        "entry_time": T0,
    }
    values.update(overrides)
    return values


class TestTradeSignal:
    def test_valid_long(self):
        signal = TradeSignal(**_payload())

        assert signal.direction == Direction.LONG
        assert signal.risk == 5.0
        assert signal.horizons == (15, 30, 60, 120, 240)

    def test_valid_short(self):
        signal = TradeSignal(
            **_payload(direction="SHORT", stop_price=105.0, tp1_price=95.0, tp2_price=90.0)
        )
        assert signal.risk == 5.0

    def test_missing_stop_is_accepted(self):
        signal = TradeSignal(**_payload(stop_price=None))
        assert signal.risk is None

    def test_horizons_sorted_and_deduplicated(self):
        signal = TradeSignal(**_payload(horizons=[60, 15, 60, 30]))
        assert signal.horizons == (15, 30, 60)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"stop_price": 101.0},
            {"tp1_price": 99.0},
            {"tp2_price": 104.0},
            {"direction": "SHORT"},
            {"entry_price": 0},
            {"horizons": []},
            {"horizons": [15, 0]},
            {"symbol": ""},
            {"direction": "FLAT"},
        ],
    )
    def test_rejects_bad_payloads(self, overrides):
        with pytest.raises(ValidationError):
            TradeSignal(**_payload(**overrides))

    def test_is_frozen(self):
        signal = TradeSignal(**_payload())
        with pytest.raises(ValidationError):
            signal.entry_price = 101.0


class TestNormalizeBars:
    def test_sorts_drops_early_and_keeps_last_duplicate(self):
        bars = [
            Bar(T0 + 10 * MINUTE, 1, 1, 1, 1),
            Bar(T0 - 5 * MINUTE, 2, 2, 2, 2),
            Bar(T0, 3, 3, 3, 3),
            Bar(T0 + 10 * MINUTE, 4, 4, 4, 4),
        ]
        result = normalize_bars(bars, T0)

        assert [b.time for b in result] == [T0, T0 + 10 * MINUTE]
        assert result[1].close == 4


class TestBarsFromFrame:
    def test_datetime_timestamps(self):
        frame = pd.DataFrame(
            {
                "timestamp": [
                    datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc),
                    datetime(2026, 1, 1, 0, 5, tzinfo=timezone.utc),
                ],
                "open": [100.0, 101.0],
                "high": [102.0, 103.0],
                "low": [99.0, 100.0],
                "close": [101.0, 102.0],
            }
        )
        bars = bars_from_frame(frame)

        assert [b.time for b in bars] == [T0, T0 + 5 * MINUTE]
        assert bars[0] == Bar(T0, 100.0, 102.0, 99.0, 101.0)

    def test_naive_datetimes_are_utc(self):
        frame = pd.DataFrame(
            {
                "timestamp": [datetime(2026, 1, 1, 0, 5)],
                "open": [1.0],
                "high": [1.0],
                "low": [1.0],
                "close": [1.0],
            }
        )
        assert bars_from_frame(frame)[0].time == T0 + 5 * MINUTE

    def test_integer_timestamps(self):
        frame = pd.DataFrame(
            {"timestamp": [T0], "open": [1], "high": [2], "low": [0.5], "close": [1.5]}
        )
        assert bars_from_frame(frame) == [Bar(T0, 1.0, 2.0, 0.5, 1.5)]

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Missing required columns"):
            bars_from_frame(pd.DataFrame({"timestamp": [T0], "open": [1.0]}))

    def test_empty_frame(self):
        frame = pd.DataFrame(columns=["timestamp", "open", "high", "low", "close"])
        assert bars_from_frame(frame) == []
