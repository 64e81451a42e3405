"""Tests for direction-aware level touches and R conversion."""

import pytest

from signal_outcomes.schemas.bar import Bar
from signal_outcomes.schemas.enums import Direction, LevelKind
from signal_outcomes.services.touch_detector import price_to_r, touched

BAR = Bar(time=0, open=100.0, high=106.0, low=96.0, close=101.0)


class TestTouched:
    def test_long_stop_touched_at_or_below_low(self):
        assert touched(Direction.LONG, BAR, 96.0, LevelKind.STOP)
        assert touched(Direction.LONG, BAR, 97.0, LevelKind.STOP)
        assert not touched(Direction.LONG, BAR, 95.9, LevelKind.STOP)

    def test_long_tp_touched_at_or_above_high(self):
        assert touched(Direction.LONG, BAR, 106.0, LevelKind.TP)
        assert not touched(Direction.LONG, BAR, 106.1, LevelKind.TP)

    def test_long_breakeven_behaves_like_stop(self):
        assert touched(Direction.LONG, BAR, 100.0, LevelKind.BREAKEVEN)
        assert not touched(Direction.LONG, BAR, 95.0, LevelKind.BREAKEVEN)

    def test_short_stop_touched_at_or_above_high(self):
        assert touched(Direction.SHORT, BAR, 106.0, LevelKind.STOP)
        assert not touched(Direction.SHORT, BAR, 107.0, LevelKind.STOP)

    def test_short_tp_touched_at_or_below_low(self):
        assert touched(Direction.SHORT, BAR, 96.0, LevelKind.TP)
        assert touched(Direction.SHORT, BAR, 99.0, LevelKind.TP)
        assert not touched(Direction.SHORT, BAR, 95.0, LevelKind.TP)

    def test_short_breakeven_touched_when_price_returns_up(self):
        assert touched(Direction.SHORT, BAR, 100.0, LevelKind.BREAKEVEN)
        assert not touched(Direction.SHORT, BAR, 110.0, LevelKind.BREAKEVEN)


class TestPriceToR:
    def test_long(self):
        assert price_to_r(Direction.LONG, 100.0, 95.0, 110.0) == pytest.approx(2.0)
        assert price_to_r(Direction.LONG, 100.0, 95.0, 95.0) == pytest.approx(-1.0)

    def test_short_is_mirrored(self):
        assert price_to_r(Direction.SHORT, 100.0, 105.0, 90.0) == pytest.approx(2.0)
        assert price_to_r(Direction.SHORT, 100.0, 105.0, 105.0) == pytest.approx(-1.0)

    def test_zero_risk_returns_zero(self):
        assert price_to_r(Direction.LONG, 100.0, 100.0, 120.0) == 0.0
