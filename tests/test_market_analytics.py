from __future__ import annotations

import pytest

from binarydesk.services.market_analytics import market_analytics
from tests.conftest import make_candle, make_series


def test_empty_series_all_none() -> None:
    assert all(value is None for value in market_analytics([]).values())


def test_single_candle_zero_momentum() -> None:
    result = market_analytics([make_candle(0, 10.0, open_=8.0, volume=3.0)])

    assert result["momentum"] == 0
    assert result["swing_high"] == 11.0
    assert result["swing_low"] == 7.0
    assert result["range"] == 4.0
    assert result["average_body"] == 2.0
    assert result["total_volume"] == 3.0


def test_window_limits_to_recent_candles() -> None:
    candles = make_series([1000.0] + [100.0] * 5 + [110.0])

    result = market_analytics(candles, window=6)

    assert result["swing_high"] == 111.0
    assert result["momentum"] == pytest.approx(10.0)
    assert result["total_volume"] == 6.0
