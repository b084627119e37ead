"""
BinaryDesk – Market Analytics
===============================
Métricas de contexto sobre la ventana reciente de velas (las que el
panel del gráfico muestra junto al precio).

    swing_high  = max(high)            de la ventana
    swing_low   = min(low)
    range       = swing_high − swing_low
    avg_body    = Σ|close − open| / n
    momentum %  = (close_last − close_first) / close_first × 100
    volume      = Σ volume

Puro y determinista, como el Indicator Engine.
"""

from __future__ import annotations

from typing import Optional, Sequence

from binarydesk.domain.entities.candle import Candle

ANALYTICS_WINDOW = 90


def market_analytics(candles: Sequence[Candle], window: int = ANALYTICS_WINDOW) -> dict:
    if not candles:
        return {
            "swing_high": None,
            "swing_low": None,
            "range": None,
            "total_volume": None,
            "average_body": None,
            "momentum": None,
        }

    recent = list(candles)[-window:]
    swing_high = max(c.high for c in recent)
    swing_low = min(c.low for c in recent)
    total_volume = sum(c.volume for c in recent)
    average_body = sum(abs(c.close - c.open) for c in recent) / len(recent)

    momentum: Optional[float] = 0.0
    first_close = recent[0].close
    if len(recent) >= 2 and first_close != 0:
        momentum = (recent[-1].close - first_close) / first_close * 100.0

    return {
        "swing_high": swing_high,
        "swing_low": swing_low,
        "range": swing_high - swing_low,
        "total_volume": total_volume,
        "average_body": average_body,
        "momentum": momentum,
    }
