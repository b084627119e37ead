"""
BinaryDesk – Indicator Engine (RSI 14, MACD 12/26/9)
======================================================
Funciones puras que recalculan las series completas desde el ledger.

═══════════════════════════════════════════════════════════════════
                    MATEMÁTICA DETALLADA
═══════════════════════════════════════════════════════════════════

─── EMA (Exponential Moving Average) ────────────────────────────

  Fórmula recursiva:
      EMA_t = v_t × k  +  EMA_{t-1} × (1 − k)
      k = 2 / (period + 1)

  Seed: EMA_0 = v_0 (primer valor, NO SMA). Así la serie tiene la
  misma longitud que la entrada y queda alineada índice a índice.

─── RSI (Relative Strength Index) – Método Wilder ──────────────

  Paso 1 – Seed con las primeras `period` deltas (media simple):
      avg_gain = Σ gain_i / period    i = 1..period
      avg_loss = Σ loss_i / period

  Paso 2 – Desde el índice period+1, suavizado de Wilder:
      avg_gain = (avg_gain × (period − 1) + gain) / period
      avg_loss = (avg_loss × (period − 1) + loss) / period

  Paso 3 – RS y RSI:
      RS  = avg_gain / avg_loss
      RSI = 100 − 100 / (1 + RS)

  avg_loss == 0 → RS = 100 (centinela) → RSI = 99.01, también en series planas.

  Un punto por vela desde el índice period+1.

─── MACD ────────────────────────────────────────────────────────

      macd_t      = EMA_short_t − EMA_long_t      (t >= long − 1)
      signal      = EMA_signal(macd[long−1:])
      histogram_t = macd_t − signal_t

  Requiere len(candles) > long + signal.

═══════════════════════════════════════════════════════════════════

DETERMINISMO:
- Sin aleatoriedad ni reloj. Misma serie de velas → misma salida, bit a bit.
- Recalcular desde cero en cada cambio es aceptable: el ledger está acotado.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from binarydesk.domain.entities.candle import Candle

RSI_PERIOD = 14
MACD_SHORT_PERIOD = 12
MACD_LONG_PERIOD = 26
MACD_SIGNAL_PERIOD = 9
# RS usado cuando no hubo pérdidas en la ventana
RSI_FLAT_LOSS_RS = 100.0


@dataclass(frozen=True, slots=True)
class IndicatorPoint:
    time: int
    value: float

    def to_dict(self) -> dict:
        return {"time": self.time, "value": self.value}


@dataclass(frozen=True, slots=True)
class MacdPoint:
    time: int
    macd: float
    signal: float
    histogram: float

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "macd": self.macd,
            "signal": self.signal,
            "histogram": self.histogram,
        }


def ema(values: Sequence[float], period: int) -> list[float]:
    """EMA con seed = primer valor. Misma longitud que `values`."""
    k = 2.0 / (period + 1)
    result: list[float] = []
    for index, value in enumerate(values):
        if index == 0:
            result.append(value)
        else:
            result.append(value * k + result[index - 1] * (1.0 - k))
    return result


def _compute_rsi(avg_gain: float, avg_loss: float) -> float:
    """
    RSI = 100 − (100 / (1 + RS)),  RS = avg_gain / avg_loss

    avg_loss == 0 → RS = 100 (centinela), RSI ≈ 99.01
    """
    rs = RSI_FLAT_LOSS_RS if avg_loss == 0.0 else avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def calculate_rsi(candles: Sequence[Candle], period: int = RSI_PERIOD) -> list[IndicatorPoint]:
    """Serie RSI (Wilder). Vacía si no hay más de `period` velas."""
    if len(candles) <= period:
        return []

    closes = [c.close for c in candles]
    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        delta = closes[i] - closes[i - 1]
        if delta >= 0:
            gains += delta
        else:
            losses -= delta

    avg_gain = gains / period
    avg_loss = losses / period
    result: list[IndicatorPoint] = []

    for i in range(period + 1, len(closes)):
        delta = closes[i] - closes[i - 1]
        gain = max(delta, 0.0)
        loss = max(-delta, 0.0)
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        result.append(
            IndicatorPoint(time=candles[i].time, value=round(_compute_rsi(avg_gain, avg_loss), 2))
        )

    return result


def calculate_macd(
    candles: Sequence[Candle],
    short_period: int = MACD_SHORT_PERIOD,
    long_period: int = MACD_LONG_PERIOD,
    signal_period: int = MACD_SIGNAL_PERIOD,
) -> list[MacdPoint]:
    """Serie MACD alineada a la vela de origen. Vacía si faltan velas."""
    if len(candles) <= long_period + signal_period:
        return []

    closes = [c.close for c in candles]
    short = ema(closes, short_period)
    long = ema(closes, long_period)

    start = long_period - 1
    macd_line = [short[idx] - long[idx] for idx in range(start, len(closes))]
    signal_line = ema(macd_line, signal_period)

    result: list[MacdPoint] = []
    for offset, (macd, signal) in enumerate(zip(macd_line, signal_line)):
        result.append(
            MacdPoint(
                time=candles[start + offset].time,
                macd=round(macd, 4),
                signal=round(signal, 4),
                histogram=round(macd - signal, 4),
            )
        )
    return result


def indicators_snapshot(candles: Sequence[Candle]) -> dict:
    """RSI + MACD serializados para API / WebSocket."""
    return {
        "rsi": [p.to_dict() for p in calculate_rsi(candles)],
        "macd": [p.to_dict() for p in calculate_macd(candles)],
    }
