"""
BinaryDesk – Domain Entity: Candle
====================================
Vela OHLCV identificada por su `time` (segundos UTC de apertura).

Decisiones de diseño:
- frozen=True → nadie altera una vela en sitio. La revisión de la vela en
  curso llega como una Candle NUEVA con el mismo `time` y el ledger la
  reemplaza por clave.
- Se usa dataclass por rendimiento (más ligera que Pydantic para hot-path).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura."""

    time: int            # epoch de apertura en segundos (clave única en la serie)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_closed: bool = True  # False mientras el bucket sigue abierto en el feed

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "is_closed": self.is_closed,
        }
