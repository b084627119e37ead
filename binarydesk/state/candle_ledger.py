"""
BinaryDesk – Candle Ledger
============================
Serie ordenada, deduplicada y acotada de velas OHLCV del mercado activo.

INVARIANTES:
- Orden estrictamente ascendente por `time`.
- `time` único: una revisión con el mismo `time` REEMPLAZA, nunca duplica.
- len(candles) <= capacity. Al exceder se descarta la más antigua
  (ventana deslizante, no es un error).

PRECIO:
- `price` = close de la última revisión recibida.
- `previous_price` = `price` anterior a la última mutación.

INSERCIÓN:
- El tick típico revisa la última vela o abre una nueva al final → O(1).
- Un tick fuera de orden se inserta con bisect → O(log n) + O(n) del insert.
  Nunca se reordena la lista completa.

No hay red ni manejo de errores aquí: si el feed no entrega histórico,
el adapter suministra la serie sintética de respaldo.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Iterable, Optional

from binarydesk.core.logging import get_logger
from binarydesk.domain.entities.candle import Candle

logger = get_logger("candle_ledger")


class CandleLedger:
    """Timeline único de velas para UN símbolo."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity debe ser > 0, recibido {capacity}")
        self._capacity = capacity
        self._candles: list[Candle] = []
        self._times: list[int] = []   # espejo de time para bisect
        self.price: Optional[float] = None
        self.previous_price: Optional[float] = None

    # ════════════════════════════════════════════════════════════════
    #  ESCRITURA
    # ════════════════════════════════════════════════════════════════

    def replace_all(self, candles: Iterable[Candle]) -> None:
        """
        Bootstrap: ordenar el lote, quedarse con las N más recientes y
        reemplazar el ledger atómicamente.

        Si el lote trae times repetidos gana la última aparición.
        """
        by_time: dict[int, Candle] = {}
        for candle in candles:
            by_time[candle.time] = candle
        ordered = sorted(by_time.values(), key=lambda c: c.time)[-self._capacity:]

        self._candles = ordered
        self._times = [c.time for c in ordered]
        self.previous_price = self.price
        if ordered:
            self.price = ordered[-1].close

        logger.info(
            "Ledger reemplazado: %d velas (capacidad=%d) precio=%s",
            len(ordered), self._capacity, self.price,
        )

    def upsert(self, candle: Candle) -> None:
        """
        Revisión de streaming: reemplazar por `time` o insertar ordenado.

        Sirve tanto para la barra en curso (mismo time) como para una barra
        nueva. Siempre desplaza previous_price ← price, price ← candle.close.
        """
        idx = bisect_left(self._times, candle.time)
        if idx < len(self._times) and self._times[idx] == candle.time:
            self._candles[idx] = candle
        else:
            self._candles.insert(idx, candle)
            self._times.insert(idx, candle.time)
            overflow = len(self._candles) - self._capacity
            if overflow > 0:
                del self._candles[:overflow]
                del self._times[:overflow]

        self.previous_price = self.price
        self.price = candle.close

    def reset(self) -> None:
        """Invalidar serie y precio (cambio de mercado)."""
        self._candles = []
        self._times = []
        self.price = None
        self.previous_price = None

    # ════════════════════════════════════════════════════════════════
    #  CONSULTAS
    # ════════════════════════════════════════════════════════════════

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def candles(self) -> list[Candle]:
        """Copia de la serie (más antigua primero)."""
        return list(self._candles)

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def __len__(self) -> int:
        return len(self._candles)
