"""
BinaryDesk – Domain Value Objects: Feed Events
================================================
Eventos que el Feed Adapter entrega al núcleo a través del EventBus.

Cada evento lleva el `symbol` para el que fue obtenido. El consumidor
compara ese símbolo con el mercado seleccionado y descarta los eventos
de una suscripción anterior (rechazo de updates obsoletos).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from binarydesk.domain.entities.candle import Candle


class ConnectionStatus(str, Enum):
    """Estado de la conexión con el feed (pass-through a la presentación)."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True, slots=True)
class HistoryBootstrap:
    """Lote completo de histórico (bootstrap o re-bootstrap tras reconexión)."""

    symbol: str
    candles: tuple[Candle, ...]
    synthetic: bool = False  # True si es la serie de respaldo


@dataclass(frozen=True, slots=True)
class CandleTick:
    """Revisión de una vela en streaming (misma barra o barra nueva)."""

    symbol: str
    candle: Candle


@dataclass(frozen=True, slots=True)
class ConnectionChanged:
    symbol: str
    status: ConnectionStatus
