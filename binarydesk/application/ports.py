"""
BinaryDesk – Application Port: Market Feed
============================================
Interfaz del Feed Adapter. Los use cases piden un mercado; la
infraestructura decide CÓMO obtenerlo (Binance, serie sintética, mock).

El feed no toca el estado: publica HistoryBootstrap / CandleTick /
ConnectionChanged en el EventBus, etiquetados con su símbolo.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IMarketFeed(ABC):
    """
    IMPLEMENTACIONES:
    - BinanceFeed (REST bootstrap + WebSocket klines)
    - Fakes en tests
    """

    @abstractmethod
    async def start(self, symbol: str) -> None:
        """Empezar a publicar eventos del símbolo. Idempotente."""

    @abstractmethod
    async def switch_symbol(self, symbol: str) -> None:
        """Cancelar la suscripción actual y arrancar la del nuevo símbolo."""

    @abstractmethod
    async def stop(self) -> None:
        """Shutdown limpio: cerrar conexión y cancelar tasks."""

    @property
    @abstractmethod
    def stats(self) -> dict:
        """Estadísticas para monitoreo."""
