"""
BinaryDesk – Trading State
===========================
Contenedor único de estado compartido de la sesión.

DISEÑO:
  - Un solo objeto, creado por el composition root e inyectado.
    No hay singleton ambiental.
  - Solo las funciones de transición (OrderBook, NotificationDispatcher,
    ProcessFeedUseCase, TradingCommands) lo mutan.
  - balance / pnl solo cambian en place_order() y finalize_orders().

THREADING:
  Todo corre en un solo event-loop asyncio y cada transición es síncrona
  (sin await intermedio). Ninguna operación observa otra a medio aplicar.
  No se necesitan locks.

EFÍMERO vs PERSISTIDO:
  Solo trade_history sobrevive a reinicios (ver HistoryStore). El resto
  arranca en los valores por defecto: balance inicial, pnl 0, sin órdenes.
"""

from __future__ import annotations

from binarydesk.core.logging import get_logger
from binarydesk.core.settings import Settings
from binarydesk.domain.entities.feed import ConnectionStatus
from binarydesk.domain.entities.notification import Notification
from binarydesk.domain.entities.order import ActiveOrder, TradeHistoryEntry
from binarydesk.state.candle_ledger import CandleLedger

logger = get_logger("trading_state")


class TradingState:
    """Estado en memoria de la sesión de trading."""

    def __init__(self, settings: Settings) -> None:
        self.selected_symbol: str = settings.default_symbol
        self.connection_status: ConnectionStatus = ConnectionStatus.CONNECTING
        self.ledger = CandleLedger(capacity=settings.max_candles)

        self.balance: float = settings.initial_balance
        self.pnl: float = 0.0

        # Orden de colocación (determinista para liquidación y tests)
        self.active_orders: list[ActiveOrder] = []
        # Más reciente primero (por closed_at)
        self.trade_history: list[TradeHistoryEntry] = []
        # Spotlight primero, luego estándar; cada carril desc por created_at
        self.notifications: list[Notification] = []

    def select_symbol(self, symbol: str) -> bool:
        """
        Cambiar de mercado: invalida serie, precio y estado de conexión.

        Returns: False si el símbolo ya estaba seleccionado (no-op).
        """
        if symbol == self.selected_symbol:
            return False
        previous = self.selected_symbol
        self.selected_symbol = symbol
        self.ledger.reset()
        self.connection_status = ConnectionStatus.CONNECTING
        logger.info("Mercado cambiado: %s → %s", previous, symbol)
        return True

    @property
    def price(self) -> float | None:
        return self.ledger.price

    @property
    def previous_price(self) -> float | None:
        return self.ledger.previous_price
