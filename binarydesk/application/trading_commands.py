"""
BinaryDesk – Trading Commands
==============================
Comandos que llegan desde la capa de presentación (HTTP / WS) y el read
model completo que se devuelve al frontend.

Cada comando es una transición síncrona sobre TradingState seguida de la
publicación de eventos en el bus:
  - state_changed    → WebSocketManager retransmite el snapshot
  - history_changed  → PersistenceListener guarda el historial
"""

from __future__ import annotations

from typing import Callable, Optional

from binarydesk.application.ports import IMarketFeed
from binarydesk.core.config import NOTIFICATION_STYLES, TRADING_PAIRS, trading_pairs
from binarydesk.core.logging import get_logger
from binarydesk.core.settings import Settings
from binarydesk.domain.entities.notification import Notification
from binarydesk.domain.entities.order import Direction
from binarydesk.domain.exceptions import ContractViolationError
from binarydesk.infrastructure.event_bus import (
    HISTORY_CHANGED_TOPIC,
    STATE_CHANGED_TOPIC,
    EventBus,
)
from binarydesk.services.indicator_service import calculate_macd, calculate_rsi
from binarydesk.services.market_analytics import market_analytics
from binarydesk.services.notification_dispatcher import NotificationDispatcher
from binarydesk.services.order_book import OrderBook, PlaceOrderResult
from binarydesk.state.trading_state import TradingState

logger = get_logger("trading_commands")


def _notification_view(notification: Notification) -> dict:
    return {**notification.to_dict(), "style": NOTIFICATION_STYLES[notification.variant]}


class TradingCommands:
    """Fachada de comandos del usuario + read model."""

    def __init__(
        self,
        event_bus: EventBus,
        state: TradingState,
        order_book: OrderBook,
        notifications: NotificationDispatcher,
        settings: Settings,
        feed: Optional[IMarketFeed] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._event_bus = event_bus
        self._state = state
        self._order_book = order_book
        self._notifications = notifications
        self._settings = settings
        self._feed = feed
        self._clock = clock

    # ──────────────────────── Órdenes ───────────────────────────────────

    async def place_order(
        self,
        direction: Direction | str,
        amount: float,
        expiry_minutes: float,
        payout: Optional[float] = None,
    ) -> PlaceOrderResult:
        """
        Abrir una orden. Un rechazo de negocio NO es excepción: viene en el
        resultado y como notificación. ContractViolationError sí se propaga.
        """
        if payout is None:
            payout = self._settings.default_payout
        result = self._order_book.place_order(direction, amount, expiry_minutes, payout)
        await self._event_bus.publish(STATE_CHANGED_TOPIC, "order")
        return result

    async def clear_trade_history(self) -> None:
        self._order_book.clear_trade_history()
        await self._event_bus.publish(HISTORY_CHANGED_TOPIC, self._state.trade_history)
        await self._event_bus.publish(STATE_CHANGED_TOPIC, "history")

    # ──────────────────────── Mercado ───────────────────────────────────

    async def set_selected_symbol(self, symbol: str) -> bool:
        """
        Cambiar de mercado: reset del ledger y reinicio del feed.

        Returns: False si ya era el símbolo activo.
        """
        if not isinstance(symbol, str) or symbol.upper() not in TRADING_PAIRS:
            raise ContractViolationError("Símbolo no soportado", field="symbol", value=symbol)
        symbol = symbol.upper()

        if not self._state.select_symbol(symbol):
            return False
        await self._event_bus.publish(STATE_CHANGED_TOPIC, "symbol")
        if self._feed is not None:
            await self._feed.switch_symbol(symbol)
        return True

    # ──────────────────────── Notificaciones ────────────────────────────

    async def dismiss_notification(self, notification_id: str) -> bool:
        removed = self._notifications.dismiss(notification_id)
        if removed:
            await self._event_bus.publish(STATE_CHANGED_TOPIC, "notification")
        return removed

    def notifications_view(self) -> dict:
        return {
            "spotlight": [_notification_view(n) for n in self._notifications.spotlight],
            "standard": [_notification_view(n) for n in self._notifications.standard],
        }

    # ──────────────────────── Read model ────────────────────────────────

    def snapshot(self) -> dict:
        """Estado completo, listo para JSON."""
        state = self._state
        candles = state.ledger.candles
        now = self._clock() if self._clock else None
        return {
            "symbols": trading_pairs(),
            "selected_symbol": state.selected_symbol,
            "connection_status": state.connection_status.value,
            "candles": [c.to_dict() for c in candles],
            "price": state.price,
            "previous_price": state.previous_price,
            "rsi": [p.to_dict() for p in calculate_rsi(candles)],
            "macd": [p.to_dict() for p in calculate_macd(candles)],
            "analytics": market_analytics(candles),
            "active_orders": self._order_book.active_orders_view(now),
            "history": self._order_book.history_view(),
            "balance": round(state.balance, 2),
            "pnl": round(state.pnl, 2),
            "notifications": self.notifications_view(),
            "expiry_options": list(self._settings.expiry_options),
            "payout": self._settings.default_payout,
        }
