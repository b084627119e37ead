"""
Dependency Injection Container.

Único lugar donde se crean las dependencias concretas. Cada componente se
construye perezosamente la primera vez que se pide y se comparte después.

Un TradingState por contenedor: no hay estado global ambiental, así cada
test crea su propio contenedor aislado.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from binarydesk.core.settings import Settings


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Grafo:
      Settings ─┬─ EventBus
                ├─ TradingState ─┬─ NotificationDispatcher ─ OrderBook
                │                └─ ProcessFeedUseCase / TradingCommands
                ├─ BinanceFeed (IMarketFeed)
                ├─ WebSocketManager
                └─ DatabaseManager ─ HistoryStore ─ PersistenceListener
    """

    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], int] = _now_ms

    _event_bus: Optional[Any] = None
    _state: Optional[Any] = None
    _notifications: Optional[Any] = None
    _order_book: Optional[Any] = None
    _feed: Optional[Any] = None
    _process_feed: Optional[Any] = None
    _commands: Optional[Any] = None
    _ws_manager: Optional[Any] = None
    _database: Optional[Any] = None
    _history_store: Optional[Any] = None
    _persistence_listener: Optional[Any] = None

    # ==================== Núcleo ====================

    @property
    def event_bus(self):
        if self._event_bus is None:
            from binarydesk.infrastructure.event_bus import EventBus
            self._event_bus = EventBus(max_queue_size=self.settings.event_bus_max_queue_size)
        return self._event_bus

    @property
    def state(self):
        if self._state is None:
            from binarydesk.state.trading_state import TradingState
            self._state = TradingState(self.settings)
        return self._state

    @property
    def notifications(self):
        if self._notifications is None:
            from binarydesk.services.notification_dispatcher import NotificationDispatcher
            self._notifications = NotificationDispatcher(
                self.state, capacity=self.settings.max_notifications, clock=self.clock,
            )
        return self._notifications

    @property
    def order_book(self):
        if self._order_book is None:
            from binarydesk.services.order_book import OrderBook
            self._order_book = OrderBook(
                self.state, self.notifications, self.settings, clock=self.clock,
            )
        return self._order_book

    # ==================== Ports ====================

    @property
    def feed(self):
        """Proveedor de mercado (Binance por defecto)."""
        if self._feed is None:
            from binarydesk.infrastructure.binance_feed import BinanceFeed
            self._feed = BinanceFeed(self.event_bus, self.settings)
        return self._feed

    # ==================== Use Cases ====================

    @property
    def process_feed(self):
        if self._process_feed is None:
            from binarydesk.application.process_feed_usecase import ProcessFeedUseCase
            self._process_feed = ProcessFeedUseCase(
                self.event_bus, self.state, self.order_book, self.settings, clock=self.clock,
            )
        return self._process_feed

    @property
    def commands(self):
        if self._commands is None:
            from binarydesk.application.trading_commands import TradingCommands
            self._commands = TradingCommands(
                self.event_bus,
                self.state,
                self.order_book,
                self.notifications,
                self.settings,
                feed=self.feed,
                clock=self.clock,
            )
        return self._commands

    # ==================== Presentación ====================

    @property
    def ws_manager(self):
        if self._ws_manager is None:
            from binarydesk.api.websocket_manager import WebSocketManager
            self._ws_manager = WebSocketManager(self.event_bus, self.commands.snapshot)
        return self._ws_manager

    # ==================== Persistencia ====================

    @property
    def database(self):
        if self._database is None:
            from binarydesk.infrastructure.persistence.database import DatabaseManager
            self._database = DatabaseManager(
                self.settings.history_db_url, echo=self.settings.db_echo,
            )
        return self._database

    @property
    def history_store(self):
        if self._history_store is None:
            from binarydesk.infrastructure.persistence.history_store import HistoryStore
            self._history_store = HistoryStore(self.database, self.settings.history_namespace)
        return self._history_store

    @property
    def persistence_listener(self):
        if self._persistence_listener is None:
            from binarydesk.infrastructure.persistence.persistence_listener import (
                PersistenceListener,
            )
            self._persistence_listener = PersistenceListener(self.event_bus, self.history_store)
        return self._persistence_listener

    # ==================== Lifecycle ====================

    def reset(self) -> None:
        """Resetea todas las instancias (útil para tests)."""
        for name in (
            "event_bus", "state", "notifications", "order_book", "feed",
            "process_feed", "commands", "ws_manager", "database",
            "history_store", "persistence_listener",
        ):
            setattr(self, f"_{name}", None)

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con fakes).

        Args:
            name: Nombre de la dependencia (ej: 'feed')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if hasattr(self, attr_name):
            setattr(self, attr_name, instance)
        else:
            raise ValueError(f"Unknown dependency: {name}")


# ==================== Global Container ====================

_container: Optional[Container] = None


def init_container(settings: Optional[Settings] = None) -> Container:
    """Inicializa el contenedor global con configuración específica."""
    global _container
    _container = Container(settings=settings or Settings())
    return _container
