"""
BinaryDesk – Domain Layer
===========================
Núcleo puro del sistema. CERO dependencias de frameworks.

Este módulo contiene:
- entities/: Candle, ActiveOrder, TradeHistoryEntry, Notification, eventos del feed
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de infrastructure/, api/, application/
ni de frameworks externos (SQLAlchemy, FastAPI, etc.).
"""

from binarydesk.domain.entities.candle import Candle
from binarydesk.domain.entities.feed import (
    CandleTick,
    ConnectionChanged,
    ConnectionStatus,
    HistoryBootstrap,
)
from binarydesk.domain.entities.notification import Notification, NotificationVariant
from binarydesk.domain.entities.order import (
    ActiveOrder,
    Direction,
    OrderStatus,
    TradeHistoryEntry,
    TradeOutcome,
)

__all__ = [
    "Candle",
    "CandleTick",
    "ConnectionChanged",
    "ConnectionStatus",
    "HistoryBootstrap",
    "Notification",
    "NotificationVariant",
    "ActiveOrder",
    "Direction",
    "OrderStatus",
    "TradeHistoryEntry",
    "TradeOutcome",
]
