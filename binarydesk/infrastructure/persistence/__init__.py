"""
Persistencia del historial de trades (SQLAlchemy async).

Solo trade_history sobrevive a reinicios; balance, pnl, órdenes activas y
notificaciones son de sesión.
"""

from binarydesk.infrastructure.persistence.database import Base, DatabaseManager
from binarydesk.infrastructure.persistence.history_store import HistorySnapshot, HistoryStore
from binarydesk.infrastructure.persistence.persistence_listener import PersistenceListener

__all__ = [
    "Base",
    "DatabaseManager",
    "HistorySnapshot",
    "HistoryStore",
    "PersistenceListener",
]
