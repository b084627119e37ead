from binarydesk.domain.entities.candle import Candle
from binarydesk.domain.entities.notification import Notification, NotificationVariant
from binarydesk.domain.entities.order import ActiveOrder, Direction, TradeHistoryEntry

__all__ = ["Candle", "Notification", "NotificationVariant", "ActiveOrder", "Direction", "TradeHistoryEntry"]
