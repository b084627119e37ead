"""
Servicios del núcleo: indicadores, analítica de mercado, libro de órdenes
con liquidación y despachador de notificaciones.
"""

from binarydesk.services.indicator_service import calculate_macd, calculate_rsi
from binarydesk.services.notification_dispatcher import NotificationDispatcher
from binarydesk.services.order_book import OrderBook, PlaceOrderResult

__all__ = [
    "calculate_rsi",
    "calculate_macd",
    "NotificationDispatcher",
    "OrderBook",
    "PlaceOrderResult",
]
