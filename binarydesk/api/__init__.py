"""Capa de presentación: REST + WebSocket (FastAPI)."""

from binarydesk.api.routes import init_routes, router
from binarydesk.api.websocket_manager import WebSocketManager

__all__ = ["router", "init_routes", "WebSocketManager"]
