"""
BinaryDesk – API Routes (FastAPI)
===================================
Endpoints REST y WebSocket para el frontend.

Endpoints disponibles:
  WS     /ws/state                 → snapshot en cada cambio de estado
  GET    /api/health               → health check
  GET    /api/state                → read model completo
  GET    /api/symbols              → pares operables + activo
  POST   /api/symbol               → cambiar de mercado
  GET    /api/candles              → últimas N velas del mercado activo
  GET    /api/indicators           → RSI 14 + MACD 12/26/9
  GET    /api/orders/active        → órdenes pendientes con countdown
  POST   /api/orders               → abrir orden CALL/PUT
  GET    /api/trades/history       → historial liquidado
  DELETE /api/trades/history       → vaciar historial
  GET    /api/notifications        → carriles spotlight + estándar
  DELETE /api/notifications/{id}   → descartar notificación

ERRORES:
  - Rechazo de negocio (sin precio, monto, saldo) → 200 con success=false
  - ContractViolationError                        → 422 (handler en main)
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from binarydesk import __version__
from binarydesk.api.schemas import HealthResponse, PlaceOrderRequest, SymbolRequest
from binarydesk.core.config import trading_pairs
from binarydesk.core.logging import get_logger
from binarydesk.services.indicator_service import indicators_snapshot
from binarydesk.services.market_analytics import market_analytics

logger = get_logger("api.routes")

router = APIRouter()

# Referencias a componentes inyectados desde main.py
_ws_manager = None
_state = None
_commands = None
_order_book = None
_feed = None
_process_feed = None
_event_bus = None


def init_routes(
    ws_manager,
    state,
    commands,
    order_book,
    feed=None,
    process_feed=None,
    event_bus=None,
) -> None:
    """Inyectar dependencias desde main.py al arrancar."""
    global _ws_manager, _state, _commands, _order_book, _feed, _process_feed, _event_bus
    _ws_manager = ws_manager
    _state = state
    _commands = commands
    _order_book = order_book
    _feed = feed
    _process_feed = process_feed
    _event_bus = event_bus


def _require_ready() -> None:
    if _state is None or _commands is None:
        raise HTTPException(status_code=503, detail="Server not ready")


# ─── WebSocket endpoint ────────────────────────────────────────────────

@router.websocket("/ws/state")
async def state_stream(websocket: WebSocket) -> None:
    """
    El frontend se conecta aquí y recibe el snapshot inicial y luego uno
    por cada cambio. El broadcast lo maneja WebSocketManager; este handler
    solo gestiona el ciclo de vida de la conexión.
    """
    if _ws_manager is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    await _ws_manager.connect(websocket)
    try:
        while True:
            try:
                data = await websocket.receive_text()
                logger.debug("Mensaje de cliente WS: %s", data[:100])
            except WebSocketDisconnect:
                break
    finally:
        _ws_manager.disconnect(websocket)


# ─── Estado ────────────────────────────────────────────────────────────

@router.get("/api/health", response_model=HealthResponse)
async def health_check() -> dict:
    return {"status": "ok", "service": "binarydesk", "version": __version__}


@router.get("/api/state")
async def get_state() -> dict:
    """Read model completo + stats de componentes."""
    _require_ready()
    return {
        **_commands.snapshot(),
        "engine": _order_book.stats if _order_book else {},
        "feed": _feed.stats if _feed else {},
        "process_feed": _process_feed.stats if _process_feed else {},
        "event_bus": _event_bus.stats if _event_bus else {},
        "ws_clients": _ws_manager.client_count if _ws_manager else 0,
    }


# ─── Mercado ───────────────────────────────────────────────────────────

@router.get("/api/symbols")
async def get_symbols() -> dict:
    _require_ready()
    return {"selected": _state.selected_symbol, "symbols": trading_pairs()}


@router.post("/api/symbol")
async def set_symbol(body: SymbolRequest) -> dict:
    """Cambiar mercado activo (reset de velas y reinicio del feed)."""
    _require_ready()
    changed = await _commands.set_selected_symbol(body.symbol)
    return {
        "selected": _state.selected_symbol,
        "changed": changed,
        "connection_status": _state.connection_status.value,
    }


@router.get("/api/candles")
async def get_candles(count: int = Query(default=200, ge=1, le=1000)) -> dict:
    _require_ready()
    candles = _state.ledger.candles[-count:]
    return {
        "symbol": _state.selected_symbol,
        "count": len(candles),
        "price": _state.price,
        "previous_price": _state.previous_price,
        "candles": [c.to_dict() for c in candles],
    }


@router.get("/api/indicators")
async def get_indicators() -> dict:
    _require_ready()
    candles = _state.ledger.candles
    return {
        "symbol": _state.selected_symbol,
        **indicators_snapshot(candles),
        "analytics": market_analytics(candles),
    }


# ─── Órdenes ───────────────────────────────────────────────────────────

@router.get("/api/orders/active")
async def get_active_orders() -> dict:
    _require_ready()
    orders = _order_book.active_orders_view()
    return {"count": len(orders), "orders": orders}


@router.post("/api/orders")
async def place_order(body: PlaceOrderRequest) -> dict:
    """Abrir una orden binaria al precio actual."""
    _require_ready()
    result = await _commands.place_order(
        body.direction, body.amount, body.expiry_minutes, body.payout,
    )
    return {
        **result.to_dict(),
        "balance": round(_state.balance, 2),
    }


@router.get("/api/trades/history")
async def get_trade_history(limit: int = Query(default=12, ge=1, le=500)) -> dict:
    _require_ready()
    return _order_book.history_view(limit=limit)


@router.delete("/api/trades/history")
async def clear_trade_history() -> dict:
    _require_ready()
    await _commands.clear_trade_history()
    return {"cleared": True}


# ─── Notificaciones ────────────────────────────────────────────────────

@router.get("/api/notifications")
async def get_notifications() -> dict:
    _require_ready()
    return _commands.notifications_view()


@router.delete("/api/notifications/{notification_id}")
async def dismiss_notification(notification_id: str) -> dict:
    _require_ready()
    removed = await _commands.dismiss_notification(notification_id)
    return {"id": notification_id, "removed": removed}
