"""
BinaryDesk – WebSocket Manager (broadcast a clientes frontend)
================================================================
Envía el snapshot completo del estado a cada cliente conectado cada vez
que algo cambia.

ARQUITECTURA:
  EventBus ──(state_changed)──▸ WSManager._broadcast_loop()
                                        │  snapshot_provider()
                                        ▼
                   [Cliente WS 1, Cliente WS 2, ...]

NO BLOQUEA EL LOOP PRINCIPAL:
- El broadcast corre como task independiente.
- Si varios cambios están en cola, se envía UN solo snapshot (el actual).
- Cada envío usa asyncio.wait_for con timeout; un cliente lento o caído
  se elimina sin afectar a los demás.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from binarydesk.core.logging import get_logger
from binarydesk.infrastructure.event_bus import STATE_CHANGED_TOPIC, EventBus

logger = get_logger("ws_manager")

SEND_TIMEOUT_SECONDS = 5.0


class WebSocketManager:
    """Gestiona conexiones frontend y broadcast del snapshot."""

    def __init__(self, event_bus: EventBus, snapshot_provider: Callable[[], dict]) -> None:
        self._event_bus = event_bus
        self._snapshot_provider = snapshot_provider
        self._clients: Set[WebSocket] = set()
        self._broadcast_task: Optional[asyncio.Task] = None
        self._queue: Optional[asyncio.Queue] = None
        self._broadcasts = 0

    async def start(self) -> None:
        self._queue = await self._event_bus.subscribe(STATE_CHANGED_TOPIC, "ws_broadcast_state")
        self._broadcast_task = asyncio.create_task(
            self._broadcast_loop(self._queue), name="ws-broadcast-state",
        )
        logger.info("WebSocketManager iniciado – broadcast en '%s'", STATE_CHANGED_TOPIC)

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        if self._broadcast_task is not None:
            self._broadcast_task.cancel()
            await asyncio.gather(self._broadcast_task, return_exceptions=True)
            self._broadcast_task = None
        if self._queue is not None:
            await self._event_bus.unsubscribe(STATE_CHANGED_TOPIC, self._queue)
            self._queue = None

        for ws in list(self._clients):
            try:
                await ws.close()
            except RuntimeError:
                # Ya cerrado por el cliente
                pass
        self._clients.clear()
        logger.info("WebSocketManager detenido. Broadcasts enviados: %d", self._broadcasts)

    async def connect(self, websocket: WebSocket) -> None:
        """Registrar un cliente y enviarle el estado actual."""
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Cliente WS conectado. Total: %d", len(self._clients))
        await websocket.send_text(self._payload())

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    def _payload(self) -> str:
        return json.dumps({"type": "snapshot", "data": self._snapshot_provider()})

    async def _broadcast_loop(self, queue: asyncio.Queue) -> None:
        try:
            while True:
                try:
                    await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                # Coalescer: el snapshot ya refleja todos los cambios en cola
                while not queue.empty():
                    queue.get_nowait()

                if not self._clients:
                    continue

                await self.broadcast(self._payload())

        except asyncio.CancelledError:
            pass  # Shutdown limpio

    async def broadcast(self, payload: str) -> None:
        disconnected: list[WebSocket] = []
        await asyncio.gather(
            *(self._safe_send(ws, payload, disconnected) for ws in list(self._clients))
        )
        for ws in disconnected:
            self._clients.discard(ws)
        self._broadcasts += 1

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: list[WebSocket]
    ) -> None:
        """Enviar con timeout; si falla, marcar el cliente para limpieza."""
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT_SECONDS)
        except (WebSocketDisconnect, asyncio.TimeoutError, RuntimeError, OSError):
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)
