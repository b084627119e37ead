"""
BinaryDesk – Persistence Listener
===================================
Escucha `history_changed` en el EventBus y guarda el historial.

Desacoplamiento: OrderBook y ProcessFeedUseCase no conocen la base de
datos; solo publican la lista de historial vigente.

  EventBus                      PersistenceListener
   ┌───────────────┐              ┌─────────────┐
   │history_changed│ ───Queue───▸ │ _consume()  │──▸ HistoryStore.save()
   └───────────────┘              └─────────────┘

Si llegan varios cambios seguidos, solo el último se escribe: cada evento
trae el historial completo.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from binarydesk.core.logging import get_logger
from binarydesk.infrastructure.event_bus import HISTORY_CHANGED_TOPIC, EventBus
from binarydesk.infrastructure.persistence.history_store import HistoryStore

logger = get_logger("persistence_listener")


class PersistenceListener:
    """Persiste el historial cada vez que cambia."""

    def __init__(self, event_bus: EventBus, store: HistoryStore) -> None:
        self._event_bus = event_bus
        self._store = store
        self._running = False
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._saved_count = 0

    async def start(self) -> None:
        logger.info("Iniciando PersistenceListener...")
        self._queue = await self._event_bus.subscribe(
            topic=HISTORY_CHANGED_TOPIC, consumer_name="persistence_history",
        )
        self._running = True
        self._task = asyncio.create_task(self._consume_loop(), name="persistence-listener")
        logger.info("PersistenceListener activo – escuchando '%s'", HISTORY_CHANGED_TOPIC)

    async def stop(self) -> None:
        """
        Detener el listener sin perder el último historial.

        No se cancela el loop: un save() en curso termina, el loop sale en
        su próximo wait (<= 1s) y lo que quede en cola se guarda después.
        """
        self._running = False
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self._flush_pending()
        if self._queue is not None:
            await self._event_bus.unsubscribe(HISTORY_CHANGED_TOPIC, self._queue)
            self._queue = None
        logger.info("PersistenceListener detenido. Snapshots guardados: %d", self._saved_count)

    async def _consume_loop(self) -> None:
        assert self._queue is not None
        while self._running:
            try:
                history = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                history = self._latest(history)
                await self._save(history)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error en consume_loop (%s): %s", HISTORY_CHANGED_TOPIC, e, exc_info=True)

    def _latest(self, history):
        """Descartar snapshots intermedios ya encolados."""
        assert self._queue is not None
        while not self._queue.empty():
            history = self._queue.get_nowait()
        return history

    async def _flush_pending(self) -> None:
        if self._queue is None or self._queue.empty():
            return
        try:
            await self._save(self._latest(None))
        except Exception as e:
            logger.error("Error guardando historial pendiente: %s", e, exc_info=True)

    async def _save(self, history) -> None:
        await self._store.save(history)
        self._saved_count += 1

    @property
    def saved_count(self) -> int:
        return self._saved_count
