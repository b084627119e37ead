"""
BinaryDesk – Event Bus (tópicos tipados)
========================================
Une el feed y los comandos HTTP con los tres consumidores del sistema.

  ┌──────────┐  feed            ┌──────────────────────┐
  │ Binance  │─────────────────▸│ ProcessFeedUseCase   │
  │  Feed    │                  └──────────┬───────────┘
  └──────────┘                             │ state_changed / history_changed
  ┌──────────┐                             ▼
  │ Comandos │──────────────────▸ WebSocketManager, PersistenceListener
  └──────────┘

CONTRATO POR TÓPICO:
  feed             HistoryBootstrap | CandleTick | ConnectionChanged
  state_changed    str con el motivo ("feed", "order", "symbol", ...)
  history_changed  list[TradeHistoryEntry], el historial completo

Publicar en un tópico conocido algo que no cumple su contrato es un bug
del productor → ContractViolationError. Tópicos no registrados aceptan
cualquier payload.

COLAS:
  Cada consumidor tiene su propia cola acotada. Si se llena se descarta el
  evento más antiguo y se cuenta en `dropped`; el productor nunca espera.
  Los consumidores de este sistema solo necesitan el último evento
  (snapshot completo), así que perder intermedios no pierde estado.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from binarydesk.core.logging import get_logger
from binarydesk.domain.entities.feed import CandleTick, ConnectionChanged, HistoryBootstrap
from binarydesk.domain.exceptions import ContractViolationError

logger = get_logger("event_bus")

FEED_TOPIC = "feed"
STATE_CHANGED_TOPIC = "state_changed"
HISTORY_CHANGED_TOPIC = "history_changed"

TOPIC_PAYLOADS: Dict[str, Tuple[type, ...]] = {
    FEED_TOPIC: (HistoryBootstrap, CandleTick, ConnectionChanged),
    STATE_CHANGED_TOPIC: (str,),
    HISTORY_CHANGED_TOPIC: (list,),
}

# Cada cuántos descartes se repite el warning de cola llena
DROP_LOG_EVERY = 100


@dataclass
class _Subscription:
    consumer_name: str
    queue: asyncio.Queue
    dropped: int = 0
    delivered: int = 0

    def offer(self, data: Any) -> bool:
        """Encolar; devuelve True si hubo que descartar el más antiguo."""
        dropped = False
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
                dropped = True
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(data)
        self.delivered += 1
        return dropped


@dataclass
class _Topic:
    subscriptions: list[_Subscription] = field(default_factory=list)
    published: int = 0
    rejected: int = 0


class EventBus:
    """Fan-out por tópico con validación de payload y contadores."""

    def __init__(self, max_queue_size: int = 10_000) -> None:
        self._max_queue_size = max_queue_size
        self._topics: Dict[str, _Topic] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, consumer_name: str) -> asyncio.Queue:
        """Registrar un consumidor; retorna su cola exclusiva."""
        async with self._lock:
            queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
            self._topics.setdefault(topic, _Topic()).subscriptions.append(
                _Subscription(consumer_name=consumer_name, queue=queue)
            )
        logger.info(
            "Consumidor '%s' suscrito a '%s' (max_queue=%d)",
            consumer_name, topic, self._max_queue_size,
        )
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> bool:
        """Quitar un consumidor concreto. False si la cola no estaba suscrita."""
        async with self._lock:
            entry = self._topics.get(topic)
            if entry is None:
                return False
            for sub in entry.subscriptions:
                if sub.queue is queue:
                    entry.subscriptions.remove(sub)
                    logger.info("Consumidor '%s' desuscrito de '%s'", sub.consumer_name, topic)
                    return True
        return False

    async def publish(self, topic: str, data: Any) -> None:
        """Validar el payload y entregarlo a cada suscriptor del tópico."""
        entry = self._topics.setdefault(topic, _Topic())
        expected = TOPIC_PAYLOADS.get(topic)
        if expected is not None and not isinstance(data, expected):
            entry.rejected += 1
            raise ContractViolationError(
                f"Payload {type(data).__name__} no válido para el tópico '{topic}'",
                field="topic",
                value=topic,
            )

        entry.published += 1
        for sub in entry.subscriptions:
            if sub.offer(data) and sub.dropped % DROP_LOG_EVERY == 1:
                logger.warning(
                    "Cola llena para '%s' en '%s' – %d eventos antiguos descartados",
                    sub.consumer_name, topic, sub.dropped,
                )

    async def unsubscribe_all(self, topic: Optional[str] = None) -> None:
        """Desuscribir todo (shutdown) o solo un tópico. Los contadores se conservan."""
        async with self._lock:
            if topic:
                if topic in self._topics:
                    self._topics[topic].subscriptions.clear()
                logger.info("Suscriptores del tópico '%s' eliminados", topic)
            else:
                for entry in self._topics.values():
                    entry.subscriptions.clear()
                logger.info("Todos los suscriptores eliminados (shutdown)")

    @property
    def subscriber_count(self) -> int:
        return sum(len(entry.subscriptions) for entry in self._topics.values())

    @property
    def stats(self) -> dict:
        return {
            topic: {
                "published": entry.published,
                "rejected": entry.rejected,
                "consumers": {
                    sub.consumer_name: {
                        "pending": sub.queue.qsize(),
                        "delivered": sub.delivered,
                        "dropped": sub.dropped,
                    }
                    for sub in entry.subscriptions
                },
            }
            for topic, entry in self._topics.items()
        }
