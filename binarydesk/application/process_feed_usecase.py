"""
BinaryDesk – Process Feed Use Case
====================================
Caso de uso central: consume eventos del feed desde el EventBus y los
aplica al TradingState. Es el ÚNICO escritor del ledger de velas.

FLUJO:
  EventBus (feed topic)
       │
       ▼
  ProcessFeedUseCase._run()  ◄── loop consumiendo de su Queue
       │
       ├── evento de otro símbolo        → descartar (stale)
       ├── HistoryBootstrap              → CandleLedger.replace_all()
       ├── CandleTick                    → CandleLedger.upsert()
       │                                   OrderBook.finalize_orders(close, now)
       └── ConnectionChanged             → state.connection_status
       │
       ├── EventBus.publish("state_changed")
       └── EventBus.publish("history_changed")   solo si algo se liquidó

LIQUIDACIÓN PERIÓDICA:
  Un segundo loop llama finalize_orders(precio_actual, now) cada
  `settlement_poll_seconds`, así una orden vence a tiempo aunque el
  mercado esté quieto. No hace nada mientras no haya precio.

CÓMO SE EVITA DATOS CRUZADOS ENTRE MERCADOS:
- Cada evento lleva el símbolo de la suscripción que lo produjo.
- Tras un cambio de mercado, lo que quede en cola del símbolo anterior se
  compara con state.selected_symbol y se descarta.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional

from binarydesk.core.logging import get_logger
from binarydesk.core.settings import Settings
from binarydesk.domain.entities.feed import CandleTick, ConnectionChanged, HistoryBootstrap
from binarydesk.domain.entities.order import TradeHistoryEntry
from binarydesk.infrastructure.event_bus import (
    FEED_TOPIC,
    HISTORY_CHANGED_TOPIC,
    STATE_CHANGED_TOPIC,
    EventBus,
)
from binarydesk.services.order_book import OrderBook
from binarydesk.state.trading_state import TradingState

logger = get_logger("process_feed")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProcessFeedUseCase:
    """Aplica eventos del feed al estado y dispara la liquidación."""

    def __init__(
        self,
        event_bus: EventBus,
        state: TradingState,
        order_book: OrderBook,
        settings: Settings,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._event_bus = event_bus
        self._state = state
        self._order_book = order_book
        self._poll_seconds = settings.settlement_poll_seconds
        self._clock = clock

        self._queue: asyncio.Queue | None = None
        self._running = False
        self._tasks: list[asyncio.Task] = []

        self._processed_count = 0
        self._stale_dropped = 0
        self._settled_count = 0

    # ──────────────────────── Lifecycle ──────────────────────────────────

    async def start(self) -> None:
        """Suscribirse al EventBus y lanzar los loops de consumo y liquidación."""
        if self._running:
            return
        self._queue = await self._event_bus.subscribe(FEED_TOPIC, "process_feed_usecase")
        self._running = True
        self._tasks = [
            asyncio.create_task(self._run(), name="process-feed-usecase"),
            asyncio.create_task(self._settlement_loop(), name="settlement-poll"),
        ]
        logger.info(
            "ProcessFeedUseCase iniciado, consumiendo tópico '%s' (poll=%.1fs)",
            FEED_TOPIC, self._poll_seconds,
        )

    async def stop(self) -> None:
        """Detener procesamiento y cancelar el poll de liquidación."""
        self._running = False
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        logger.info(
            "ProcessFeedUseCase detenido. Eventos procesados: %d, descartados: %d",
            self._processed_count, self._stale_dropped,
        )

    # ──────────────────────── Loops ─────────────────────────────────────

    async def _run(self) -> None:
        assert self._queue is not None

        while self._running:
            try:
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                await self.handle(event)
            except asyncio.CancelledError:
                logger.info("ProcessFeedUseCase cancelado")
                break
            except Exception as e:
                logger.error("Error procesando evento del feed: %s", e, exc_info=True)
                continue

    async def _settlement_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._poll_seconds)
                await self.settle_due()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error en poll de liquidación: %s", e, exc_info=True)

    # ──────────────────────── Handlers ──────────────────────────────────

    async def handle(self, event: Any) -> bool:
        """
        Aplicar un evento del feed.

        Returns: False si el evento se descartó (símbolo viejo o tipo desconocido).
        """
        state = self._state
        symbol = getattr(event, "symbol", None)
        if symbol != state.selected_symbol:
            self._stale_dropped += 1
            logger.warning(
                "Evento %s de %s descartado (mercado activo: %s)",
                type(event).__name__, symbol, state.selected_symbol,
            )
            return False

        settled: list[TradeHistoryEntry] = []
        if isinstance(event, HistoryBootstrap):
            state.ledger.replace_all(event.candles)
            logger.info(
                "Ledger %s cargado: %d velas%s",
                symbol, len(state.ledger), " (sintéticas)" if event.synthetic else "",
            )
        elif isinstance(event, CandleTick):
            state.ledger.upsert(event.candle)
            settled = self._order_book.finalize_orders(event.candle.close, self._clock())
        elif isinstance(event, ConnectionChanged):
            if state.connection_status != event.status:
                logger.info("Conexión %s: %s", symbol, event.status.value)
            state.connection_status = event.status
        else:
            logger.warning("Evento desconocido en feed: %r", event)
            return False

        self._processed_count += 1
        await self._publish_changes(settled)
        return True

    async def settle_due(self) -> list[TradeHistoryEntry]:
        """Liquidar contra el último precio conocido. No-op sin precio."""
        price = self._state.price
        if price is None or not self._state.active_orders:
            return []
        settled = self._order_book.finalize_orders(price, self._clock())
        if settled:
            await self._publish_changes(settled)
        return settled

    async def _publish_changes(self, settled: list[TradeHistoryEntry]) -> None:
        if settled:
            self._settled_count += len(settled)
            await self._event_bus.publish(HISTORY_CHANGED_TOPIC, self._state.trade_history)
        await self._event_bus.publish(STATE_CHANGED_TOPIC, "feed")

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "events_processed": self._processed_count,
            "stale_dropped": self._stale_dropped,
            "orders_settled": self._settled_count,
            "poll_seconds": self._poll_seconds,
        }
