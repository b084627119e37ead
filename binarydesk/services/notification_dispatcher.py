"""
BinaryDesk – Notification Dispatcher
======================================
Cola acotada y ordenada por prioridad de eventos visibles para el usuario.

MERGE (por cada push):
  1. nuevas + existentes (las nuevas primero)
  2. dedupe por id → gana la primera aparición
  3. separar carriles spotlight / estándar
  4. cada carril desc por created_at
  5. estándar recortado a max(0, capacity − len(spotlight))

El carril spotlight no tiene tope en el modelo de datos: cuántas se
muestran lo decide la presentación.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Iterable, Optional, Sequence

from binarydesk.core.logging import get_logger
from binarydesk.domain.entities.notification import Notification, NotificationVariant
from binarydesk.state.trading_state import TradingState

logger = get_logger("notifications")


def _now_ms() -> int:
    return int(time.time() * 1000)


def merge_notifications(
    existing: Sequence[Notification],
    incoming: Sequence[Notification],
    capacity: int,
) -> list[Notification]:
    """Función pura de merge (ver docstring del módulo)."""
    if not incoming:
        return list(existing)

    seen: dict[str, Notification] = {}
    for notification in [*incoming, *existing]:
        if notification.id not in seen:
            seen[notification.id] = notification

    combined = list(seen.values())
    spotlight = sorted(
        (n for n in combined if n.spotlight), key=lambda n: n.created_at, reverse=True,
    )
    standard = sorted(
        (n for n in combined if not n.spotlight), key=lambda n: n.created_at, reverse=True,
    )[: max(0, capacity - len(spotlight))]
    return [*spotlight, *standard]


class NotificationDispatcher:
    """Crea notificaciones y las fusiona en TradingState.notifications."""

    def __init__(
        self,
        state: TradingState,
        capacity: int,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._state = state
        self._capacity = capacity
        self._clock = clock

    def create(
        self,
        title: str,
        variant: NotificationVariant,
        description: Optional[str] = None,
        spotlight: bool = False,
        notification_id: Optional[str] = None,
    ) -> Notification:
        """Asigna id y timestamp si faltan. No toca el estado."""
        now = self._clock()
        return Notification(
            id=notification_id or f"{now}-{uuid.uuid4().hex[:6]}",
            title=title,
            description=description,
            variant=variant,
            created_at=now,
            spotlight=spotlight,
        )

    def push(
        self,
        title: str,
        variant: NotificationVariant,
        description: Optional[str] = None,
        spotlight: bool = False,
        notification_id: Optional[str] = None,
    ) -> str:
        """Crear y fusionar una notificación. Retorna su id."""
        notification = self.create(
            title, variant, description=description,
            spotlight=spotlight, notification_id=notification_id,
        )
        self.push_many([notification])
        return notification.id

    def push_many(self, notifications: Iterable[Notification]) -> None:
        """Fusionar un lote en un único merge (una pasada de liquidación)."""
        batch = list(notifications)
        if not batch:
            return
        self._state.notifications = merge_notifications(
            self._state.notifications, batch, self._capacity,
        )

    def dismiss(self, notification_id: str) -> bool:
        """Quitar por id del carril que la tenga. No-op si no existe."""
        before = len(self._state.notifications)
        self._state.notifications = [
            n for n in self._state.notifications if n.id != notification_id
        ]
        removed = len(self._state.notifications) != before
        if not removed:
            logger.debug("Dismiss de notificación inexistente: %s", notification_id)
        return removed

    @property
    def spotlight(self) -> list[Notification]:
        return [n for n in self._state.notifications if n.spotlight]

    @property
    def standard(self) -> list[Notification]:
        return [n for n in self._state.notifications if not n.spotlight]
