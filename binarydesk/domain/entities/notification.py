"""
BinaryDesk – Domain Entity: Notification
==========================================
Evento visible para el usuario (trade abierto, ganado/perdido, errores).

Dos carriles independientes:
  - spotlight → importante, centrado, vida larga (liquidaciones)
  - estándar  → pila de toasts con capacidad acotada

Inmutable una vez creada; se elimina solo por dismiss o timeout
(el timeout lo gestiona la presentación, no el núcleo).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NotificationVariant(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Notification:
    id: str
    title: str
    variant: NotificationVariant
    created_at: int                     # epoch ms
    description: Optional[str] = None
    spotlight: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "variant": self.variant.value,
            "created_at": self.created_at,
            "spotlight": self.spotlight,
        }
