"""
BinaryDesk – Domain Exceptions
================================
Excepciones específicas del dominio de negocio.

JERARQUÍA:
    DomainError (base)
    ├── OrderRejectedError     → validación de orden (recuperable)
    ├── ContractViolationError → uso incorrecto de la API (fatal)
    ├── FeedError              → payload inválido / bootstrap fallido
    └── PersistenceError       → snapshot ilegible o de otra versión

OrderRejectedError NUNCA escapa de place_order(): se convierte en un
resultado fallido + una notificación. ContractViolationError sí se propaga.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class RejectReason(str, Enum):
    """Motivos de rechazo esperados en place_order()."""
    NO_LIVE_PRICE = "NO_LIVE_PRICE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"


_REJECT_MESSAGES = {
    RejectReason.NO_LIVE_PRICE: "Waiting for live price.",
    RejectReason.INVALID_AMOUNT: "Enter a valid amount.",
    RejectReason.INSUFFICIENT_BALANCE: "Insufficient balance.",
}


class OrderRejectedError(DomainError):
    """La orden no pasó la validación de negocio."""

    def __init__(self, reason: RejectReason):
        super().__init__(_REJECT_MESSAGES[reason], code=reason.value)
        self.reason = reason


class ContractViolationError(DomainError):
    """Argumento imposible (precio no finito, tipo incorrecto, etc.)."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, code="CONTRACT_VIOLATION")
        self.field = field
        self.value = value


class FeedError(DomainError):
    """Error del feed externo: mensaje malformado o histórico no disponible."""

    def __init__(self, message: str, symbol: str | None = None):
        super().__init__(message, code="FEED_ERROR")
        self.symbol = symbol


class PersistenceError(DomainError):
    """Snapshot persistido ilegible o con versión de esquema desconocida."""

    def __init__(self, message: str, namespace: str | None = None):
        super().__init__(message, code="PERSISTENCE_ERROR")
        self.namespace = namespace
