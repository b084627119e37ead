"""
BinaryDesk – Domain Entity: Order (Binary Option)
====================================================
Orden binaria CALL/PUT con expiración absoluta.

═══════════════════════════════════════════════════════════════
            CICLO DE VIDA DE LA ORDEN
═══════════════════════════════════════════════════════════════

  place_order() valida
       │
       ▼
  ActiveOrder PENDING  (stake debitado, entry = precio actual)
       │
       ├── pasada de liquidación con expiry > ts ──▸ sigue PENDING
       │
       └── primera pasada con expiry <= ts
                 │
                 ├── CALL: price >= entry ──▸ WON
                 ├── PUT:  price <= entry ──▸ WON
                 └── resto              ──▸ LOST

  WON / LOST son terminales. No hay cancelación.

EMPATES:
  Se resuelven a favor del trader (>= / <=, no estricto). Es una
  decisión de producto: CALL con entry=100 y cierre=100 GANA.

INMUTABILIDAD:
  ActiveOrder es frozen. settle() no muta la orden: produce el
  TradeHistoryEntry (también frozen) que la reemplaza en el historial.

PnL:
  WIN:  profit = +amount × payout   (balance recibe amount × (1 + payout))
  LOSS: profit = −amount            (el stake ya se debitó al abrir)

  Ejemplo: $50 CALL payout 0.85 ganado
      apertura:     balance −50
      liquidación:  balance +92.5
      neto:         +42.5  == profit
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Direction(str, Enum):
    """Dirección de la apuesta."""
    CALL = "CALL"  # precio al vencimiento >= entry
    PUT = "PUT"    # precio al vencimiento <= entry


class OrderStatus(str, Enum):
    """Estados de una orden binaria."""
    PENDING = "PENDING"  # Activa, esperando expiración
    WON = "WON"
    LOST = "LOST"


class TradeOutcome(str, Enum):
    WIN = "win"
    LOSS = "loss"


@dataclass(frozen=True, slots=True)
class ActiveOrder:
    """
    Orden abierta. Creada atómicamente por place_order(), destruida
    exactamente una vez en la pasada de liquidación que observa su expiración.
    """

    id: str
    symbol: str
    direction: Direction
    amount: float
    entry_price: float
    payout: float        # fracción, e.g. 0.85
    expiry: int          # epoch ms absoluto
    opened_at: int       # epoch ms

    @property
    def status(self) -> OrderStatus:
        return OrderStatus.PENDING

    def is_due(self, timestamp: int) -> bool:
        """¿Debe liquidarse en una pasada con este timestamp?"""
        return self.expiry <= timestamp

    def wins_at(self, price: float) -> bool:
        """Regla de resultado (empates a favor del trader)."""
        if self.direction == Direction.CALL:
            return price >= self.entry_price
        return price <= self.entry_price

    def settle(self, price: float, timestamp: int) -> "TradeHistoryEntry":
        """
        Transición PENDING → WON|LOST.

        Devuelve el registro inmutable de liquidación. La orden en sí no
        cambia; quien llama debe retirarla del set activo.
        """
        won = self.wins_at(price)
        profit = self.amount * self.payout if won else -self.amount
        return TradeHistoryEntry(
            id=self.id,
            symbol=self.symbol,
            direction=self.direction,
            amount=self.amount,
            entry_price=self.entry_price,
            payout=self.payout,
            expiry=self.expiry,
            opened_at=self.opened_at,
            closed_at=timestamp,
            exit_price=price,
            outcome=TradeOutcome.WIN if won else TradeOutcome.LOSS,
            profit=profit,
        )

    def to_dict(self) -> dict:
        """Serialización para API / WebSocket."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "amount": self.amount,
            "entry_price": self.entry_price,
            "payout": self.payout,
            "expiry": self.expiry,
            "opened_at": self.opened_at,
            "status": self.status.value,
        }


@dataclass(frozen=True, slots=True)
class TradeHistoryEntry:
    """Registro de liquidación derivado 1:1 de una ActiveOrder."""

    id: str
    symbol: str
    direction: Direction
    amount: float
    entry_price: float
    payout: float
    expiry: int
    opened_at: int
    closed_at: int
    exit_price: float
    outcome: TradeOutcome
    profit: float

    @property
    def status(self) -> OrderStatus:
        return OrderStatus.WON if self.outcome == TradeOutcome.WIN else OrderStatus.LOST

    @property
    def credited(self) -> float:
        """Monto devuelto al balance en la liquidación."""
        if self.outcome == TradeOutcome.WIN:
            return self.amount * (1 + self.payout)
        return 0.0

    def to_dict(self) -> dict:
        """Serialización para API / WebSocket / snapshot persistido."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "amount": self.amount,
            "entry_price": self.entry_price,
            "payout": self.payout,
            "expiry": self.expiry,
            "opened_at": self.opened_at,
            "closed_at": self.closed_at,
            "exit_price": self.exit_price,
            "outcome": self.outcome.value,
            "profit": self.profit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TradeHistoryEntry":
        return cls(
            id=str(data["id"]),
            symbol=str(data["symbol"]),
            direction=Direction(data["direction"]),
            amount=float(data["amount"]),
            entry_price=float(data["entry_price"]),
            payout=float(data["payout"]),
            expiry=int(data["expiry"]),
            opened_at=int(data["opened_at"]),
            closed_at=int(data["closed_at"]),
            exit_price=float(data["exit_price"]),
            outcome=TradeOutcome(data["outcome"]),
            profit=float(data["profit"]),
        )
