"""
BinaryDesk – Order Book / Settlement Engine
=============================================
Dueño de las órdenes activas y del historial. Máquina de estados
PENDING → {WON, LOST} y contabilidad de balance / PnL.

═══════════════════════════════════════════════════════════════
            FLUJO DEL MOTOR
═══════════════════════════════════════════════════════════════

    place_order(direction, amount, expiry_minutes, payout)
        │
        ├── ¿precio en vivo?       NO → NO_LIVE_PRICE
        ├── ¿amount > 0?           NO → INVALID_AMOUNT
        ├── ¿amount <= balance?    NO → INSUFFICIENT_BALANCE
        │
        └── balance −= amount, ActiveOrder(entry = precio actual)
                    │
          tick del feed / poll cada 5s
                    │
                    ▼
        finalize_orders(price, timestamp)
                    │
                    ├── expiry >  ts → sigue activa
                    └── expiry <= ts → settle() → WON | LOST
                                         │
                                         ├── WON:  balance += amount × (1+payout)
                                         │         pnl     += amount × payout
                                         └── LOST: pnl     −= amount

IDEMPOTENCIA:
    Tick y poll pueden disparar la misma pasada para una orden que vence.
    La orden sale del set activo en la PRIMERA pasada que la liquida, así
    que la segunda ya no la ve. Nunca se liquida dos veces.

DETERMINISMO:
    Varias órdenes que vencen en la misma pasada se liquidan contra el
    mismo snapshot precio/timestamp, en orden de colocación.

ERRORES:
    Los rechazos de validación NUNCA lanzan: retornan PlaceOrderResult
    fallido + una notificación. Un argumento imposible (precio no finito,
    dirección desconocida) es ContractViolationError y se propaga.
"""

from __future__ import annotations

import math
import numbers
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from binarydesk.core.logging import get_logger
from binarydesk.core.settings import Settings
from binarydesk.domain.entities.notification import NotificationVariant
from binarydesk.domain.entities.order import (
    ActiveOrder,
    Direction,
    TradeHistoryEntry,
    TradeOutcome,
)
from binarydesk.domain.exceptions import (
    ContractViolationError,
    OrderRejectedError,
    RejectReason,
)
from binarydesk.services.notification_dispatcher import NotificationDispatcher
from binarydesk.state.trading_state import TradingState

logger = get_logger("order_book")

MS_PER_MINUTE = 60_000

_REJECT_TITLES = {
    RejectReason.NO_LIVE_PRICE: (
        "No live price yet", "Wait for a price update before placing an order.",
    ),
    RejectReason.INVALID_AMOUNT: (
        "Invalid amount", "The amount must be greater than 0.",
    ),
    RejectReason.INSUFFICIENT_BALANCE: (
        "Insufficient balance", "Lower the amount or top up the balance.",
    ),
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require_finite(name: str, value: object) -> float:
    """Número real finito o ContractViolationError (bool no cuenta)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ContractViolationError(f"{name} debe ser numérico", field=name, value=value)
    result = float(value)
    if not math.isfinite(result):
        raise ContractViolationError(f"{name} debe ser finito", field=name, value=value)
    return result


def _require_direction(value: object) -> Direction:
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        try:
            return Direction(value.upper())
        except ValueError:
            pass
    raise ContractViolationError("direction debe ser CALL o PUT", field="direction", value=value)


def format_countdown(remaining_ms: int) -> str:
    """MM:SS restante o 'Expiring' si ya venció."""
    if remaining_ms <= 0:
        return "Expiring"
    total_seconds = remaining_ms // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def projected_payout(amount: float, payout: float) -> float:
    """Monto bruto que devuelve una orden ganadora."""
    return amount * (1 + payout)


@dataclass(frozen=True, slots=True)
class PlaceOrderResult:
    success: bool
    message: Optional[str] = None
    reason: Optional[RejectReason] = None
    order: Optional[ActiveOrder] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "reason": self.reason.value if self.reason else None,
            "order": self.order.to_dict() if self.order else None,
        }


class OrderBook:
    """
    Motor de órdenes binarias.

    Responsabilidades:
      1. Validar y abrir órdenes (débito del stake)
      2. Liquidar órdenes vencidas contra un snapshot de precio
      3. Mantener historial acotado, más reciente primero
      4. Emitir una notificación por cada rechazo / apertura / liquidación
    """

    def __init__(
        self,
        state: TradingState,
        notifications: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], int] = _now_ms,
        id_factory: Optional[Callable[[int], str]] = None,
    ) -> None:
        self._state = state
        self._notifications = notifications
        self._max_history = settings.max_trade_history
        self._clock = clock
        self._id_factory = id_factory or (lambda now: f"{now}-{uuid.uuid4().hex[:6]}")
        self._stats = _OrderBookStats()

    # ════════════════════════════════════════════════════════════════
    #  1. COLOCAR ORDEN
    # ════════════════════════════════════════════════════════════════

    def place_order(
        self,
        direction: Direction | str,
        amount: float,
        expiry_minutes: float,
        payout: float,
    ) -> PlaceOrderResult:
        """Validar y abrir una orden al precio actual."""
        direction = _require_direction(direction)
        amount = _require_finite("amount", amount)
        expiry_minutes = _require_finite("expiry_minutes", expiry_minutes)
        payout = _require_finite("payout", payout)
        if expiry_minutes <= 0:
            raise ContractViolationError(
                "expiry_minutes debe ser > 0", field="expiry_minutes", value=expiry_minutes,
            )
        if payout < 0:
            raise ContractViolationError("payout debe ser >= 0", field="payout", value=payout)

        state = self._state
        try:
            self._validate(amount)
        except OrderRejectedError as exc:
            self._stats.rejected += 1
            title, description = _REJECT_TITLES[exc.reason]
            self._notifications.push(title, NotificationVariant.ERROR, description=description)
            logger.warning(
                "🚫 Orden rechazada | %s %s amount=%.2f balance=%.2f reason=%s",
                state.selected_symbol, direction.value, amount, state.balance, exc.code,
            )
            return PlaceOrderResult(success=False, message=exc.message, reason=exc.reason)

        now = self._clock()
        order = ActiveOrder(
            id=self._id_factory(now),
            symbol=state.selected_symbol,
            direction=direction,
            amount=amount,
            entry_price=state.price,
            payout=payout,
            expiry=now + int(round(expiry_minutes * MS_PER_MINUTE)),
            opened_at=now,
        )

        state.balance -= amount
        state.active_orders.append(order)
        self._stats.placed += 1

        minutes = f"{expiry_minutes:g}"
        self._notifications.push(
            f"{direction.value} order placed",
            NotificationVariant.SUCCESS,
            description=f"{order.symbol} • {amount:,.2f} USD • Settles in {minutes} min",
        )
        logger.info(
            "📝 Orden abierta | id=%s sym=%s dir=%s amount=%.2f entry=%.5f payout=%.2f expiry=%d",
            order.id, order.symbol, direction.value, amount,
            order.entry_price, payout, order.expiry,
        )
        return PlaceOrderResult(success=True, order=order)

    def _validate(self, amount: float) -> None:
        state = self._state
        if state.price is None:
            raise OrderRejectedError(RejectReason.NO_LIVE_PRICE)
        if amount <= 0:
            raise OrderRejectedError(RejectReason.INVALID_AMOUNT)
        if amount > state.balance:
            raise OrderRejectedError(RejectReason.INSUFFICIENT_BALANCE)

    # ════════════════════════════════════════════════════════════════
    #  2. LIQUIDAR (PENDING → WON|LOST)
    # ════════════════════════════════════════════════════════════════

    def finalize_orders(self, price: float, timestamp: int) -> list[TradeHistoryEntry]:
        """
        Liquidar toda orden con expiry <= timestamp contra `price`.

        Returns:
            Registros creados en esta pasada (vacío si nada venció).
        """
        price = _require_finite("price", price)
        if isinstance(timestamp, bool) or not isinstance(timestamp, numbers.Integral):
            raise ContractViolationError("timestamp debe ser entero (ms)", field="timestamp", value=timestamp)

        state = self._state
        if not state.active_orders:
            return []

        remaining: list[ActiveOrder] = []
        settled: list[TradeHistoryEntry] = []
        for order in state.active_orders:
            if not order.is_due(timestamp):
                remaining.append(order)
                continue
            settled.append(order.settle(price, timestamp))

        if not settled:
            return []

        notices = []
        for entry in settled:
            state.balance += entry.credited
            state.pnl += entry.profit
            self._stats.record_close(entry)
            notices.append(self._settlement_notice(entry))
            logger.info(
                "%s Orden %s | id=%s sym=%s dir=%s entry=%.5f exit=%.5f profit=%+.2f",
                "🟢" if entry.outcome == TradeOutcome.WIN else "🔴",
                entry.status.value, entry.id, entry.symbol, entry.direction.value,
                entry.entry_price, entry.exit_price, entry.profit,
            )

        state.active_orders = remaining
        state.trade_history = sorted(
            [*settled, *state.trade_history], key=lambda e: e.closed_at, reverse=True,
        )[: self._max_history]
        self._notifications.push_many(notices)
        return settled

    def _settlement_notice(self, entry: TradeHistoryEntry):
        if entry.outcome == TradeOutcome.WIN:
            return self._notifications.create(
                "Trade won",
                NotificationVariant.SUCCESS,
                description=(
                    f"{entry.symbol} • +{entry.profit:.2f} USD "
                    f"(Payout {round(entry.payout * 100)}%)"
                ),
                spotlight=True,
            )
        return self._notifications.create(
            "Trade lost",
            NotificationVariant.ERROR,
            description=f"{entry.symbol} • {entry.profit:.2f} USD",
            spotlight=True,
        )

    # ════════════════════════════════════════════════════════════════
    #  3. HISTORIAL
    # ════════════════════════════════════════════════════════════════

    def clear_trade_history(self) -> None:
        self._state.trade_history = []
        logger.info("Historial de trades vaciado")

    def restore_history(self, entries: list[TradeHistoryEntry]) -> None:
        """Cargar el historial persistido (solo al arrancar)."""
        self._state.trade_history = sorted(
            entries, key=lambda e: e.closed_at, reverse=True,
        )[: self._max_history]
        logger.info("Historial restaurado: %d trades", len(self._state.trade_history))

    # ════════════════════════════════════════════════════════════════
    #  VISTAS PARA PRESENTACIÓN
    # ════════════════════════════════════════════════════════════════

    def active_orders_view(self, now: Optional[int] = None) -> list[dict]:
        """Órdenes activas por expiry asc, con countdown e in-the-money."""
        now = self._clock() if now is None else now
        price = self._state.price
        rows = []
        for order in sorted(self._state.active_orders, key=lambda o: o.expiry):
            remaining = order.expiry - now
            row = order.to_dict()
            row.update({
                "remaining_ms": remaining,
                "countdown": format_countdown(remaining),
                "in_the_money": price is not None and order.wins_at(price),
                "projected_payout": projected_payout(order.amount, order.payout),
            })
            rows.append(row)
        return rows

    def history_view(self, limit: int = 12) -> dict:
        history = self._state.trade_history
        return {
            "total": len(history),
            "trades": [e.to_dict() for e in history[:limit]],
        }

    @property
    def stats(self) -> dict:
        return {
            **self._stats.to_dict(),
            "active_orders": len(self._state.active_orders),
            "history_size": len(self._state.trade_history),
            "balance": round(self._state.balance, 2),
            "pnl": round(self._state.pnl, 2),
        }


# ════════════════════════════════════════════════════════════════════
#  STATS INTERNAS DEL MOTOR
# ════════════════════════════════════════════════════════════════════

class _OrderBookStats:
    """Contadores de sesión (no persistidos)."""

    __slots__ = ("placed", "rejected", "wins", "losses")

    def __init__(self) -> None:
        self.placed: int = 0
        self.rejected: int = 0
        self.wins: int = 0
        self.losses: int = 0

    def record_close(self, entry: TradeHistoryEntry) -> None:
        if entry.outcome == TradeOutcome.WIN:
            self.wins += 1
        else:
            self.losses += 1

    def to_dict(self) -> dict:
        settled = self.wins + self.losses
        return {
            "orders_placed": self.placed,
            "orders_rejected": self.rejected,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": round(self.wins / settled * 100, 1) if settled else 0.0,
        }
