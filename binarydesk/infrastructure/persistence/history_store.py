"""
BinaryDesk – History Store
===========================
Carga y guarda el historial de trades como un snapshot versionado.

FORMATO (JSON en history_snapshots.payload):
  {"version": 1, "trade_history": [{id, symbol, direction, amount, ...}, ...]}

ERRORES:
  - Fila inexistente           → historial vacío (primer arranque)
  - JSON inválido / versión ≠ 1 → PersistenceError; el composition root lo
    registra y arranca con historial vacío.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select

from binarydesk.core.logging import get_logger
from binarydesk.domain.entities.order import Direction, TradeHistoryEntry, TradeOutcome
from binarydesk.domain.exceptions import PersistenceError
from binarydesk.infrastructure.persistence.database import DatabaseManager
from binarydesk.infrastructure.persistence.models import HistorySnapshotModel

logger = get_logger("history_store")

SNAPSHOT_VERSION = 1


class TradeRecord(BaseModel):
    """Fila de historial tal como se guarda."""

    model_config = ConfigDict(use_enum_values=True)

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


class HistorySnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    trade_history: list[TradeRecord] = Field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[TradeHistoryEntry]) -> "HistorySnapshot":
        return cls(trade_history=[TradeRecord(**e.to_dict()) for e in entries])

    def to_entries(self) -> list[TradeHistoryEntry]:
        return [TradeHistoryEntry.from_dict(r.model_dump()) for r in self.trade_history]


class HistoryStore:
    """Repositorio del snapshot de historial para un namespace."""

    def __init__(self, db: DatabaseManager, namespace: str) -> None:
        self._db = db
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    async def load(self) -> list[TradeHistoryEntry]:
        async with self._db.session() as session:
            row = await session.get(HistorySnapshotModel, self._namespace)

        if row is None:
            logger.info("Sin historial persistido para '%s'", self._namespace)
            return []
        if row.version != SNAPSHOT_VERSION:
            raise PersistenceError(
                f"Versión de snapshot no soportada: {row.version}", namespace=self._namespace,
            )
        try:
            snapshot = HistorySnapshot.model_validate_json(row.payload)
        except ValidationError as exc:
            raise PersistenceError(
                f"Snapshot ilegible: {exc.error_count()} errores", namespace=self._namespace,
            ) from exc
        if snapshot.version != SNAPSHOT_VERSION:
            raise PersistenceError(
                f"Versión de snapshot no soportada: {snapshot.version}", namespace=self._namespace,
            )

        entries = snapshot.to_entries()
        logger.info("Historial cargado de '%s': %d trades", self._namespace, len(entries))
        return entries

    async def save(self, entries: Iterable[TradeHistoryEntry]) -> None:
        """Upsert del snapshot completo."""
        snapshot = HistorySnapshot.from_entries(entries)
        payload = snapshot.model_dump_json()

        async with self._db.session() as session:
            row = await session.get(HistorySnapshotModel, self._namespace)
            if row is None:
                session.add(
                    HistorySnapshotModel(
                        namespace=self._namespace, version=snapshot.version, payload=payload,
                    )
                )
            else:
                row.version = snapshot.version
                row.payload = payload
            await session.commit()

        logger.debug(
            "📀 Historial guardado en '%s': %d trades",
            self._namespace, len(snapshot.trade_history),
        )
