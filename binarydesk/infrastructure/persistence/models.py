"""
BinaryDesk – History Snapshot ORM Model
========================================
Tabla `history_snapshots`: una fila por namespace con el historial
serializado en JSON.

- namespace es la PK ("bo-trade-storage" por defecto): varias instalaciones
  pueden compartir archivo sin pisarse.
- version permite rechazar snapshots de un esquema desconocido.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from binarydesk.infrastructure.persistence.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistorySnapshotModel(Base):
    """Modelo ORM del snapshot de historial."""

    __tablename__ = "history_snapshots"

    # ─── Columnas ─────────────────────────────────────────────────────
    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[str] = mapped_column(
        Text, nullable=False, comment="HistorySnapshot serializado (JSON)"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<HistorySnapshot(namespace='{self.namespace}', version={self.version})>"
