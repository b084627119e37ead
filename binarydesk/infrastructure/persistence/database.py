"""
BinaryDesk – SQLAlchemy Async Database
=======================================
Engine async, session factory y base declarativa.

DECISIONES DE DISEÑO:

1. ASYNC ENGINE:
   - sqlalchemy[asyncio] + aiosqlite: guardar el historial nunca bloquea
     el event loop que procesa klines.

2. SESSION FACTORY:
   - AsyncSession con expire_on_commit=False para evitar queries
     automáticas post-commit.

3. NAMING CONVENTION:
   - Convención explícita para índices y constraints.

4. SIN SINGLETON:
   - El composition root crea UNA instancia con la URL de settings;
     los tests crean la suya contra un archivo temporal.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from binarydesk.core.logging import get_logger

logger = get_logger("database")

# ─── Naming Convention ─────────────────────────────────────────────────────
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base declarativa para los modelos ORM."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class DatabaseManager:
    """
    Conexión async a la base de historial.

    USO:
        db = DatabaseManager(settings.history_db_url)
        await db.initialize()  # En startup (crea tablas si faltan)

        async with db.session() as session:
            result = await session.execute(...)

        await db.close()  # En shutdown
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self._url = url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def url(self) -> str:
        return self._url

    async def initialize(self) -> None:
        """Crear engine, session factory y tablas. Idempotente."""
        if self._engine is not None:
            return

        # Registrar modelos en Base.metadata antes de create_all
        from binarydesk.infrastructure.persistence import models  # noqa: F401

        self._engine = create_async_engine(self._url, echo=self._echo)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Base de datos lista: %s", self._url)

    async def close(self) -> None:
        """Cerrar el engine y todas las conexiones del pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Sesión con rollback automático si algo falla dentro del bloque.
        El commit es explícito.
        """
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager no inicializado. Llama a initialize() primero.")

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
