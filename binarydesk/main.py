"""
BinaryDesk – Main Application Entry Point
==========================================
Orquesta todos los componentes: Feed + Ledger + Indicadores + OrderBook +
Notificaciones + Persistencia del historial.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. Crear el contenedor (EventBus, TradingState, OrderBook, ...)
  3. Lifespan startup:
     a. Base de datos + restaurar historial + PersistenceListener
     b. ProcessFeedUseCase (consumer del feed + poll de liquidación)
     c. WebSocketManager (broadcast a frontend)
     d. BinanceFeed (REST bootstrap + stream)
  4. Lifespan shutdown:
     a. Detener todo en orden inverso

FLUJO DE DATOS:
  Binance REST/WS → BinanceFeed → EventBus(feed) → ProcessFeedUseCase
       → CandleLedger (replace_all | upsert)
       → OrderBook.finalize_orders → NotificationDispatcher
       → EventBus(state_changed)   → WebSocketManager → Frontend
       → EventBus(history_changed) → PersistenceListener → SQLite

  uvicorn binarydesk.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from binarydesk import __version__
from binarydesk.api.routes import init_routes, router
from binarydesk.container import Container, init_container
from binarydesk.core.logging import get_logger, setup_logging
from binarydesk.core.settings import settings as default_settings
from binarydesk.domain.exceptions import ContractViolationError, PersistenceError

# ─── Logging ────────────────────────────────────────────────────────────
setup_logging("DEBUG" if default_settings.debug else "INFO")
logger = get_logger("main")


async def _restore_history(container: Container) -> None:
    """Cargar historial persistido; un snapshot ilegible no impide arrancar."""
    await container.database.initialize()
    try:
        entries = await container.history_store.load()
    except PersistenceError as exc:
        logger.error(
            "Historial persistido descartado (%s): %s", exc.namespace, exc.message,
        )
        entries = []
    container.order_book.restore_history(entries)
    await container.persistence_listener.start()


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Construir la app FastAPI sobre un contenedor (inyectable en tests)."""
    container = container or init_container()
    settings = container.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("  BinaryDesk v%s", __version__)
        logger.info("  Mercado inicial: %s (velas %s)", settings.default_symbol, settings.kline_interval)
        logger.info("  Ledger: %d velas | Historial: %d trades | Toasts: %d",
                    settings.max_candles, settings.max_trade_history, settings.max_notifications)
        logger.info("  Balance inicial: %.2f | Payout: %.0f%% | Expiries: %s min",
                    settings.initial_balance, settings.default_payout * 100,
                    ", ".join(str(e) for e in settings.expiry_options))
        logger.info("=" * 60)

        if settings.persist_history:
            await _restore_history(container)
            logger.info("  Historial: persistido en %s", settings.history_db_url)
        else:
            logger.info("  Historial: solo en memoria (persist_history=False)")

        await container.process_feed.start()
        await container.ws_manager.start()
        await container.feed.start(container.state.selected_symbol)

        logger.info("✓ Todos los componentes iniciados correctamente")

        yield  # ← La app está corriendo aquí

        # ── SHUTDOWN ──
        logger.info("Iniciando shutdown...")
        await container.feed.stop()
        await container.ws_manager.stop()
        await container.process_feed.stop()
        if settings.persist_history:
            await container.persistence_listener.stop()
            await container.database.close()
            logger.info("  Database: Conexión cerrada")
        await container.event_bus.unsubscribe_all()
        logger.info("✓ Shutdown completo")

    app = FastAPI(
        title="BinaryDesk",
        description="Simulador de opciones binarias sobre klines de Binance",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ContractViolationError)
    async def contract_violation_handler(request: Request, exc: ContractViolationError):
        logger.warning("Contrato violado en %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=422,
            content={**exc.to_dict(), "field": exc.field},
        )

    init_routes(
        container.ws_manager,
        container.state,
        container.commands,
        container.order_book,
        feed=container.feed,
        process_feed=container.process_feed,
        event_bus=container.event_bus,
    )
    app.include_router(router)
    return app


def run() -> None:
    """Entry point de consola: `binarydesk`."""
    import uvicorn

    uvicorn.run(
        "binarydesk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )


app = create_app()
