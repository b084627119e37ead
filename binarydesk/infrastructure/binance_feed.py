"""
BinaryDesk – Binance Feed Adapter (asíncrono)
===============================================
Obtiene el histórico por REST y luego sigue el stream de klines por
WebSocket, publicando cada evento en el EventBus.

CICLO POR CONEXIÓN:
  1. ConnectionChanged(CONNECTING)
  2. Bootstrap REST → HistoryBootstrap
       └── si falla y aún no hubo bootstrap real → serie sintética
  3. WebSocket kline_1m → ConnectionChanged(CONNECTED) + CandleTick…
  4. Desconexión → ConnectionChanged(DISCONNECTED)
  5. Esperar RetryPolicy.delay() y volver a 1 (re-bootstrap idempotente,
     así el ledger recupera continuidad en vez de mostrar un hueco)

CAMBIO DE MERCADO:
- switch_symbol() cancela la task actual y lanza otra. Cada evento lleva
  su símbolo; si alguno de la suscripción vieja ya estaba en la cola,
  ProcessFeedUseCase lo descarta.

ERRORES:
- Mensaje malformado → log + se ignora.
- Red / servidor → log, reconexión. Nunca llegan al motor de trading.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from typing import Any, Callable, Optional

import httpx
import websockets

from binarydesk.application.ports import IMarketFeed
from binarydesk.core.logging import get_logger
from binarydesk.core.settings import Settings
from binarydesk.domain.entities.candle import Candle
from binarydesk.domain.entities.feed import (
    CandleTick,
    ConnectionChanged,
    ConnectionStatus,
    HistoryBootstrap,
)
from binarydesk.domain.exceptions import FeedError
from binarydesk.infrastructure.event_bus import FEED_TOPIC, EventBus
from binarydesk.infrastructure.retry_policy import RetryPolicy

logger = get_logger("binance_feed")

SYNTHETIC_BASE_PRICE = 50_000.0
SYNTHETIC_SPACING_SECONDS = 60


# ──────────────────────── Parsing ─────────────────────────────────────

def parse_rest_rows(data: Any) -> list[Candle]:
    """
    Filas REST de /api/v3/klines → velas cerradas.

    Fila: [openTime, open, high, low, close, volume, closeTime, ...] (>= 11 campos)
    """
    if not isinstance(data, list):
        raise FeedError("Respuesta de klines no es una lista")
    candles: list[Candle] = []
    for row in data:
        if not isinstance(row, (list, tuple)) or len(row) < 11:
            continue
        try:
            candles.append(
                Candle(
                    time=int(row[0]) // 1000,
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                    is_closed=True,
                )
            )
        except (TypeError, ValueError):
            logger.debug("Fila de kline inválida ignorada: %s", str(row)[:120])
    return candles


def _is_epoch_ms(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_kline(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return (
        _is_epoch_ms(value.get("t"))
        and _is_epoch_ms(value.get("T"))
        and all(isinstance(value.get(key), str) for key in ("o", "h", "l", "c"))
    )


def parse_kline_message(raw: str | bytes) -> Optional[Candle]:
    """
    Mensaje del stream → Candle, o None si no es una kline.

    Acepta {"k": {...}} y el envoltorio combinado {"data": {"k": {...}}}.
    Lanza FeedError si el payload no es JSON.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FeedError(f"Mensaje no-JSON: {exc}") from exc

    if not isinstance(payload, dict):
        return None
    kline = payload.get("k")
    if kline is None and isinstance(payload.get("data"), dict):
        kline = payload["data"].get("k")
    if not _is_kline(kline):
        return None

    try:
        return Candle(
            time=kline["t"] // 1000,
            open=float(kline["o"]),
            high=float(kline["h"]),
            low=float(kline["l"]),
            close=float(kline["c"]),
            volume=float(kline.get("v") or 0.0),
            is_closed=bool(kline.get("x", False)),
        )
    except (TypeError, ValueError) as exc:
        raise FeedError(f"Kline con valores no numéricos: {exc}") from exc


def synthetic_candles(
    count: int,
    now_seconds: int,
    rng: random.Random,
) -> list[Candle]:
    """Serie de respaldo: `count` velas de 1m que terminan en `now_seconds`."""
    candles: list[Candle] = []
    for idx in range(count):
        open_ = SYNTHETIC_BASE_PRICE + idx * 12
        close = open_ + (rng.random() - 0.5) * 200
        candles.append(
            Candle(
                time=now_seconds - (count - idx) * SYNTHETIC_SPACING_SECONDS,
                open=open_,
                high=max(open_, close) + rng.random() * 120,
                low=min(open_, close) - rng.random() * 120,
                close=close,
                volume=rng.random() * 5,
                is_closed=True,
            )
        )
    return candles


# ──────────────────────── Adapter ─────────────────────────────────────

class BinanceFeed(IMarketFeed):
    """
    Feed de klines de Binance para UN símbolo a la vez.

    Ciclo de vida:
      1. start(symbol)         → lanza task de conexión
      2. _connect_loop()       → bootstrap + stream, reconexión con RetryPolicy
      3. switch_symbol(symbol) → cancela y relanza
      4. stop()                → shutdown limpio
    """

    def __init__(
        self,
        event_bus: EventBus,
        settings: Settings,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connect: Callable[..., Any] = websockets.connect,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._event_bus = event_bus
        self._settings = settings
        self._policy = retry_policy or RetryPolicy.from_settings(settings)
        self._transport = transport
        self._connect = connect
        self._clock = clock
        self._rng = random.Random(settings.fallback_seed)

        self._symbol: Optional[str] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._reconnect_attempt = 0

        # Estadísticas de monitoreo
        self._ticks_received: int = 0
        self._bootstraps: int = 0
        self._fallbacks: int = 0
        self._malformed: int = 0
        self._connected: bool = False

    # ──────────────────────── Lifecycle ──────────────────────────────────

    async def start(self, symbol: str) -> None:
        """Iniciar feed. Idempotente: llamar varias veces es seguro."""
        if self._running and self._symbol == symbol:
            logger.warning("BinanceFeed ya está corriendo para %s, ignorando start()", symbol)
            return
        if self._running:
            await self._cancel_task()

        self._symbol = symbol
        self._running = True
        self._reconnect_attempt = 0
        self._task = asyncio.create_task(
            self._connect_loop(symbol), name=f"binance-feed-{symbol.lower()}"
        )
        logger.info("BinanceFeed iniciado para %s", symbol)

    async def switch_symbol(self, symbol: str) -> None:
        logger.info("BinanceFeed cambiando %s → %s", self._symbol, symbol)
        await self.start(symbol)

    async def stop(self) -> None:
        """Shutdown limpio: cancelar task (cierra el WS vía context manager)."""
        self._running = False
        logger.info("Deteniendo BinanceFeed...")
        await self._cancel_task()
        logger.info(
            "BinanceFeed detenido. Total klines recibidas: %d", self._ticks_received
        )

    async def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._connected = False

    # ──────────────────────── Connection Loop ───────────────────────────

    async def _connect_loop(self, symbol: str) -> None:
        """Bootstrap + stream hasta cancelación, con RetryPolicy entre intentos."""
        ws_url = (
            f"{self._settings.binance_ws_base_url}/"
            f"{symbol.lower()}@kline_{self._settings.kline_interval}"
        )
        has_real_history = False

        while self._running:
            await self._publish_status(symbol, ConnectionStatus.CONNECTING)
            has_real_history = await self._bootstrap(symbol, has_real_history)

            try:
                logger.info("Conectando a Binance: %s", ws_url)
                async with self._connect(ws_url, ping_interval=20, close_timeout=5) as ws:
                    self._reconnect_attempt = 0
                    self._connected = True
                    await self._publish_status(symbol, ConnectionStatus.CONNECTED)
                    logger.info("✓ Conectado al stream %s", ws_url)
                    await self._listen(ws, symbol)
            except asyncio.CancelledError:
                raise
            except websockets.exceptions.ConnectionClosed as e:
                logger.warning("Conexión cerrada (%s): %s", symbol, e)
            except OSError as e:
                logger.error("Error de red (%s): %s", symbol, e)
            except Exception as e:
                logger.error("Error inesperado en connect_loop: %s", e, exc_info=True)
            finally:
                self._connected = False

            if not self._running:
                break

            await self._publish_status(symbol, ConnectionStatus.DISCONNECTED)

            if not self._policy.should_retry(self._reconnect_attempt):
                logger.error(
                    "Reintentos agotados para %s tras %d intentos",
                    symbol, self._reconnect_attempt,
                )
                break

            delay = self._policy.delay(self._reconnect_attempt)
            self._reconnect_attempt += 1
            logger.info(
                "Reconectando en %.1fs (intento #%d)...", delay, self._reconnect_attempt,
            )
            await asyncio.sleep(delay)

    # ──────────────────────── Bootstrap ─────────────────────────────────

    async def fetch_history(self, symbol: str) -> list[Candle]:
        """GET del histórico. Lanza FeedError si falla o viene vacío."""
        params = {
            "symbol": symbol,
            "interval": self._settings.kline_interval,
            "limit": self._settings.history_limit,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout, transport=self._transport,
            ) as client:
                response = await client.get(self._settings.binance_rest_url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise FeedError(f"Histórico no disponible: {exc}", symbol=symbol) from exc

        candles = parse_rest_rows(data)
        if not candles:
            raise FeedError("Histórico vacío", symbol=symbol)
        return candles

    async def _bootstrap(self, symbol: str, has_real_history: bool) -> bool:
        """
        Publicar el histórico. Returns: True si ya hubo un bootstrap real.

        Sin histórico real previo → serie sintética para que el ledger
        nunca quede vacío. Con histórico previo se conserva el ledger.
        """
        try:
            candles = await self.fetch_history(symbol)
        except FeedError as exc:
            logger.warning("Bootstrap fallido para %s: %s", symbol, exc.message)
            if has_real_history:
                return True
            fallback = synthetic_candles(
                self._settings.fallback_candles, int(self._clock()), self._rng,
            )
            self._fallbacks += 1
            await self._event_bus.publish(
                FEED_TOPIC, HistoryBootstrap(symbol=symbol, candles=tuple(fallback), synthetic=True),
            )
            logger.info("Serie sintética publicada para %s (%d velas)", symbol, len(fallback))
            return False

        self._bootstraps += 1
        await self._event_bus.publish(
            FEED_TOPIC, HistoryBootstrap(symbol=symbol, candles=tuple(candles)),
        )
        logger.info("Histórico publicado para %s (%d velas)", symbol, len(candles))
        return True

    # ──────────────────────── Listener ──────────────────────────────────

    async def _listen(self, ws: Any, symbol: str) -> None:
        """Parsear cada mensaje y publicar klines. Ignora lo demás."""
        async for raw_msg in ws:
            if not self._running:
                break
            try:
                candle = parse_kline_message(raw_msg)
            except FeedError as exc:
                self._malformed += 1
                logger.warning("Mensaje malformado ignorado (%s): %s", symbol, exc.message)
                continue
            if candle is None:
                continue

            self._ticks_received += 1
            await self._event_bus.publish(FEED_TOPIC, CandleTick(symbol=symbol, candle=candle))

    async def _publish_status(self, symbol: str, status: ConnectionStatus) -> None:
        await self._event_bus.publish(FEED_TOPIC, ConnectionChanged(symbol=symbol, status=status))

    # ──────────────────────── Stats ─────────────────────────────────────

    @property
    def stats(self) -> dict:
        """Estadísticas del feed para monitoreo."""
        return {
            "running": self._running,
            "symbol": self._symbol,
            "connected": self._connected,
            "klines_received": self._ticks_received,
            "bootstraps": self._bootstraps,
            "fallbacks": self._fallbacks,
            "malformed_messages": self._malformed,
            "reconnect_attempts": self._reconnect_attempt,
        }
