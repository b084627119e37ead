"""
BinaryDesk – Settings (Pydantic BaseSettings)
==============================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

Cada componente recibe un Settings explícito (inyectable en tests);
el singleton `settings` solo lo usa el composition root.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ─── Binance (feed externo) ─────────────────────────────────────────
    binance_ws_base_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Base del stream de klines de Binance",
    )
    binance_rest_url: str = Field(
        default="https://api.binance.com/api/v3/klines",
        description="Endpoint REST para el histórico de velas",
    )
    kline_interval: str = Field(default="1m", description="Bucket de cada vela")
    history_limit: int = Field(
        default=500, description="Velas solicitadas en el bootstrap"
    )
    request_timeout: float = Field(
        default=10.0, description="Timeout (seg) del request REST de histórico"
    )

    # ─── Capacidades (memoria acotada) ──────────────────────────────────
    max_candles: int = Field(
        default=720, description="Capacidad del ledger (12h de velas de 1m)"
    )
    max_trade_history: int = Field(
        default=500, description="Máximo de trades liquidados en historial"
    )
    max_notifications: int = Field(
        default=5, description="Capacidad del carril estándar de notificaciones"
    )

    # ─── Trading ────────────────────────────────────────────────────────
    initial_balance: float = Field(default=10_000.0, description="Balance virtual inicial")
    default_payout: float = Field(default=0.85, description="Payout ofrecido (fracción)")
    expiry_options: List[int] = Field(
        default=[1, 5, 15], description="Expiraciones ofrecidas (minutos)"
    )
    default_symbol: str = Field(default="BTCUSDT", description="Mercado seleccionado al arrancar")
    settlement_poll_seconds: float = Field(
        default=5.0, description="Intervalo del fallback periódico de liquidación"
    )

    # ─── Reconexión ─────────────────────────────────────────────────────
    reconnect_base_delay: float = Field(
        default=2.0, description="Delay (seg) antes de reconectar el feed"
    )
    reconnect_max_delay: float = Field(
        default=30.0, description="Delay máximo (seg) entre reconexiones"
    )
    reconnect_backoff_factor: float = Field(
        default=1.0, description="Multiplicador por intento (1.0 = backoff fijo)"
    )
    reconnect_jitter: float = Field(
        default=0.0, description="Jitter como fracción del delay"
    )

    # ─── Serie sintética de respaldo ────────────────────────────────────
    fallback_candles: int = Field(
        default=120, description="Velas sintéticas si falla el bootstrap"
    )
    fallback_seed: Optional[int] = Field(
        default=None, description="Semilla RNG para la serie sintética"
    )

    # ─── Persistencia (solo historial) ──────────────────────────────────
    persist_history: bool = Field(default=True, description="Persistir historial de trades")
    history_db_url: str = Field(
        default="sqlite+aiosqlite:///./binarydesk.db",
        description="URL SQLAlchemy async para el snapshot de historial",
    )
    history_namespace: str = Field(
        default="bo-trade-storage", description="Clave fija del snapshot persistido"
    )
    db_echo: bool = Field(default=False)

    # ─── Event Bus ──────────────────────────────────────────────────────
    event_bus_max_queue_size: int = Field(
        default=10_000,
        description="Tamaño máximo de cola del Event Bus para contrapresión",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8888)
    debug: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton global – se importa donde se necesite
settings = Settings()
