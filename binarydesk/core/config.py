"""
BinaryDesk – Config helpers
===========================
Catálogo de pares operables y tabla de estilos por variante de notificación.
"""

from __future__ import annotations

from binarydesk.core.settings import settings
from binarydesk.domain.entities.notification import NotificationVariant

# Mapping de symbol_id → nombre legible para logs y frontend
TRADING_PAIRS: dict[str, str] = {
    "BTCUSDT": "BTC / USDT",
    "ETHUSDT": "ETH / USDT",
    "SOLUSDT": "SOL / USDT",
    "XRPUSDT": "XRP / USDT",
    "ADAUSDT": "ADA / USDT",
    "BNBUSDT": "BNB / USDT",
    "DOGEUSDT": "DOGE / USDT",
    "MATICUSDT": "MATIC / USDT",
    "DOTUSDT": "DOT / USDT",
    "LTCUSDT": "LTC / USDT",
    "TRXUSDT": "TRX / USDT",
    "AVAXUSDT": "AVAX / USDT",
    "SHIBUSDT": "SHIB / USDT",
    "LINKUSDT": "LINK / USDT",
}

# Estilo de cada variante para la capa de presentación (lookup explícito)
NOTIFICATION_STYLES: dict[NotificationVariant, dict[str, str]] = {
    NotificationVariant.SUCCESS: {"icon": "check-circle", "tone": "emerald"},
    NotificationVariant.ERROR: {"icon": "x-circle", "tone": "rose"},
    NotificationVariant.INFO: {"icon": "info", "tone": "sky"},
    NotificationVariant.WARNING: {"icon": "alert-triangle", "tone": "amber"},
}


def trading_pairs() -> list[dict[str, str]]:
    """Lista serializable de pares para el selector del frontend."""
    return [{"label": label, "value": value} for value, label in TRADING_PAIRS.items()]


__all__ = ["settings", "TRADING_PAIRS", "NOTIFICATION_STYLES", "trading_pairs"]
