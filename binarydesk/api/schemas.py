"""
BinaryDesk – API Schemas (Pydantic)
=====================================
Schemas de validación para los requests de la API REST.

Solo se valida la FORMA aquí (tipos, campos requeridos). Las reglas de
negocio (precio disponible, saldo) las aplica OrderBook y vuelven como
resultado, no como error HTTP.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from binarydesk.domain.entities.order import Direction


class PlaceOrderRequest(BaseModel):
    direction: Direction
    amount: float
    expiry_minutes: float = Field(gt=0)
    payout: Optional[float] = Field(default=None, ge=0)


class SymbolRequest(BaseModel):
    symbol: str = Field(min_length=1, max_length=20)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
