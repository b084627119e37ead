"""
BinaryDesk – Simulated binary-options trading desk
====================================================
Núcleo de órdenes CALL/PUT con liquidación por expiración, ledger de velas
en vivo e indicadores (RSI, MACD) sobre el stream de precios.
"""

__version__ = "0.3.0"
