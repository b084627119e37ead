"""
Infraestructura: EventBus, feed de Binance, política de reintentos y
persistencia del historial.
"""
