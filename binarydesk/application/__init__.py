"""
Capa de aplicación: orquesta el estado con los eventos del feed y los
comandos del usuario. Es el único lugar que publica cambios en el bus.
"""

from binarydesk.application.ports import IMarketFeed
from binarydesk.application.process_feed_usecase import ProcessFeedUseCase
from binarydesk.application.trading_commands import TradingCommands

__all__ = ["IMarketFeed", "ProcessFeedUseCase", "TradingCommands"]
