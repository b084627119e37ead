from binarydesk.state.candle_ledger import CandleLedger
from binarydesk.state.trading_state import TradingState

__all__ = ["CandleLedger", "TradingState"]
