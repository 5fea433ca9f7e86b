from .executor import SwapExecutor, SwapMode
from .observer import Observer
from .screener import Screener
from .trading_bot import TradingBot

__all__ = [
    'SwapExecutor',
    'SwapMode',
    'Observer',
    'Screener',
    'TradingBot',
]
