"""Domain services for the virtual trading application."""
from .valuation_service import ValuationEngine, value_holding, value_portfolio
from .trade_executor import TradeExecutor
from .watchlist_monitor import WatchlistMonitor, AlertFeed

__all__ = [
    'ValuationEngine',
    'value_holding',
    'value_portfolio',
    'TradeExecutor',
    'WatchlistMonitor',
    'AlertFeed',
]
