"""Domain entities for the virtual trading application."""
from .account import Account, Wallet
from .portfolio import Holding, Transaction, TransactionType
from .quote import Quote, PricePoint
from .watchlist import WatchlistEntry, WatchlistAlert, AlertDirection
from .valuation import HoldingValuation, PortfolioValuation, PortfolioSummary

__all__ = [
    'Account',
    'Wallet',
    'Holding',
    'Transaction',
    'TransactionType',
    'Quote',
    'PricePoint',
    'WatchlistEntry',
    'WatchlistAlert',
    'AlertDirection',
    'HoldingValuation',
    'PortfolioValuation',
    'PortfolioSummary',
]
