"""Repository interfaces for the virtual trading application."""
from .ledger_repository import ILedgerRepository, LedgerUpdate
from .watchlist_repository import IWatchlistRepository
from .quote_source import IQuoteSource

__all__ = [
    'ILedgerRepository',
    'LedgerUpdate',
    'IWatchlistRepository',
    'IQuoteSource',
]
