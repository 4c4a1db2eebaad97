"""SQLite-backed ledger and watchlist stores."""
from .sqlite_ledger_repository import SqliteLedgerRepository
from .sqlite_watchlist_repository import SqliteWatchlistRepository

__all__ = ['SqliteLedgerRepository', 'SqliteWatchlistRepository']
