"""SQLite implementation of the watchlist repository."""
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from domain.repositories.watchlist_repository import IWatchlistRepository
from domain.entities.watchlist import WatchlistEntry
from shared.config import get_settings
from shared.logging import get_logger
from shared.exceptions.data import StoreUnavailable


class SqliteWatchlistRepository(IWatchlistRepository):
    """SQLite implementation of watchlist membership."""

    def __init__(self, db_path: Optional[str] = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.database.path
        self.logger = get_logger(__name__)
        self._ensure_tables()

    def _ensure_tables(self):
        """Create the watchlist table if it doesn't exist."""
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS watchlist (
                    user_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL DEFAULT '',
                    added_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, symbol)
                );
            """)
        conn.close()

    @asynccontextmanager
    async def _get_connection(self, operation: str):
        """Get database connection with proper cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.settings.database.timeout)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            self.logger.error(f"Watchlist store failed during {operation}: {e}")
            raise StoreUnavailable(
                f"Watchlist store failed during {operation}", {'operation': operation}
            ) from e
        finally:
            if conn is not None:
                conn.close()

    async def add(self, entry: WatchlistEntry) -> bool:
        """Add a symbol; adding an already watched symbol is a no-op."""
        added_at = (entry.added_at or datetime.now()).isoformat()
        async with self._get_connection("add") as conn:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO watchlist (user_id, symbol, name, added_at)
                   VALUES (?, ?, ?, ?)""",
                (entry.user_id, entry.symbol.upper(), entry.name, added_at)
            )
            conn.commit()
            added = cursor.rowcount > 0

        if added:
            self.logger.info(f"Added {entry.symbol.upper()} to watchlist of {entry.user_id}")
        return added

    async def remove(self, user_id: str, symbol: str) -> bool:
        async with self._get_connection("remove") as conn:
            cursor = conn.execute(
                "DELETE FROM watchlist WHERE user_id = ? AND symbol = ?",
                (user_id, symbol.upper())
            )
            conn.commit()
            removed = cursor.rowcount > 0

        if removed:
            self.logger.info(f"Removed {symbol.upper()} from watchlist of {user_id}")
        return removed

    async def contains(self, user_id: str, symbol: str) -> bool:
        async with self._get_connection("contains") as conn:
            row = conn.execute(
                "SELECT 1 FROM watchlist WHERE user_id = ? AND symbol = ?",
                (user_id, symbol.upper())
            ).fetchone()
            return row is not None

    async def list_entries(self, user_id: str) -> List[WatchlistEntry]:
        async with self._get_connection("list_entries") as conn:
            cursor = conn.execute(
                "SELECT * FROM watchlist WHERE user_id = ? ORDER BY added_at, rowid",
                (user_id,)
            )
            return [
                WatchlistEntry(
                    user_id=row['user_id'],
                    symbol=row['symbol'],
                    name=row['name'],
                    added_at=datetime.fromisoformat(row['added_at'])
                )
                for row in cursor.fetchall()
            ]

    async def list_watchers(self) -> List[str]:
        """User ids that watch at least one symbol."""
        async with self._get_connection("list_watchers") as conn:
            cursor = conn.execute("SELECT DISTINCT user_id FROM watchlist ORDER BY user_id")
            return [row['user_id'] for row in cursor.fetchall()]
