"""Watchlist store interface."""
from abc import ABC, abstractmethod
from typing import List

from ..entities.watchlist import WatchlistEntry


class IWatchlistRepository(ABC):
    """Interface for per-account watchlist membership."""

    @abstractmethod
    async def add(self, entry: WatchlistEntry) -> bool:
        """Add a symbol. Returns False if it was already watched."""
        pass

    @abstractmethod
    async def remove(self, user_id: str, symbol: str) -> bool:
        """Remove a symbol. Returns False if it was not watched."""
        pass

    @abstractmethod
    async def contains(self, user_id: str, symbol: str) -> bool:
        """Check whether a symbol is watched."""
        pass

    @abstractmethod
    async def list_entries(self, user_id: str) -> List[WatchlistEntry]:
        """Get the watchlist of an account in insertion order."""
        pass

    @abstractmethod
    async def list_watchers(self) -> List[str]:
        """User ids that watch at least one symbol."""
        pass
