"""Quote source interface."""
from abc import ABC, abstractmethod
from typing import List, Optional, Iterable

from ..entities.quote import Quote, PricePoint


class IQuoteSource(ABC):
    """Interface for market data consumed by the ledger."""

    @abstractmethod
    def get_quotes(self, symbols: Optional[Iterable[str]] = None) -> List[Quote]:
        """Get latest quotes for ``symbols`` (all known symbols when None)."""
        pass

    @abstractmethod
    def is_known(self, symbol: str) -> bool:
        """Check whether ``symbol`` can be quoted at all."""
        pass

    @abstractmethod
    def get_history(self, symbol: str) -> List[PricePoint]:
        """Get daily closing prices for a symbol, oldest first."""
        pass

    def get_quote(self, symbol: str) -> Quote:
        """Get the latest quote for one symbol."""
        return self.get_quotes([symbol])[0]

    def cached_quote(self, symbol: str) -> Optional[Quote]:
        """Return the last quote already served for ``symbol`` without fetching."""
        return None
