"""Quote source exceptions."""
from .base import VirtualTradingError, ValidationError


class QuoteError(VirtualTradingError):
    """Base exception for quote-related errors."""

    user_message = "Market data is temporarily unavailable. Please try again."


class QuoteUnavailableError(QuoteError):
    """Exception raised when no quote (live or fallback) exists for a symbol."""
    pass


class RateLimitError(QuoteError):
    """Exception raised when API rate limits are exceeded."""
    pass


class NetworkError(QuoteError):
    """Exception raised for network-related errors."""
    pass


class UnknownSymbolError(ValidationError):
    """Exception raised for a symbol outside the tradable catalog."""

    def __init__(self, symbol: str):
        super().__init__(f"Unknown stock symbol: {symbol}", {'symbol': symbol})
        self.symbol = symbol
