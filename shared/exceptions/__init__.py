"""Custom exceptions for the virtual trading application."""
from .base import VirtualTradingError, ValidationError
from .data import (
    DataError,
    StoreUnavailable,
    ConcurrentModificationError,
    DuplicateOperationError,
)
from .trading import (
    TradeValidationError,
    TradeError,
    InsufficientFunds,
    BelowMinimumInvestment,
    NoSuchHolding,
    InsufficientShares,
)
from .auth import AuthenticationError, NotAuthenticated, AccountNotFound
from .quotes import QuoteError, QuoteUnavailableError, RateLimitError, NetworkError, UnknownSymbolError
from .config import ConfigurationError

__all__ = [
    'VirtualTradingError',
    'ValidationError',
    'DataError',
    'StoreUnavailable',
    'ConcurrentModificationError',
    'DuplicateOperationError',
    'TradeValidationError',
    'TradeError',
    'InsufficientFunds',
    'BelowMinimumInvestment',
    'NoSuchHolding',
    'InsufficientShares',
    'AuthenticationError',
    'NotAuthenticated',
    'AccountNotFound',
    'QuoteError',
    'QuoteUnavailableError',
    'RateLimitError',
    'NetworkError',
    'UnknownSymbolError',
    'ConfigurationError',
]
