"""Data-related exceptions."""
from .base import VirtualTradingError


class DataError(VirtualTradingError):
    """Base exception for data-related errors."""
    pass


class StoreUnavailable(DataError):
    """Exception raised when the ledger store cannot complete an operation.

    Wraps the underlying persistence failure. Callers may retry (with the
    same operation id) or surface a generic message; it is never a business
    rejection.
    """

    user_message = "The ledger is temporarily unavailable. Please try again."


class ConcurrentModificationError(DataError):
    """Exception raised when another writer changed the wallet first."""

    user_message = "Your account changed while the order was processing. Please try again."


class DuplicateOperationError(DataError):
    """Exception raised when an operation id has already been applied."""

    user_message = "This operation id was already used for a different order."
