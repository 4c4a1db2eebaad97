"""Base exception classes for the virtual trading application."""
from typing import Dict, Any, Optional


class VirtualTradingError(Exception):
    """Base exception for all virtual trading errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize the exception with message and optional details."""
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def __str__(self) -> str:
        """Return string representation of the exception."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    @property
    def kind(self) -> str:
        """Stable machine-readable name of the error."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            'error': self.kind,
            'message': self.user_message,
            'details': {k: str(v) for k, v in self.details.items()},
        }


class ValidationError(VirtualTradingError):
    """Exception raised when a request is rejected before touching the store."""

    @property
    def user_message(self) -> str:
        return self.message
