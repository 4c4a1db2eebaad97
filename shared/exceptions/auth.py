"""Authentication-related exceptions."""
from .base import VirtualTradingError


class AuthenticationError(VirtualTradingError):
    """Base exception for caller identity errors."""

    user_message = "Please sign in to continue."


class NotAuthenticated(AuthenticationError):
    """Exception raised when a request carries no caller identity."""
    pass


class AccountNotFound(AuthenticationError):
    """Exception raised when the caller has no trading account yet."""

    user_message = "Finish onboarding to open your virtual trading account."
