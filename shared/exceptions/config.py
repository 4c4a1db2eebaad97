"""Configuration-related exceptions."""
from .base import VirtualTradingError


class ConfigurationError(VirtualTradingError):
    """Exception raised for configuration-related errors."""
    pass
