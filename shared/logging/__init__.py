"""Logging utilities for the virtual trading application."""
from .logger import (
    get_logger,
    setup_logging,
    ContextualLogger,
    TimedLogger,
    get_contextual_logger,
    timed_operation,
)

__all__ = [
    'get_logger',
    'setup_logging',
    'ContextualLogger',
    'TimedLogger',
    'get_contextual_logger',
    'timed_operation',
]
