"""Logging configuration and utilities for the trading ledger."""
import logging
import logging.handlers
import os
import sys
import time
from typing import Optional, Dict, Any

# Chatty client libraries used by the quote source and the web layer
QUIET_LOGGERS = ('urllib3', 'requests', 'yfinance', 'peewee', 'werkzeug')


def setup_logging(
    level: int = logging.INFO,
    format_string: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    quiet_loggers=QUIET_LOGGERS
) -> None:
    """
    Configure the root logger for the ledger process.

    Trade, watchlist and refresh messages go to stdout and, when ``log_file``
    is set, to a rotating file that survives restarts.

    Args:
        level: Logging level for ledger modules
        format_string: Log message format
        log_file: Optional log file path; its directory is created if needed
        max_file_size: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        quiet_loggers: Library loggers capped at WARNING
    """
    formatter = logging.Formatter(format_string)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger by module name."""
    return logging.getLogger(name)


class ContextualLogger:
    """Logger wrapper that prefixes messages with order or account context.

    ``get_contextual_logger(__name__, user='alice', symbol='TCS')`` logs
    ``[user=alice | symbol=TCS] Bought 10``.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        """
        Args:
            logger: Underlying logger
            context: Key/value pairs rendered in front of every message
        """
        self._logger = logger
        self._context = dict(context) if context else {}

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def bind(self, **context) -> 'ContextualLogger':
        """Return a logger with extra context; ``None`` values are skipped."""
        extra = {k: v for k, v in context.items() if v is not None}
        return ContextualLogger(self._logger, {**self._context, **extra})

    def _format_message(self, message: str) -> str:
        if not self._context:
            return message
        context_str = " | ".join(f"{k}={v}" for k, v in self._context.items())
        return f"[{context_str}] {message}"

    def debug(self, message: str, *args, **kwargs):
        self._logger.debug(self._format_message(message), *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self._logger.info(self._format_message(message), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._logger.warning(self._format_message(message), *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self._logger.error(self._format_message(message), *args, **kwargs)

    def exception(self, message: str, *args, **kwargs):
        self._logger.exception(self._format_message(message), *args, **kwargs)


def get_contextual_logger(name: str, **context) -> ContextualLogger:
    """
    Get a contextual logger.

    Args:
        name: Logger name
        **context: Context included in every message; ``None`` values are skipped

    Returns:
        ContextualLogger instance
    """
    return ContextualLogger(get_logger(name)).bind(**context)


class TimedLogger:
    """Context manager that logs how long an operation took.

    The measured time is kept on ``duration_seconds`` after the block exits,
    whether it succeeded or failed.
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.duration_seconds: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self):
        self._started = time.monotonic()
        self.logger.debug(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_seconds = time.monotonic() - self._started
        if exc_type:
            self.logger.error(f"Failed {self.operation} after {self.duration_seconds:.2f}s: {exc_val}")
        else:
            self.logger.info(f"Completed {self.operation} in {self.duration_seconds:.2f}s")


def timed_operation(logger: logging.Logger, operation: str) -> TimedLogger:
    """Create a timed logger context manager for ``operation``."""
    return TimedLogger(logger, operation)
