"""Application settings and configuration values."""
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, List
import pytz


DEFAULT_SYMBOLS = [
    'RELIANCE', 'TCS', 'HDFCBANK', 'INFY', 'ICICIBANK', 'HINDUNILVR',
    'BHARTIARTL', 'SBIN', 'WIPRO', 'TATAMOTORS', 'MARUTI', 'AXISBANK',
    'AAPL', 'MSFT', 'GOOGL', 'AMZN', 'TSLA', 'NVDA',
]


def _decimal_env(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}")


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    name: str = 'data/ledger.db'
    timeout: int = 30

    @property
    def path(self) -> str:
        """Get the full database path."""
        return os.path.abspath(self.name)


@dataclass
class TradingSettings:
    """Virtual trading rules."""
    initial_balance: Decimal = Decimal('1000000')
    min_initial_balance: Decimal = Decimal('10000')
    max_initial_balance: Decimal = Decimal('10000000')

    # Minimum order value; a beginner behaviour-shaping policy, off by default
    minimum_investment: Decimal = Decimal('1000')
    minimum_investment_enabled: bool = False

    transaction_page_size: int = 50
    max_retries: int = 3
    currency_symbol: str = '₹'


@dataclass
class QuoteSettings:
    """Quote source and refresh settings."""
    cache_ttl_seconds: int = 300
    refresh_interval_seconds: int = 300
    usd_to_inr: Decimal = Decimal('83.5')
    use_fallback: bool = True
    default_symbols: List[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))


@dataclass
class WatchlistSettings:
    """Watchlist alert settings."""
    alert_threshold: Decimal = Decimal('0.01')
    max_notifications: int = 5
    notification_ttl_seconds: int = 10

    # When False the baseline moves on every refresh, so only per-cycle
    # movement can trigger an alert.
    cumulative_threshold: bool = True


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = 'INFO'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @property
    def log_level(self) -> int:
        """Get the numeric log level."""
        import logging
        return getattr(logging, self.level.upper(), logging.INFO)


@dataclass
class Settings:
    """Main application settings container."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    trading: TradingSettings = field(default_factory=TradingSettings)
    quotes: QuoteSettings = field(default_factory=QuoteSettings)
    watchlist: WatchlistSettings = field(default_factory=WatchlistSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    # General settings
    timezone: str = "Asia/Kolkata"
    environment: str = "development"
    debug: bool = False

    @property
    def tz(self) -> pytz.BaseTzInfo:
        """Get the timezone object."""
        return pytz.timezone(self.timezone)

    @classmethod
    def from_env(cls) -> 'Settings':
        """Create settings from environment variables."""
        symbols = os.getenv('QUOTE_SYMBOLS')
        return cls(
            database=DatabaseSettings(
                name=os.getenv('LEDGER_DB_NAME', 'data/ledger.db'),
                timeout=int(os.getenv('DB_TIMEOUT', '30'))
            ),
            trading=TradingSettings(
                initial_balance=_decimal_env('TRADING_INITIAL_BALANCE', '1000000'),
                minimum_investment=_decimal_env('TRADING_MINIMUM_INVESTMENT', '1000'),
                minimum_investment_enabled=os.getenv('TRADING_ENFORCE_MINIMUM', 'false').lower() == 'true',
                transaction_page_size=int(os.getenv('TRADING_PAGE_SIZE', '50')),
                max_retries=int(os.getenv('TRADING_MAX_RETRIES', '3'))
            ),
            quotes=QuoteSettings(
                cache_ttl_seconds=int(os.getenv('QUOTE_CACHE_TTL', '300')),
                refresh_interval_seconds=int(os.getenv('QUOTE_REFRESH_INTERVAL', '300')),
                usd_to_inr=_decimal_env('QUOTE_USD_TO_INR', '83.5'),
                use_fallback=os.getenv('QUOTE_USE_FALLBACK', 'true').lower() == 'true',
                default_symbols=[s.strip().upper() for s in symbols.split(',') if s.strip()]
                if symbols else list(DEFAULT_SYMBOLS)
            ),
            watchlist=WatchlistSettings(
                alert_threshold=_decimal_env('WATCHLIST_ALERT_THRESHOLD', '0.01'),
                max_notifications=int(os.getenv('WATCHLIST_MAX_NOTIFICATIONS', '5')),
                notification_ttl_seconds=int(os.getenv('WATCHLIST_NOTIFICATION_TTL', '10')),
                cumulative_threshold=os.getenv('WATCHLIST_CUMULATIVE', 'true').lower() == 'true'
            ),
            logging=LoggingSettings(
                level=os.getenv('LOG_LEVEL', 'INFO'),
                file_path=os.getenv('LOG_FILE_PATH'),
                max_file_size=int(os.getenv('LOG_MAX_SIZE', str(10 * 1024 * 1024)))
            ),
            timezone=os.getenv('TIMEZONE', 'Asia/Kolkata'),
            environment=os.getenv('ENVIRONMENT', 'development'),
            debug=os.getenv('DEBUG', 'false').lower() == 'true'
        )

    def validate(self) -> None:
        """Validate configuration settings."""
        errors = []

        if not self.database.name:
            errors.append("Database name cannot be empty")

        # Validate trading settings
        trading = self.trading
        if trading.min_initial_balance <= 0:
            errors.append("Minimum initial balance must be positive")
        if trading.min_initial_balance > trading.max_initial_balance:
            errors.append("Minimum initial balance cannot exceed the maximum")
        if not trading.min_initial_balance <= trading.initial_balance <= trading.max_initial_balance:
            errors.append(
                f"Initial balance must be between {trading.min_initial_balance} "
                f"and {trading.max_initial_balance}"
            )
        if trading.minimum_investment < 0:
            errors.append("Minimum investment cannot be negative")
        if trading.transaction_page_size <= 0:
            errors.append("Transaction page size must be positive")
        if trading.max_retries < 1:
            errors.append("Max retries must be at least 1")

        # Validate quote settings
        if self.quotes.cache_ttl_seconds < 0:
            errors.append("Quote cache TTL cannot be negative")
        if self.quotes.refresh_interval_seconds <= 0:
            errors.append("Quote refresh interval must be positive")
        if self.quotes.usd_to_inr <= 0:
            errors.append("USD to INR rate must be positive")

        # Validate watchlist settings
        if not Decimal('0') < self.watchlist.alert_threshold < Decimal('1'):
            errors.append("Watchlist alert threshold must be between 0 and 1")
        if self.watchlist.max_notifications <= 0:
            errors.append("Watchlist max_notifications must be positive")
        if self.watchlist.notification_ttl_seconds <= 0:
            errors.append("Watchlist notification TTL must be positive")

        # Validate timezone
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            errors.append(f"Unknown timezone: {self.timezone}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")
