"""Application service for virtual trading operations."""
import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from domain.entities.account import Account
from domain.entities.money import Number, to_decimal, quantize_money
from domain.entities.portfolio import Holding, Transaction
from domain.entities.quote import Quote
from domain.entities.valuation import PortfolioSummary, PortfolioValuation
from domain.entities.watchlist import WatchlistAlert, WatchlistEntry
from domain.repositories.ledger_repository import ILedgerRepository
from domain.repositories.quote_source import IQuoteSource
from domain.repositories.watchlist_repository import IWatchlistRepository
from domain.services.trade_executor import TradeExecutor
from domain.services.valuation_service import ValuationEngine
from domain.services.watchlist_monitor import AlertFeed, WatchlistMonitor
from shared.config import get_settings
from shared.config.settings import Settings
from shared.exceptions import (
    AccountNotFound,
    QuoteError,
    QuoteUnavailableError,
    TradeValidationError,
    UnknownSymbolError,
    ValidationError,
    VirtualTradingError,
)
from shared.logging import get_logger

AlertCallback = Callable[[WatchlistAlert], None]


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a buy or sell request."""
    success: bool
    transaction: Optional[Transaction] = None
    error: Optional[VirtualTradingError] = None

    @property
    def message(self) -> str:
        if self.success:
            t = self.transaction
            verb = 'Bought' if t.is_buy else 'Sold'
            return f"{verb} {t.quantity} {t.symbol} @ ₹{t.price:,.2f}"
        return self.error.user_message

    def to_dict(self) -> Dict:
        data = {'success': self.success, 'message': self.message}
        if self.transaction is not None:
            data['transaction'] = self.transaction.to_dict()
        if self.error is not None:
            data.update(self.error.to_dict())
        return data


class TradingService:
    """Facade over the trade executor, valuation engine and watchlist monitor.

    One ``WatchlistMonitor`` and one ``AlertFeed`` are kept per account.
    Trades never fetch prices: when no price is given the last quote served
    to the caller is used.
    """

    def __init__(
        self,
        ledger_repository: ILedgerRepository,
        watchlist_repository: IWatchlistRepository,
        quote_source: IQuoteSource,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.ledger = ledger_repository
        self.watchlist = watchlist_repository
        self.quotes = quote_source
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(self.settings.tz))
        self.executor = TradeExecutor(ledger_repository, self.settings, clock=self._clock)
        self.valuation = ValuationEngine()
        self.logger = get_logger(__name__)

        self._monitors: Dict[str, WatchlistMonitor] = {}
        self._feeds: Dict[str, AlertFeed] = {}
        self._lock = threading.Lock()

    # Accounts
    async def open_account(
        self,
        user_id: str,
        initial_balance: Optional[Number] = None,
        display_name: Optional[str] = None
    ) -> Account:
        """Open a funded account; opening an existing account returns it unchanged."""
        if not user_id or not str(user_id).strip():
            raise ValidationError("User id is required")

        trading = self.settings.trading
        if initial_balance is None:
            balance = trading.initial_balance
        else:
            try:
                balance = to_decimal(initial_balance)
            except (ArithmeticError, ValueError, TypeError):
                raise ValidationError("Initial balance must be a number", {'initial_balance': initial_balance})
            if not balance.is_finite():
                raise ValidationError("Initial balance must be a number", {'initial_balance': initial_balance})
            balance = quantize_money(balance)
        if not trading.min_initial_balance <= balance <= trading.max_initial_balance:
            raise ValidationError(
                f"Initial balance must be between ₹{trading.min_initial_balance:,.0f} "
                f"and ₹{trading.max_initial_balance:,.0f}",
                {'initial_balance': balance}
            )

        account = Account(
            user_id=user_id,
            display_name=display_name or user_id,
            initial_balance=balance,
            created_at=self._clock(),
        )
        return await self.ledger.create_account(account)

    async def _require_wallet_balance(self, user_id: str) -> Decimal:
        wallet = await self.ledger.get_wallet(user_id)
        if wallet is None:
            raise AccountNotFound(f"No trading account for user {user_id}", {'user_id': user_id})
        return wallet.balance

    # Quotes
    async def _fetch(self, func, *args):
        """Run a blocking quote source call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _known_symbol(self, symbol: str) -> str:
        if not isinstance(symbol, str) or not symbol.strip():
            raise TradeValidationError("Symbol is required")
        symbol = symbol.strip().upper()
        if not self.quotes.is_known(symbol):
            raise UnknownSymbolError(symbol)
        return symbol

    # Trading
    def _confirmed_quote(self, symbol: str) -> Quote:
        quote = self.quotes.cached_quote(symbol)
        if quote is None:
            raise QuoteUnavailableError(
                f"No quote has been shown for {symbol}; refresh quotes before trading",
                {'symbol': symbol}
            )
        return quote

    async def _trade(self, side: str, user_id: str, symbol: str, quantity: int,
                     price: Optional[Number], operation_id: Optional[str]) -> TradeResult:
        try:
            symbol = self._known_symbol(symbol)

            quote = self.quotes.cached_quote(symbol)
            if price is None:
                quote = self._confirmed_quote(symbol)
                price = quote.price
            name = quote.name if quote is not None else None

            execute = self.executor.buy if side == 'buy' else self.executor.sell
            transaction = await execute(
                user_id, symbol, quantity, price, name=name, operation_id=operation_id
            )
        except VirtualTradingError as e:
            self.logger.info(f"{side.capitalize()} {symbol} for {user_id} failed: {e.kind}")
            return TradeResult(success=False, error=e)

        return TradeResult(success=True, transaction=transaction)

    async def buy_stock(self, user_id: str, symbol: str, quantity: int,
                        price: Optional[Number] = None,
                        operation_id: Optional[str] = None) -> TradeResult:
        return await self._trade('buy', user_id, symbol, quantity, price, operation_id)

    async def sell_stock(self, user_id: str, symbol: str, quantity: int,
                         price: Optional[Number] = None,
                         operation_id: Optional[str] = None) -> TradeResult:
        return await self._trade('sell', user_id, symbol, quantity, price, operation_id)

    # Portfolio
    async def get_holding(self, user_id: str, symbol: str) -> Optional[Holding]:
        return await self.ledger.get_holding(user_id, symbol.strip().upper())

    async def _quotes_for(self, symbols: List[str]) -> Dict[str, Quote]:
        """Latest quotes for ``symbols``; a symbol without any quote is omitted."""
        quotes = {}
        for symbol in symbols:
            try:
                quotes[symbol] = await self._fetch(self.quotes.get_quote, symbol)
            except VirtualTradingError as e:
                self.logger.warning(f"No fresh quote for {symbol}: {e}")
                cached = self.quotes.cached_quote(symbol)
                if cached is not None:
                    quotes[symbol] = cached
        return quotes

    async def get_holdings_valuation(self, user_id: str) -> PortfolioValuation:
        await self._require_wallet_balance(user_id)
        holdings = await self.ledger.get_holdings(user_id)
        quotes = await self._quotes_for([h.symbol for h in holdings])
        return self.valuation.value_portfolio(holdings, quotes)

    async def portfolio_summary(self, user_id: str) -> PortfolioSummary:
        balance = await self._require_wallet_balance(user_id)
        holdings = await self.ledger.get_holdings(user_id)
        quotes = await self._quotes_for([h.symbol for h in holdings])
        return self.valuation.summarize(balance, holdings, quotes)

    async def get_transactions(self, user_id: str, limit: Optional[int] = None) -> List[Transaction]:
        """Most recent transactions first, one page by default."""
        await self._require_wallet_balance(user_id)
        return await self.ledger.get_transactions(
            user_id, limit=limit or self.settings.trading.transaction_page_size
        )

    # Watchlist
    def _monitor(self, user_id: str) -> WatchlistMonitor:
        with self._lock:
            monitor = self._monitors.get(user_id)
            if monitor is None:
                watch = self.settings.watchlist
                monitor = WatchlistMonitor(
                    threshold=watch.alert_threshold,
                    cumulative=watch.cumulative_threshold,
                    clock=self._clock,
                )
                self._monitors[user_id] = monitor
            return monitor

    def _feed(self, user_id: str) -> AlertFeed:
        with self._lock:
            feed = self._feeds.get(user_id)
            if feed is None:
                watch = self.settings.watchlist
                feed = AlertFeed(
                    max_notifications=watch.max_notifications,
                    ttl_seconds=watch.notification_ttl_seconds,
                    clock=self._clock,
                )
                self._feeds[user_id] = feed
            return feed

    async def add_to_watchlist(self, user_id: str, symbol: str) -> bool:
        """Watch ``symbol``. Returns False when it was already watched."""
        await self._require_wallet_balance(user_id)
        if not isinstance(symbol, str) or not symbol.strip():
            raise ValidationError("Symbol is required")
        symbol = symbol.strip().upper()
        if not self.quotes.is_known(symbol):
            raise UnknownSymbolError(symbol)

        quote = self.quotes.cached_quote(symbol)
        if quote is None:
            try:
                quote = await self._fetch(self.quotes.get_quote, symbol)
            except QuoteError as e:
                self.logger.warning(f"Watching {symbol} without a quote: {e}")

        return await self.watchlist.add(
            WatchlistEntry(user_id=user_id, symbol=symbol,
                           name=quote.name if quote else '', added_at=self._clock())
        )

    async def remove_from_watchlist(self, user_id: str, symbol: str) -> bool:
        symbol = symbol.strip().upper()
        removed = await self.watchlist.remove(user_id, symbol)
        self._monitor(user_id).forget(symbol)
        return removed

    async def is_watched(self, user_id: str, symbol: str) -> bool:
        return await self.watchlist.contains(user_id, symbol.strip().upper())

    async def get_watchlist(self, user_id: str) -> List[WatchlistEntry]:
        return await self.watchlist.list_entries(user_id)

    # Alerts
    def on_alert(self, user_id: str, callback: AlertCallback) -> Callable[[], None]:
        """Subscribe to watchlist alerts for an account. Returns an unsubscribe function."""
        return self._feed(user_id).subscribe(callback)

    def active_alerts(self, user_id: str) -> List[WatchlistAlert]:
        return self._feed(user_id).active()

    def dismiss_alert(self, user_id: str, alert_id: str) -> bool:
        return self._feed(user_id).dismiss(alert_id)

    async def refresh_quotes(self) -> Dict[str, List[WatchlistAlert]]:
        """
        Fetch quotes for the default and watched symbols and run every
        account's watchlist monitor against them.

        Returns:
            Alerts raised in this cycle, keyed by user id
        """
        watched_by_user: Dict[str, List[str]] = {}
        for user_id in await self.watchlist.list_watchers():
            entries = await self.watchlist.list_entries(user_id)
            watched_by_user[user_id] = [e.symbol for e in entries]

        symbols = list(self.settings.quotes.default_symbols)
        for watched in watched_by_user.values():
            symbols.extend(s for s in watched if s not in symbols)

        quotes = await self._fetch(self.quotes.get_quotes, symbols)
        self.logger.info(f"Refreshed {len(quotes)} quotes for {len(watched_by_user)} watchlists")

        raised: Dict[str, List[WatchlistAlert]] = {}
        for user_id, watched in watched_by_user.items():
            alerts = self._monitor(user_id).observe(quotes, watched)
            feed = self._feed(user_id)
            for alert in alerts:
                feed.publish(alert)
            if alerts:
                raised[user_id] = alerts
        return raised
