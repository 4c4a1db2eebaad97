import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from domain.entities.account import Account
from domain.entities.quote import Quote, PricePoint
from domain.repositories.quote_source import IQuoteSource
from domain.services.trade_executor import TradeExecutor
from infrastructure.database import SqliteLedgerRepository, SqliteWatchlistRepository
from shared.config.settings import Settings
from shared.exceptions import QuoteUnavailableError, UnknownSymbolError


class FakeQuoteSource(IQuoteSource):
    """In-memory quote source with settable prices."""

    def __init__(self, prices=None):
        self.prices = {s: Decimal(str(p)) for s, p in (prices or {}).items()}
        self.unavailable = set()
        self.served = {}
        self.fetches = 0

    def set_price(self, symbol, price):
        self.prices[symbol] = Decimal(str(price))

    def _quote(self, symbol):
        if symbol not in self.prices:
            raise UnknownSymbolError(symbol)
        if symbol in self.unavailable:
            raise QuoteUnavailableError(f"No quote for {symbol}")
        return Quote(
            symbol=symbol,
            name=f"{symbol} Ltd",
            price=self.prices[symbol],
            change=Decimal('0'),
            change_percent=Decimal('0.50'),
            volume=1000,
            is_live=True,
            last_updated=datetime(2024, 1, 2, 10, 0),
        )

    def get_quotes(self, symbols=None):
        self.fetches += 1
        quotes = [self._quote(s) for s in (symbols or sorted(self.prices))]
        for q in quotes:
            self.served[q.symbol] = q
        return quotes

    def is_known(self, symbol):
        return symbol in self.prices

    def get_history(self, symbol):
        return [PricePoint(date=datetime(2024, 1, 1).date(), price=self._quote(symbol).price)]

    def cached_quote(self, symbol):
        return self.served.get(symbol)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ledger.db")


@pytest.fixture
def ledger(db_path):
    return SqliteLedgerRepository(db_path=db_path)


@pytest.fixture
def watchlist_repo(db_path):
    return SqliteWatchlistRepository(db_path=db_path)


@pytest.fixture
def executor(ledger, settings):
    return TradeExecutor(ledger, settings)


@pytest.fixture
def quotes():
    return FakeQuoteSource({'RELIANCE': '2847.50', 'TCS': '3500.00', 'INFY': '1500.00'})


@pytest.fixture
def open_account(ledger):
    def _open(user_id='alice', balance='1000000'):
        account = Account(user_id=user_id, display_name=user_id, initial_balance=Decimal(balance))
        return asyncio.run(ledger.create_account(account))
    return _open
