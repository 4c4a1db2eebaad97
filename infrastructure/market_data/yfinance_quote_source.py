"""Quote source backed by yfinance, with a TTL cache and static fallback."""
import random
from datetime import datetime, date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from domain.entities.money import quantize_money
from domain.entities.quote import Quote, PricePoint
from domain.repositories.quote_source import IQuoteSource
from shared.config.settings import QuoteSettings
from shared.exceptions import (
    NetworkError,
    QuoteError,
    QuoteUnavailableError,
    RateLimitError,
    UnknownSymbolError,
)
from shared.logging import get_logger

from .catalog import FALLBACK_QUOTES, CatalogEntry, lookup
from .quote_cache import QuoteCache

FALLBACK_NOTE = 'Using demo data (API limit reached or market closed)'


class YFinanceQuoteSource(IQuoteSource):
    """Serves quotes for the catalog symbols.

    Live quotes are cached for ``cache.ttl_seconds``. When a live fetch fails
    (rate limit, network, market closed) and fallback is enabled, a demo
    quote with ``is_live=False`` is served instead; demo quotes are not
    cached.
    """

    def __init__(
        self,
        settings: QuoteSettings,
        cache: Optional[QuoteCache] = None,
        rng: Optional[random.Random] = None
    ):
        self.settings = settings
        self.cache = cache if cache is not None else QuoteCache(settings.cache_ttl_seconds)
        self.rng = rng or random.Random()
        self.logger = get_logger(__name__)
        self._last_served = {}

    @staticmethod
    def _entry(symbol: str) -> CatalogEntry:
        entry = lookup(symbol)
        if entry is None:
            raise UnknownSymbolError(symbol)
        return entry

    def _to_inr(self, entry: CatalogEntry, value: Decimal) -> Decimal:
        return value * self.settings.usd_to_inr if entry.is_us else value

    # Quotes
    def get_quotes(self, symbols: Optional[Iterable[str]] = None) -> List[Quote]:
        """Get quotes in the order requested; all default symbols when None."""
        requested = [s.strip().upper() for s in (symbols or self.settings.default_symbols)]
        entries = [self._entry(s) for s in requested]
        quotes = [self._quote_for(entry) for entry in entries]
        for quote in quotes:
            self._last_served[quote.symbol] = quote
        return quotes

    def is_known(self, symbol: str) -> bool:
        return lookup(symbol.strip().upper()) is not None

    def cached_quote(self, symbol: str) -> Optional[Quote]:
        return self._last_served.get(symbol.upper())

    def _quote_for(self, entry: CatalogEntry) -> Quote:
        cache_key = f"quote_{entry.symbol}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.logger.debug(f"Using cached quote for {entry.symbol}")
            return cached

        try:
            quote = self._fetch_live(entry)
        except Exception as e:
            self.logger.warning(f"Live quote failed for {entry.symbol} ({entry.ticker}): {e}")
            if not self.settings.use_fallback:
                if isinstance(e, QuoteError):
                    raise
                raise QuoteUnavailableError(
                    f"No quote available for {entry.symbol}", {'symbol': entry.symbol}
                ) from e
            return self._fallback_quote(entry)

        self.cache.set(cache_key, quote)
        return quote

    def _fetch_live(self, entry: CatalogEntry) -> Quote:
        self.logger.info(f"Fetching quote for {entry.symbol} ({entry.ticker})")
        try:
            hist = yf.Ticker(entry.ticker).history(period="5d")
        except YFRateLimitError as e:
            raise RateLimitError(f"Rate limited fetching {entry.ticker}", {'ticker': entry.ticker}) from e
        except (ConnectionError, TimeoutError) as e:
            raise NetworkError(f"Network error fetching {entry.ticker}", {'ticker': entry.ticker}) from e
        if hist is None or hist.empty:
            raise QuoteUnavailableError(f"Empty price history for {entry.ticker}")

        closes = hist['Close'].dropna()
        if closes.empty:
            raise QuoteUnavailableError(f"No closing prices for {entry.ticker}")

        last_close = Decimal(str(closes.iloc[-1]))
        prev_close = Decimal(str(closes.iloc[-2])) if len(closes) > 1 else last_close
        raw_change = last_close - prev_close
        change_percent = (raw_change / prev_close * 100) if prev_close else Decimal('0')

        volume = 0
        if 'Volume' in hist.columns and not pd.isna(hist['Volume'].iloc[-1]):
            volume = int(hist['Volume'].iloc[-1])

        return Quote(
            symbol=entry.symbol,
            name=entry.name,
            price=quantize_money(self._to_inr(entry, last_close)),
            change=quantize_money(self._to_inr(entry, raw_change)),
            change_percent=quantize_money(change_percent),
            volume=volume,
            is_live=True,
            last_updated=datetime.now(),
            exchange=entry.exchange,
            sector=entry.sector,
        )

    def _fallback_quote(self, entry: CatalogEntry) -> Quote:
        fallback = FALLBACK_QUOTES.get(entry.symbol)
        if fallback is None:
            raise QuoteUnavailableError(f"No data available for {entry.symbol}", {'symbol': entry.symbol})

        # Small random variation to simulate movement
        variation = Decimal(str((self.rng.random() - 0.5) * 0.02))
        return Quote(
            symbol=entry.symbol,
            name=entry.name,
            price=quantize_money(fallback.price * (1 + variation)),
            change=quantize_money(fallback.change * (1 + variation)),
            change_percent=fallback.change_percent,
            volume=self.rng.randint(0, 10_000_000),
            is_live=False,
            last_updated=datetime.now(),
            exchange=entry.exchange,
            sector=entry.sector,
            note=FALLBACK_NOTE,
        )

    # History
    def get_history(self, symbol: str) -> List[PricePoint]:
        entry = self._entry(symbol)
        cache_key = f"series_{entry.symbol}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            hist = yf.Ticker(entry.ticker).history(period="3mo")
            if hist is None or hist.empty:
                raise QuoteUnavailableError(f"Empty price history for {entry.ticker}")
            history = [
                PricePoint(date=idx.date(), price=quantize_money(self._to_inr(entry, Decimal(str(close)))))
                for idx, close in hist['Close'].dropna().items()
            ]
        except Exception as e:
            self.logger.warning(f"Using generated history for {entry.symbol}: {e}")
            return self._generated_history(entry)

        self.cache.set(cache_key, history)
        return history

    def _generated_history(self, entry: CatalogEntry, days: int = 30) -> List[PricePoint]:
        fallback = FALLBACK_QUOTES.get(entry.symbol)
        base_price = fallback.price if fallback else Decimal('1000')
        floor, ceiling = base_price * Decimal('0.5'), base_price * Decimal('1.5')
        price = base_price * Decimal(str(0.8 + self.rng.random() * 0.2))
        today = date.today()

        history = []
        for offset in range(days, -1, -1):
            volatility = Decimal(str((self.rng.random() - 0.48) * 0.04))
            price = min(max(price * (1 + volatility), floor), ceiling)
            history.append(PricePoint(date=today - timedelta(days=offset), price=quantize_money(price)))
        return history
