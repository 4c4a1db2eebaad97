import random
import unittest
from decimal import Decimal
from unittest.mock import patch

import pandas as pd
from yfinance.exceptions import YFRateLimitError

from infrastructure.market_data import QuoteCache, YFinanceQuoteSource
from infrastructure.market_data.yfinance_quote_source import FALLBACK_NOTE
from shared.config.settings import QuoteSettings
from shared.exceptions import QuoteUnavailableError, RateLimitError, UnknownSymbolError


def price_frame(closes, volumes=None):
    index = pd.date_range('2024-01-01', periods=len(closes), freq='D')
    data = {'Close': closes}
    if volumes is not None:
        data['Volume'] = volumes
    return pd.DataFrame(data, index=index)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestQuoteCache(unittest.TestCase):

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = QuoteCache(ttl_seconds=300, clock=clock)
        cache.set('quote_TCS', 'q')
        clock.now = 299
        self.assertEqual(cache.get('quote_TCS'), 'q')
        clock.now = 300
        self.assertIsNone(cache.get('quote_TCS'))
        self.assertEqual(cache.peek('quote_TCS'), 'q')

    def test_invalidate(self):
        cache = QuoteCache()
        cache.set('a', 1)
        cache.set('b', 2)
        cache.invalidate('a')
        self.assertIsNone(cache.get('a'))
        self.assertEqual(len(cache), 1)
        cache.invalidate()
        self.assertEqual(len(cache), 0)


class TestYFinanceQuoteSource(unittest.TestCase):

    def setUp(self):
        self.settings = QuoteSettings()
        self.source = YFinanceQuoteSource(self.settings, rng=random.Random(42))

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_live_quote_from_last_two_closes(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([2800.0, 2847.5], [100, 200])

        quote = self.source.get_quotes(['reliance'])[0]

        mock_ticker.assert_called_once_with('RELIANCE.NS')
        self.assertEqual(quote.symbol, 'RELIANCE')
        self.assertEqual(quote.name, 'Reliance Industries Ltd')
        self.assertEqual(quote.price, Decimal('2847.50'))
        self.assertEqual(quote.change, Decimal('47.50'))
        self.assertEqual(quote.change_percent, Decimal('1.70'))
        self.assertEqual(quote.volume, 200)
        self.assertTrue(quote.is_live)
        self.assertEqual(quote.exchange, 'NSE')

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_us_prices_converted_to_inr(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([180.0, 181.0], [10, 20])

        quote = self.source.get_quote('AAPL')

        self.assertEqual(quote.price, Decimal('15113.50'))
        self.assertEqual(quote.change, Decimal('83.50'))

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_live_quotes_are_cached(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([100.0, 101.0], [1, 1])

        first = self.source.get_quote('TCS')
        second = self.source.get_quote('TCS')

        self.assertEqual(mock_ticker.call_count, 1)
        self.assertIs(first, second)
        self.source.cache.invalidate('quote_TCS')
        self.source.get_quote('TCS')
        self.assertEqual(mock_ticker.call_count, 2)

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_fallback_when_fetch_fails(self, mock_ticker):
        mock_ticker.return_value.history.side_effect = RuntimeError("boom")

        quote = self.source.get_quote('RELIANCE')

        self.assertFalse(quote.is_live)
        self.assertEqual(quote.note, FALLBACK_NOTE)
        self.assertGreaterEqual(quote.price, Decimal('2819.02'))
        self.assertLessEqual(quote.price, Decimal('2875.98'))
        # Demo quotes are not cached
        self.source.get_quote('RELIANCE')
        self.assertEqual(mock_ticker.call_count, 2)

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_fallback_when_history_empty(self, mock_ticker):
        mock_ticker.return_value.history.return_value = pd.DataFrame()

        quote = self.source.get_quote('NVDA')

        self.assertFalse(quote.is_live)

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_no_fallback_raises(self, mock_ticker):
        source = YFinanceQuoteSource(QuoteSettings(use_fallback=False))
        mock_ticker.return_value.history.return_value = pd.DataFrame()

        with self.assertRaises(QuoteUnavailableError):
            source.get_quote('TCS')

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_rate_limit_surfaces_without_fallback(self, mock_ticker):
        source = YFinanceQuoteSource(QuoteSettings(use_fallback=False))
        mock_ticker.return_value.history.side_effect = YFRateLimitError()

        with self.assertRaises(RateLimitError):
            source.get_quote('TCS')

    def test_unknown_symbol(self):
        with self.assertRaises(UnknownSymbolError):
            self.source.get_quotes(['NOPE'])

    def test_is_known_checks_catalog(self):
        self.assertTrue(self.source.is_known('tcs'))
        self.assertTrue(self.source.is_known('AAPL'))
        self.assertFalse(self.source.is_known('NOTAREALSTOCK'))

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_cached_quote_returns_last_served(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([100.0, 101.0], [1, 1])

        self.assertIsNone(self.source.cached_quote('TCS'))
        served = self.source.get_quote('TCS')
        self.assertIs(self.source.cached_quote('tcs'), served)
        self.assertEqual(mock_ticker.call_count, 1)

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_default_symbols_when_none_requested(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([100.0, 101.0], [1, 1])

        quotes = self.source.get_quotes()

        self.assertEqual([q.symbol for q in quotes], self.settings.default_symbols)

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_history(self, mock_ticker):
        mock_ticker.return_value.history.return_value = price_frame([100.0, 101.0, 102.5])

        history = self.source.get_history('TCS')

        mock_ticker.return_value.history.assert_called_once_with(period="3mo")
        self.assertEqual([p.price for p in history], [Decimal('100.00'), Decimal('101.00'), Decimal('102.50')])
        self.assertEqual(history[0].date.isoformat(), '2024-01-01')

    @patch('infrastructure.market_data.yfinance_quote_source.yf.Ticker')
    def test_generated_history_on_failure(self, mock_ticker):
        mock_ticker.return_value.history.side_effect = RuntimeError("boom")

        history = self.source.get_history('TCS')

        self.assertEqual(len(history), 31)
        dates = [p.date for p in history]
        self.assertEqual(dates, sorted(dates))
        self.assertTrue(all(p.price > 0 for p in history))


if __name__ == '__main__':
    unittest.main()
