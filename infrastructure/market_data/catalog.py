"""Tradable symbol catalog and static fallback prices.

Fallback prices are in INR (US stocks already converted) and are used when
live data cannot be fetched.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

US_EXCHANGES = ('NASDAQ', 'NYSE')


@dataclass(frozen=True)
class CatalogEntry:
    symbol: str
    ticker: str
    exchange: str
    name: str
    sector: str

    @property
    def is_us(self) -> bool:
        return self.exchange in US_EXCHANGES


@dataclass(frozen=True)
class FallbackQuote:
    price: Decimal
    change: Decimal
    change_percent: Decimal


def _entry(symbol: str, ticker: str, exchange: str, name: str, sector: str) -> CatalogEntry:
    return CatalogEntry(symbol, ticker, exchange, name, sector)


STOCK_CATALOG: Dict[str, CatalogEntry] = {e.symbol: e for e in [
    # Indian stocks
    _entry('RELIANCE', 'RELIANCE.NS', 'NSE', 'Reliance Industries Ltd', 'Energy'),
    _entry('TCS', 'TCS.NS', 'NSE', 'Tata Consultancy Services', 'IT'),
    _entry('HDFCBANK', 'HDFCBANK.NS', 'NSE', 'HDFC Bank Ltd', 'Banking'),
    _entry('INFY', 'INFY.NS', 'NSE', 'Infosys Ltd', 'IT'),
    _entry('ICICIBANK', 'ICICIBANK.NS', 'NSE', 'ICICI Bank Ltd', 'Banking'),
    _entry('HINDUNILVR', 'HINDUNILVR.NS', 'NSE', 'Hindustan Unilever Ltd', 'FMCG'),
    _entry('BHARTIARTL', 'BHARTIARTL.NS', 'NSE', 'Bharti Airtel Ltd', 'Telecom'),
    _entry('SBIN', 'SBIN.NS', 'NSE', 'State Bank of India', 'Banking'),
    _entry('WIPRO', 'WIPRO.NS', 'NSE', 'Wipro Ltd', 'IT'),
    _entry('TATAMOTORS', 'TATAMOTORS.NS', 'NSE', 'Tata Motors Ltd', 'Auto'),
    _entry('MARUTI', 'MARUTI.NS', 'NSE', 'Maruti Suzuki India Ltd', 'Auto'),
    _entry('AXISBANK', 'AXISBANK.NS', 'NSE', 'Axis Bank Ltd', 'Banking'),
    # US stocks
    _entry('AAPL', 'AAPL', 'NASDAQ', 'Apple Inc', 'Technology'),
    _entry('MSFT', 'MSFT', 'NASDAQ', 'Microsoft Corporation', 'Technology'),
    _entry('GOOGL', 'GOOGL', 'NASDAQ', 'Alphabet Inc', 'Technology'),
    _entry('AMZN', 'AMZN', 'NASDAQ', 'Amazon.com Inc', 'Consumer'),
    _entry('TSLA', 'TSLA', 'NASDAQ', 'Tesla Inc', 'Auto'),
    _entry('NVDA', 'NVDA', 'NASDAQ', 'NVIDIA Corporation', 'Technology'),
]}


def _fallback(price: str, change: str, change_percent: str) -> FallbackQuote:
    return FallbackQuote(Decimal(price), Decimal(change), Decimal(change_percent))


FALLBACK_QUOTES: Dict[str, FallbackQuote] = {
    'RELIANCE': _fallback('2847.50', '45.30', '1.62'),
    'TCS': _fallback('4123.75', '-32.45', '-0.78'),
    'HDFCBANK': _fallback('1689.20', '23.80', '1.43'),
    'INFY': _fallback('1834.55', '28.90', '1.60'),
    'ICICIBANK': _fallback('1245.60', '-8.75', '-0.70'),
    'HINDUNILVR': _fallback('2456.80', '12.35', '0.51'),
    'BHARTIARTL': _fallback('1567.90', '34.20', '2.23'),
    'SBIN': _fallback('823.45', '-5.60', '-0.68'),
    'WIPRO': _fallback('467.25', '8.90', '1.94'),
    'TATAMOTORS': _fallback('987.65', '42.30', '4.48'),
    'MARUTI': _fallback('12456.80', '-156.40', '-1.24'),
    'AXISBANK': _fallback('1178.90', '18.65', '1.61'),
    'AAPL': _fallback('14902.12', '195.39', '1.33'),
    'MSFT': _fallback('34892.98', '473.45', '1.38'),
    'GOOGL': _fallback('14694.33', '-102.71', '-0.69'),
    'AMZN': _fallback('15453.35', '288.12', '1.90'),
    'TSLA': _fallback('20749.75', '-1027.16', '-4.72'),
    'NVDA': _fallback('73085.88', '3813.46', '5.51'),
}


def lookup(symbol: str) -> Optional[CatalogEntry]:
    return STOCK_CATALOG.get(symbol.upper())
