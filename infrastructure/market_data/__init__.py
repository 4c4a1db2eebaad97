"""Market data adapters."""
from .catalog import STOCK_CATALOG, FALLBACK_QUOTES, CatalogEntry
from .quote_cache import QuoteCache
from .yfinance_quote_source import YFinanceQuoteSource

__all__ = ['STOCK_CATALOG', 'FALLBACK_QUOTES', 'CatalogEntry', 'QuoteCache', 'YFinanceQuoteSource']
