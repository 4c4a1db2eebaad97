"""Market quote entities supplied by the quote source."""
from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class Quote:
    """Latest price snapshot for a symbol.

    ``is_live`` is False for demo/fallback data; the ledger treats both the
    same way.
    """
    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    volume: int
    is_live: bool
    last_updated: datetime
    exchange: str = ''
    sector: str = ''
    currency: str = '₹'
    note: Optional[str] = None

    def __post_init__(self):
        if self.price <= 0:
            raise ValueError(f"Quote price must be positive for {self.symbol}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'name': self.name,
            'price': str(self.price),
            'change': str(self.change),
            'change_percent': str(self.change_percent),
            'volume': self.volume,
            'exchange': self.exchange,
            'sector': self.sector,
            'currency': self.currency,
            'last_updated': self.last_updated.isoformat(),
            'is_live': self.is_live,
            'note': self.note,
        }


@dataclass(frozen=True)
class PricePoint:
    """A single daily close in a price history."""
    date: date
    price: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date.isoformat(), 'price': str(self.price)}
