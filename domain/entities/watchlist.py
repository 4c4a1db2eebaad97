"""Watchlist entities."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class WatchlistEntry:
    """Membership of a symbol in an account's watchlist."""
    user_id: str
    symbol: str
    name: str = ''
    added_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'name': self.name,
            'added_at': self.added_at.isoformat() if self.added_at else None,
        }


class AlertDirection(Enum):
    """Direction of a watched price move."""
    GAIN = "gain"
    LOSS = "loss"


@dataclass(frozen=True)
class WatchlistAlert:
    """Notification that a watched symbol moved past the alert threshold.

    ``change_percent`` is the move relative to the baseline price;
    ``day_change_percent`` is the quote's own change for the session.
    """
    id: str
    symbol: str
    name: str
    price: Decimal
    previous_price: Decimal
    price_delta: Decimal
    change_percent: Decimal
    day_change_percent: Decimal
    direction: AlertDirection
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'symbol': self.symbol,
            'name': self.name,
            'price': str(self.price),
            'previous_price': str(self.previous_price),
            'price_delta': str(self.price_delta),
            'change_percent': str(self.change_percent),
            'day_change_percent': str(self.day_change_percent),
            'direction': self.direction.value,
            'timestamp': self.timestamp.isoformat(),
        }
