"""Portfolio-related domain entities."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any
from decimal import Decimal
from enum import Enum

from .money import ZERO, MONEY_PLACES, quantize_money


class TransactionType(Enum):
    """Enumeration for transaction types."""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Transaction:
    """An immutable record of a single executed buy or sell.

    ``avg_cost`` is the holding's weighted-average cost at the moment of the
    trade (after the buy for buys, before the sell for sells). It lets realized
    P&L be derived from the log alone even though ``Holding.avg_price`` moves
    on later buys.
    """
    id: Optional[int]
    user_id: str
    transaction_type: TransactionType
    symbol: str
    name: str
    quantity: int
    price: Decimal
    total: Decimal
    avg_cost: Decimal
    timestamp: datetime
    operation_id: Optional[str] = None

    def __post_init__(self):
        """Validate transaction data after initialization."""
        if self.quantity <= 0:
            raise ValueError("Transaction quantity must be positive")
        if self.price <= 0:
            raise ValueError("Transaction price must be positive")
        if self.avg_cost < 0:
            raise ValueError("Average cost cannot be negative")

        expected_total = quantize_money(self.price * self.quantity)
        if abs(self.total - expected_total) > MONEY_PLACES:
            raise ValueError("Total amount does not match quantity * price")

    @property
    def is_buy(self) -> bool:
        """Check if transaction is a buy order."""
        return self.transaction_type == TransactionType.BUY

    @property
    def is_sell(self) -> bool:
        """Check if transaction is a sell order."""
        return self.transaction_type == TransactionType.SELL

    @property
    def realized_profit_loss(self) -> Decimal:
        """Gain locked in by a sell; zero for buys."""
        if not self.is_sell:
            return ZERO
        return quantize_money((self.price - self.avg_cost) * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.transaction_type.value,
            'symbol': self.symbol,
            'name': self.name,
            'quantity': self.quantity,
            'price': str(self.price),
            'total': str(self.total),
            'avg_cost': str(self.avg_cost),
            'timestamp': self.timestamp.isoformat(),
            'operation_id': self.operation_id,
        }


@dataclass(frozen=True)
class Holding:
    """A non-zero position in one symbol for one account."""
    user_id: str
    symbol: str
    name: str
    quantity: int
    avg_price: Decimal
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate holding data after initialization."""
        if self.quantity <= 0:
            raise ValueError("Holding quantity must be positive")
        if self.avg_price <= 0:
            raise ValueError("Average price must be positive")

    @property
    def invested_value(self) -> Decimal:
        """Cost basis of the position (``avg_price * quantity``)."""
        return quantize_money(self.avg_price * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'name': self.name,
            'quantity': self.quantity,
            'avg_price': str(self.avg_price),
            'invested_value': str(self.invested_value),
        }
