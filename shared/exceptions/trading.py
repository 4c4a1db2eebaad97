"""Trading exceptions raised by the trade executor."""
from decimal import Decimal

from .base import VirtualTradingError, ValidationError


def _money(amount: Decimal) -> str:
    return f"₹{amount:,.2f}"


class TradeValidationError(ValidationError):
    """Exception raised for malformed orders (bad quantity, price, symbol)."""
    pass


class TradeError(VirtualTradingError):
    """Base exception for business-rule rejections of an order."""

    @property
    def user_message(self) -> str:
        return self.message


class InsufficientFunds(TradeError):
    """Exception raised when the order value exceeds the wallet balance."""

    def __init__(self, required: Decimal, available: Decimal):
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient balance: need {_money(required)}, "
            f"have {_money(available)} (short by {_money(self.shortfall)})",
            {'required': required, 'available': available, 'shortfall': self.shortfall},
        )


class BelowMinimumInvestment(TradeError):
    """Exception raised when an order is below the configured minimum value.

    ``minimum_quantity`` is the smallest quantity at the quoted price that
    satisfies the rule, so the caller can offer it as a correction.
    """

    def __init__(self, order_value: Decimal, minimum: Decimal, minimum_quantity: int):
        self.order_value = order_value
        self.minimum = minimum
        self.minimum_quantity = minimum_quantity
        super().__init__(
            f"Minimum investment is {_money(minimum)}; this order is {_money(order_value)}. "
            f"Buy at least {minimum_quantity} shares",
            {'order_value': order_value, 'minimum': minimum, 'minimum_quantity': minimum_quantity},
        )


class NoSuchHolding(TradeError):
    """Exception raised when selling a symbol that is not held."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"You do not own any shares of {symbol}", {'symbol': symbol})


class InsufficientShares(TradeError):
    """Exception raised when selling more shares than are held."""

    def __init__(self, symbol: str, requested: int, available: int):
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough shares to sell: requested {requested} {symbol}, you hold {available}",
            {'symbol': symbol, 'requested': requested, 'available': available},
        )
