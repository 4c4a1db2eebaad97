"""Account and wallet entities."""
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .money import quantize_money


@dataclass
class Account:
    """A virtual trading account, identified by an opaque user id."""
    user_id: str
    display_name: str
    initial_balance: Decimal
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.user_id or not self.user_id.strip():
            raise ValueError("Account user id cannot be empty")
        if self.initial_balance < 0:
            raise ValueError("Initial balance cannot be negative")
        if not self.created_at:
            self.created_at = datetime.now()


@dataclass(frozen=True)
class Wallet:
    """Cash balance of an account.

    ``version`` increases with every committed trade and is used for
    optimistic concurrency control by the ledger store.
    """
    user_id: str
    balance: Decimal
    version: int = 0
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.balance < 0:
            raise ValueError("Wallet balance cannot be negative")

    def debit(self, amount: Decimal) -> 'Wallet':
        """Return the wallet after removing ``amount``."""
        if amount < 0:
            raise ValueError("Debit amount cannot be negative")
        return replace(self, balance=quantize_money(self.balance - amount))

    def credit(self, amount: Decimal) -> 'Wallet':
        """Return the wallet after adding ``amount``."""
        if amount < 0:
            raise ValueError("Credit amount cannot be negative")
        return replace(self, balance=quantize_money(self.balance + amount))
