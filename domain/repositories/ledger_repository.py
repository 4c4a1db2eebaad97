"""Ledger store interface."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ..entities.account import Account, Wallet
from ..entities.portfolio import Holding, Transaction, TransactionType


@dataclass(frozen=True)
class LedgerUpdate:
    """Everything a single trade changes, applied as one atomic unit.

    The wallet write is guarded by ``expected_version``; the holding change is
    expressed as a relative ``quantity_delta``. ``new_avg_price`` is only set
    by buys. ``creates_holding`` / ``deletes_holding`` describe the row
    lifecycle so a holding with zero quantity is never stored.
    """
    user_id: str
    expected_version: int
    new_balance: Decimal
    symbol: str
    name: str
    quantity_delta: int
    new_avg_price: Optional[Decimal]
    creates_holding: bool
    deletes_holding: bool
    transaction: Transaction


class ILedgerRepository(ABC):
    """Interface for account-scoped wallet, holding and transaction storage."""

    # Account Operations
    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        """Create an account and its wallet funded with ``initial_balance``.

        Returns the existing account unchanged if one already exists.
        """
        pass

    @abstractmethod
    async def get_account(self, user_id: str) -> Optional[Account]:
        """Get an account by user id."""
        pass

    @abstractmethod
    async def get_wallet(self, user_id: str) -> Optional[Wallet]:
        """Get the wallet of an account."""
        pass

    # Holdings Operations
    @abstractmethod
    async def get_holdings(self, user_id: str) -> List[Holding]:
        """Get all holdings of an account ordered by symbol."""
        pass

    @abstractmethod
    async def get_holding(self, user_id: str, symbol: str) -> Optional[Holding]:
        """Get the holding for one symbol."""
        pass

    # Trade Operations
    @abstractmethod
    async def apply_trade(self, update: LedgerUpdate) -> Transaction:
        """Atomically apply balance, holding and transaction changes.

        Raises:
            ConcurrentModificationError: the wallet version moved.
            DuplicateOperationError: the transaction's operation id exists.
            StoreUnavailable: the store failed; nothing was applied.
        """
        pass

    # Transaction Operations
    @abstractmethod
    async def get_transaction_by_operation_id(
        self, user_id: str, operation_id: str
    ) -> Optional[Transaction]:
        """Get a transaction by its client-supplied operation id."""
        pass

    @abstractmethod
    async def get_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        symbol: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        oldest_first: bool = False
    ) -> List[Transaction]:
        """Get transactions for an account, most recent first by default."""
        pass
