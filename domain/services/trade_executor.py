"""Trade executor: validates and applies virtual buy and sell orders.

The executor trusts the price it is given. Callers pass the quote the user
confirmed; the executor never fetches prices itself.

Every order is committed through ``ILedgerRepository.apply_trade`` so the
wallet, holding and transaction writes land together or not at all. Orders
carrying an ``operation_id`` are idempotent: replaying the same id returns
the transaction recorded the first time instead of trading again, and
reusing an id for a different order is rejected.
"""
import math
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..entities.account import Wallet
from ..entities.money import Number, to_decimal, quantize_money, quantize_price
from ..entities.portfolio import Holding, Transaction, TransactionType
from ..repositories.ledger_repository import ILedgerRepository, LedgerUpdate
from shared.config.settings import Settings
from shared.exceptions import (
    AccountNotFound,
    BelowMinimumInvestment,
    ConcurrentModificationError,
    DuplicateOperationError,
    InsufficientFunds,
    InsufficientShares,
    NoSuchHolding,
    TradeValidationError,
)
from shared.logging import get_contextual_logger


class TradeExecutor:
    """Applies buy and sell orders against an account's ledger."""

    def __init__(
        self,
        ledger_repository: ILedgerRepository,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.ledger = ledger_repository
        self.settings = settings
        self.trading = settings.trading
        self._clock = clock or (lambda: datetime.now(settings.tz))

    # Validation
    @staticmethod
    def _validate_order(symbol: str, quantity: int, price: Number) -> Decimal:
        if not isinstance(symbol, str) or not symbol.strip():
            raise TradeValidationError("Symbol is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise TradeValidationError(
                "Quantity must be a whole number of shares", {'quantity': quantity}
            )
        if quantity <= 0:
            raise TradeValidationError("Quantity must be positive", {'quantity': quantity})
        try:
            price = to_decimal(price)
        except (ArithmeticError, ValueError, TypeError):
            raise TradeValidationError("Price must be a number", {'price': price})
        if not price.is_finite() or quantize_price(price) <= 0:
            raise TradeValidationError("Price must be positive", {'price': price})
        return price

    def minimum_quantity(self, price: Decimal) -> int:
        """Smallest quantity whose value meets the minimum investment."""
        return max(1, math.ceil(self.trading.minimum_investment / price))

    async def _load_wallet(self, user_id: str) -> Wallet:
        wallet = await self.ledger.get_wallet(user_id)
        if wallet is None:
            raise AccountNotFound(f"No trading account for user {user_id}", {'user_id': user_id})
        return wallet

    async def _replayed(
        self,
        user_id: str,
        operation_id: Optional[str],
        side: TransactionType,
        symbol: str,
        quantity: int
    ) -> Optional[Transaction]:
        """Return the transaction already recorded for ``operation_id``.

        Raises:
            DuplicateOperationError: the id was used for a different order.
        """
        if not operation_id:
            return None
        recorded = await self.ledger.get_transaction_by_operation_id(user_id, operation_id)
        if recorded is None:
            return None
        if (recorded.transaction_type, recorded.symbol, recorded.quantity) != (side, symbol, quantity):
            raise DuplicateOperationError(
                f"Operation {operation_id} was already used for "
                f"{recorded.transaction_type.value} {recorded.quantity} {recorded.symbol}",
                {'operation_id': operation_id, 'transaction_id': recorded.id},
            )
        return recorded

    async def _commit(self, update: LedgerUpdate, log) -> Optional[Transaction]:
        """Apply an update; None means the wallet moved and the order should be re-planned."""
        try:
            return await self.ledger.apply_trade(update)
        except ConcurrentModificationError:
            log.warning("Wallet changed during order, retrying")
            return None
        except DuplicateOperationError:
            log.info("Operation already applied by a concurrent request")
            t = update.transaction
            replay = await self._replayed(
                update.user_id, t.operation_id, t.transaction_type, t.symbol, t.quantity
            )
            if replay is None:
                raise
            return replay

    # Orders
    async def buy(
        self,
        user_id: str,
        symbol: str,
        quantity: int,
        current_price: Number,
        name: Optional[str] = None,
        operation_id: Optional[str] = None
    ) -> Transaction:
        """
        Buy ``quantity`` shares at ``current_price``.

        Returns:
            The recorded buy transaction (or the original one when
            ``operation_id`` was already applied).

        Raises:
            TradeValidationError, AccountNotFound, InsufficientFunds,
            BelowMinimumInvestment, StoreUnavailable, ConcurrentModificationError,
            DuplicateOperationError
        """
        price = self._validate_order(symbol, quantity, current_price)
        symbol = symbol.strip().upper()
        log = get_contextual_logger(__name__, user=user_id, symbol=symbol, side='buy', op=operation_id)

        for _ in range(self.trading.max_retries):
            replay = await self._replayed(user_id, operation_id, TransactionType.BUY, symbol, quantity)
            if replay is not None:
                log.info(f"Replayed operation {operation_id}, returning transaction {replay.id}")
                return replay

            wallet = await self._load_wallet(user_id)
            total_cost = quantize_money(price * quantity)

            if total_cost > wallet.balance:
                log.warning(f"Rejected: cost {total_cost} exceeds balance {wallet.balance}")
                raise InsufficientFunds(required=total_cost, available=wallet.balance)

            if self.trading.minimum_investment_enabled and total_cost < self.trading.minimum_investment:
                log.warning(f"Rejected: order value {total_cost} below minimum")
                raise BelowMinimumInvestment(
                    order_value=total_cost,
                    minimum=self.trading.minimum_investment,
                    minimum_quantity=self.minimum_quantity(price),
                )

            holding = await self.ledger.get_holding(user_id, symbol)
            if holding is not None:
                new_quantity = holding.quantity + quantity
                new_avg_price = quantize_price(
                    (holding.avg_price * holding.quantity + total_cost) / new_quantity
                )
                holding_name = holding.name
            else:
                new_quantity = quantity
                new_avg_price = quantize_price(price)
                holding_name = name or symbol

            transaction = Transaction(
                id=None,
                user_id=user_id,
                transaction_type=TransactionType.BUY,
                symbol=symbol,
                name=name or holding_name,
                quantity=quantity,
                price=price,
                total=total_cost,
                avg_cost=new_avg_price,
                timestamp=self._clock(),
                operation_id=operation_id,
            )
            update = LedgerUpdate(
                user_id=user_id,
                expected_version=wallet.version,
                new_balance=wallet.debit(total_cost).balance,
                symbol=symbol,
                name=holding_name,
                quantity_delta=quantity,
                new_avg_price=new_avg_price,
                creates_holding=holding is None,
                deletes_holding=False,
                transaction=transaction,
            )

            recorded = await self._commit(update, log)
            if recorded is not None:
                log.info(f"Bought {quantity} @ {price} for {total_cost}; "
                         f"position {new_quantity} @ avg {new_avg_price}")
                return recorded

        raise ConcurrentModificationError(
            "Wallet kept changing while the buy was processing",
            {'user_id': user_id, 'attempts': self.trading.max_retries},
        )

    async def sell(
        self,
        user_id: str,
        symbol: str,
        quantity: int,
        current_price: Number,
        name: Optional[str] = None,
        operation_id: Optional[str] = None
    ) -> Transaction:
        """
        Sell ``quantity`` shares at ``current_price``.

        Proceeds use the current price; the holding's average price is left
        unchanged. Selling the whole position deletes the holding.

        Raises:
            TradeValidationError, AccountNotFound, NoSuchHolding,
            InsufficientShares, StoreUnavailable, ConcurrentModificationError,
            DuplicateOperationError
        """
        price = self._validate_order(symbol, quantity, current_price)
        symbol = symbol.strip().upper()
        log = get_contextual_logger(__name__, user=user_id, symbol=symbol, side='sell', op=operation_id)

        for _ in range(self.trading.max_retries):
            replay = await self._replayed(user_id, operation_id, TransactionType.SELL, symbol, quantity)
            if replay is not None:
                log.info(f"Replayed operation {operation_id}, returning transaction {replay.id}")
                return replay

            wallet = await self._load_wallet(user_id)
            holding: Optional[Holding] = await self.ledger.get_holding(user_id, symbol)

            if holding is None:
                log.warning("Rejected: no holding")
                raise NoSuchHolding(symbol)
            if holding.quantity < quantity:
                log.warning(f"Rejected: requested {quantity}, holding {holding.quantity}")
                raise InsufficientShares(symbol, requested=quantity, available=holding.quantity)

            sell_value = quantize_money(price * quantity)
            transaction = Transaction(
                id=None,
                user_id=user_id,
                transaction_type=TransactionType.SELL,
                symbol=symbol,
                name=name or holding.name,
                quantity=quantity,
                price=price,
                total=sell_value,
                avg_cost=holding.avg_price,
                timestamp=self._clock(),
                operation_id=operation_id,
            )
            update = LedgerUpdate(
                user_id=user_id,
                expected_version=wallet.version,
                new_balance=wallet.credit(sell_value).balance,
                symbol=symbol,
                name=holding.name,
                quantity_delta=-quantity,
                new_avg_price=None,
                creates_holding=False,
                deletes_holding=quantity == holding.quantity,
                transaction=transaction,
            )

            recorded = await self._commit(update, log)
            if recorded is not None:
                log.info(f"Sold {quantity} @ {price} for {sell_value}; "
                         f"realized {recorded.realized_profit_loss}")
                return recorded

        raise ConcurrentModificationError(
            "Wallet kept changing while the sell was processing",
            {'user_id': user_id, 'attempts': self.trading.max_retries},
        )
