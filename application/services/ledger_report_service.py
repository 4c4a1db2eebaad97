"""Transaction history and realized profit/loss reports."""
from decimal import Decimal
from typing import List

import pandas as pd

from domain.entities.money import ZERO, quantize_money
from domain.entities.portfolio import Transaction, TransactionType
from domain.repositories.ledger_repository import ILedgerRepository
from shared.logging import get_logger

TRANSACTION_COLUMNS = [
    'id', 'timestamp', 'type', 'symbol', 'name', 'quantity',
    'price', 'total', 'avg_cost', 'realized_pl',
]
SYMBOL_SUMMARY_COLUMNS = ['symbol', 'shares_sold', 'proceeds', 'cost_basis', 'realized_pl']


class LedgerReportService:
    """Builds pandas reports from an account's transaction log.

    Realized P&L of a sell is ``(price - avg_cost) * quantity`` where
    ``avg_cost`` is the weighted-average cost recorded on the transaction.
    Money columns are floats for reporting; ``total_realized`` stays exact.
    """

    def __init__(self, ledger_repository: ILedgerRepository):
        self.ledger = ledger_repository
        self.logger = get_logger(__name__)

    async def _transactions(self, user_id: str) -> List[Transaction]:
        return await self.ledger.get_transactions(user_id, oldest_first=True)

    @staticmethod
    def to_frame(transactions: List[Transaction]) -> pd.DataFrame:
        """Convert transactions to a DataFrame in log order."""
        rows = [{
            'id': t.id,
            'timestamp': t.timestamp,
            'type': t.transaction_type.value,
            'symbol': t.symbol,
            'name': t.name,
            'quantity': t.quantity,
            'price': float(t.price),
            'total': float(t.total),
            'avg_cost': float(t.avg_cost),
            'realized_pl': float(t.realized_profit_loss),
        } for t in transactions]
        return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)

    async def transaction_history(self, user_id: str) -> pd.DataFrame:
        return self.to_frame(await self._transactions(user_id))

    async def realized_by_sell(self, user_id: str) -> pd.DataFrame:
        """One row per sell with its realized P&L."""
        df = await self.transaction_history(user_id)
        return df[df['type'] == TransactionType.SELL.value].reset_index(drop=True)

    async def realized_by_symbol(self, user_id: str) -> pd.DataFrame:
        """Realized P&L aggregated per symbol, largest gain first."""
        sells = await self.realized_by_sell(user_id)
        if sells.empty:
            return pd.DataFrame(columns=SYMBOL_SUMMARY_COLUMNS)

        sells = sells.assign(cost_basis=sells['avg_cost'] * sells['quantity'])
        summary = sells.groupby('symbol', as_index=False).agg(
            shares_sold=('quantity', 'sum'),
            proceeds=('total', 'sum'),
            cost_basis=('cost_basis', 'sum'),
            realized_pl=('realized_pl', 'sum'),
        )
        summary[['proceeds', 'cost_basis', 'realized_pl']] = summary[
            ['proceeds', 'cost_basis', 'realized_pl']
        ].round(2)
        return summary.sort_values('realized_pl', ascending=False).reset_index(drop=True)

    async def total_realized(self, user_id: str) -> Decimal:
        transactions = await self._transactions(user_id)
        return quantize_money(sum((t.realized_profit_loss for t in transactions), ZERO))
