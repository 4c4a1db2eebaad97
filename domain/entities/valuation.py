"""Valuation results produced by the valuation engine."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Dict, Any

from .money import percent_of


@dataclass(frozen=True)
class HoldingValuation:
    """Market value and unrealized P&L of one holding."""
    symbol: str
    quantity: int
    avg_price: Decimal
    current_price: Decimal
    invested_value: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    is_stale: bool = False
    as_of: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'quantity': self.quantity,
            'avg_price': str(self.avg_price),
            'current_price': str(self.current_price),
            'invested_value': str(self.invested_value),
            'current_value': str(self.current_value),
            'profit_loss': str(self.profit_loss),
            'profit_loss_percent': str(self.profit_loss_percent),
            'is_stale': self.is_stale,
            'as_of': self.as_of.isoformat() if self.as_of else None,
        }


@dataclass(frozen=True)
class PortfolioValuation:
    """Aggregate valuation of a set of holdings."""
    portfolio_value: Decimal
    invested_value: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percent: Decimal
    holdings: Tuple[HoldingValuation, ...] = field(default_factory=tuple)
    stale_symbols: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def allocation(self) -> Dict[str, Decimal]:
        """Percent of portfolio value held in each symbol."""
        if self.portfolio_value == 0:
            return {}
        return {
            h.symbol: percent_of(h.current_value, self.portfolio_value)
            for h in self.holdings
            if h.current_value > 0
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'portfolio_value': str(self.portfolio_value),
            'invested_value': str(self.invested_value),
            'total_profit_loss': str(self.total_profit_loss),
            'total_profit_loss_percent': str(self.total_profit_loss_percent),
            'holdings': [h.to_dict() for h in self.holdings],
            'stale_symbols': list(self.stale_symbols),
            'allocation': {k: str(v) for k, v in self.allocation.items()},
        }


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline numbers shown on the portfolio page."""
    balance: Decimal
    portfolio_value: Decimal
    invested_value: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percent: Decimal
    holdings_count: int = 0

    @property
    def net_worth(self) -> Decimal:
        return self.balance + self.portfolio_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'balance': str(self.balance),
            'portfolio_value': str(self.portfolio_value),
            'invested_value': str(self.invested_value),
            'total_profit_loss': str(self.total_profit_loss),
            'total_profit_loss_percent': str(self.total_profit_loss_percent),
            'net_worth': str(self.net_worth),
            'holdings_count': self.holdings_count,
        }
