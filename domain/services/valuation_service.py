"""Portfolio valuation engine.

``value_holding`` and ``value_portfolio`` are pure functions of their
inputs. ``ValuationEngine`` wraps them with a per-symbol memory of the last
price seen so a missing quote degrades to a stale valuation instead of an
error.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..entities.portfolio import Holding
from ..entities.quote import Quote
from ..entities.valuation import HoldingValuation, PortfolioValuation, PortfolioSummary
from ..entities.money import ZERO, quantize_money, percent_of
from shared.logging import get_logger

logger = get_logger(__name__)

QuoteLookup = Union[Mapping[str, Quote], Iterable[Quote]]


def _valuation_at(holding: Holding, price: Decimal, is_stale: bool,
                  as_of: Optional[datetime]) -> HoldingValuation:
    invested = holding.invested_value
    current_value = quantize_money(price * holding.quantity)
    profit_loss = current_value - invested
    return HoldingValuation(
        symbol=holding.symbol,
        quantity=holding.quantity,
        avg_price=holding.avg_price,
        current_price=price,
        invested_value=invested,
        current_value=current_value,
        profit_loss=profit_loss,
        profit_loss_percent=percent_of(profit_loss, invested),
        is_stale=is_stale,
        as_of=as_of,
    )


def value_holding(
    holding: Holding,
    quote: Optional[Quote],
    last_known: Optional[HoldingValuation] = None
) -> HoldingValuation:
    """
    Value a holding against its latest quote.

    Args:
        holding: The position to value
        quote: Latest quote for the holding's symbol, or None if unavailable
        last_known: Previous valuation of the same symbol, used when the
            quote is missing

    Returns:
        HoldingValuation; ``is_stale`` is True when no quote was available.
        Without a quote or a previous valuation the holding is valued at
        cost.
    """
    if quote is not None:
        return _valuation_at(holding, quote.price, False, quote.last_updated)

    if last_known is not None:
        return _valuation_at(holding, last_known.current_price, True, last_known.as_of)

    return _valuation_at(holding, holding.avg_price, True, None)


def _index_quotes(quotes: QuoteLookup) -> Mapping[str, Quote]:
    if isinstance(quotes, Mapping):
        return quotes
    return {q.symbol: q for q in quotes}


def value_portfolio(
    holdings: Iterable[Holding],
    quotes: QuoteLookup,
    last_known: Optional[Mapping[str, HoldingValuation]] = None
) -> PortfolioValuation:
    """
    Value a set of holdings.

    ``total_profit_loss_percent`` is 0 when nothing is invested.
    """
    by_symbol = _index_quotes(quotes)
    last_known = last_known or {}

    valuations: List[HoldingValuation] = []
    for holding in sorted(holdings, key=lambda h: h.symbol):
        valuations.append(
            value_holding(holding, by_symbol.get(holding.symbol), last_known.get(holding.symbol))
        )

    portfolio_value = sum((v.current_value for v in valuations), ZERO)
    invested_value = sum((v.invested_value for v in valuations), ZERO)
    total_profit_loss = portfolio_value - invested_value

    return PortfolioValuation(
        portfolio_value=quantize_money(portfolio_value),
        invested_value=quantize_money(invested_value),
        total_profit_loss=quantize_money(total_profit_loss),
        total_profit_loss_percent=percent_of(total_profit_loss, invested_value),
        holdings=tuple(valuations),
        stale_symbols=tuple(v.symbol for v in valuations if v.is_stale),
    )


class ValuationEngine:
    """Values holdings and remembers the last price seen per symbol."""

    def __init__(self):
        self._last_known: Dict[str, HoldingValuation] = {}

    def value_holding(self, holding: Holding, quote: Optional[Quote]) -> HoldingValuation:
        valuation = value_holding(holding, quote, self._last_known.get(holding.symbol))
        if not valuation.is_stale:
            self._last_known[holding.symbol] = valuation
        return valuation

    def value_portfolio(self, holdings: Iterable[Holding], quotes: QuoteLookup) -> PortfolioValuation:
        valuation = value_portfolio(holdings, quotes, self._last_known)
        for item in valuation.holdings:
            if not item.is_stale:
                self._last_known[item.symbol] = item
        if valuation.stale_symbols:
            logger.warning(f"Valued {len(valuation.stale_symbols)} holdings without a fresh quote: "
                           f"{', '.join(valuation.stale_symbols)}")
        return valuation

    def summarize(self, balance: Decimal, holdings: Iterable[Holding],
                  quotes: QuoteLookup) -> PortfolioSummary:
        """Combine the wallet balance with a portfolio valuation."""
        holdings = list(holdings)
        valuation = self.value_portfolio(holdings, quotes)
        return PortfolioSummary(
            balance=balance,
            portfolio_value=valuation.portfolio_value,
            invested_value=valuation.invested_value,
            total_profit_loss=valuation.total_profit_loss,
            total_profit_loss_percent=valuation.total_profit_loss_percent,
            holdings_count=len(holdings),
        )

    def forget(self, symbol: str) -> None:
        self._last_known.pop(symbol, None)
