"""Decimal helpers shared by the ledger entities."""
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Union

# Cash amounts and order totals
MONEY_PLACES = Decimal('0.01')
# Weighted-average cost per share
PRICE_PLACES = Decimal('0.0001')

ZERO = Decimal('0')
HUNDRED = Decimal('100')

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _quantize(value: Number, places: Decimal) -> Decimal:
    value = to_decimal(value)
    with localcontext() as ctx:
        # Room for every integer digit plus the fractional places
        if value.is_finite():
            ctx.prec = max(ctx.prec, value.adjusted() + 1 - places.as_tuple().exponent)
        return value.quantize(places, rounding=ROUND_HALF_UP)


def quantize_money(value: Number) -> Decimal:
    return _quantize(value, MONEY_PLACES)


def quantize_price(value: Number) -> Decimal:
    return _quantize(value, PRICE_PLACES)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """Return ``part / whole * 100`` rounded to cents, 0 when ``whole`` is 0."""
    if whole == 0:
        return ZERO.quantize(MONEY_PLACES)
    return quantize_money(part / whole * HUNDRED)
