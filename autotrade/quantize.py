"""Decimal quantization helpers.

Order amounts are always floored to the exchange step so an order can never
exceed the balance it was sized from. Prices are normalized to a fixed number
of fractional digits before being compared, so two evaluations of nearly the
same price always reach the same verdict.
"""
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, getcontext
from typing import Union

getcontext().prec = 28

PRICE_PLACES = Decimal("1e-10")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert exchange payload values (often strings or floats) to Decimal."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def floor_to_step(amount: Decimal, step: Decimal) -> Decimal:
    """Floor ``amount`` to a multiple of ``step`` (never rounds up)."""
    if step <= 0:
        return amount
    if amount <= 0:
        return Decimal("0")
    return ((amount / step).to_integral_value(rounding=ROUND_DOWN) * step).quantize(step)


def normalize_price(price: Decimal) -> Decimal:
    """Round a price to 10 fractional digits for stable comparisons."""
    return price.quantize(PRICE_PLACES, rounding=ROUND_HALF_EVEN)
