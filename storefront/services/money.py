"""
Rupee amounts as Decimal.

Prices arrive from the backend as JSON numbers or strings; everything the
client adds up (line totals, fees, GST) stays in Decimal and is converted
back to a JSON number only when a payload is built.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal, None]

ZERO = Decimal("0")
PAISE = Decimal("0.01")
RUPEE = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    """Decimal for a price-like value; None and garbage count as zero."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return ZERO
    # floats go through str() so 0.1 stays 0.1
    text = str(value) if isinstance(value, float) else value
    try:
        return Decimal(text)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def round_money(value: Number, to_int: bool = False) -> Decimal:
    """
    Round half-up to paise, or to whole rupees when to_int is set.

    Example:
        round_money("12.5", to_int=True) -> Decimal("13")
    """
    return to_decimal(value).quantize(RUPEE if to_int else PAISE, rounding=ROUND_HALF_UP)


def multiply(value: Number, factor: Number) -> Decimal:
    return to_decimal(value) * to_decimal(factor)


def percent(value: Number, rate: Number) -> Decimal:
    """rate percent of value, unrounded."""
    return multiply(value, rate) / 100


def to_wire(value: Number) -> Union[int, float]:
    """JSON number for a payload: int for whole rupees, float otherwise."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)
