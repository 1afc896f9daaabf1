"""Decimal helpers for currency and hour quantities"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_float(value) -> Optional[float]:
    """JSON-friendly rendering; None stays None"""
    if value is None:
        return None
    return float(value)


def to_cents(value) -> int:
    return int((quantize_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return quantize_money(Decimal(int(cents)) / 100)
