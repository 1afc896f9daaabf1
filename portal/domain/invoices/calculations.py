"""Pure invoice arithmetic; every amount is a quantized Decimal"""

from decimal import Decimal
from typing import Iterable, Optional

from ...shared.money import ZERO, quantize_money, to_decimal


class InvoiceAmountError(ValueError):
    pass


def line_amount(quantity, unit_price) -> Decimal:
    return quantize_money(to_decimal(quantity) * to_decimal(unit_price))


def discount_amount(subtotal: Decimal, discount_type: Optional[str], discount_value) -> Decimal:
    if not discount_type or discount_value is None:
        return ZERO
    value = to_decimal(discount_value)
    if value < 0:
        raise InvoiceAmountError("Discount cannot be negative")
    if discount_type == "percentage":
        if value > 100:
            raise InvoiceAmountError("Percentage discount must be between 0 and 100")
        return quantize_money(subtotal * value / Decimal(100))
    if discount_type == "flat":
        if value > subtotal:
            raise InvoiceAmountError("Discount cannot exceed the subtotal")
        return quantize_money(value)
    raise InvoiceAmountError(f"Invalid discount type: {discount_type}")


def compute_totals(
    amounts: Iterable, discount_type: Optional[str] = None, discount_value=None
) -> dict:
    """subtotal, discount_amount and total for a set of line amounts"""
    subtotal = quantize_money(sum((to_decimal(a) for a in amounts), ZERO))
    discount = discount_amount(subtotal, discount_type, discount_value)
    total = max(ZERO, quantize_money(subtotal - discount))
    return {"subtotal": subtotal, "discount_amount": discount, "total": total}


def amount_due(total, amount_paid) -> Decimal:
    return max(ZERO, quantize_money(to_decimal(total) - to_decimal(amount_paid)))


def apply_payment(total, amount_paid, amount) -> tuple[Decimal, Decimal]:
    """(new amount_paid, new amount_due) after crediting a successful payment"""
    paid = quantize_money(to_decimal(amount_paid) + to_decimal(amount))
    return paid, amount_due(total, paid)
