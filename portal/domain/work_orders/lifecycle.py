"""
Work-order state machine and the pure calculations shown alongside it.

    draft -> pending_approval -> approved -> in_progress -> completed -> invoiced -> paid
    pending_approval -> draft                 (cancel sign-off)
    approved -> completed                     (mark complete without starting)
    in_progress -> pending_approval           (series sign-off after delivery)
    invoiced -> completed                     (draft invoice deleted)

pending_approval -> approved only happens through token redemption, and
completed -> invoiced -> paid only through invoicing and payment.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ...shared.money import ZERO, quantize_money, to_decimal

ALLOWED_TRANSITIONS = {
    "draft": {"pending_approval"},
    "pending_approval": {"draft", "approved"},
    "approved": {"in_progress", "completed"},
    "in_progress": {"completed", "pending_approval"},
    "completed": {"invoiced"},
    "invoiced": {"paid", "completed"},
    "paid": set(),
}

EDITABLE_STATUSES = {"draft", "pending_approval"}
DELETABLE_STATUSES = {"draft"}
CHANGE_ORDER_STATUSES = {"approved", "in_progress", "completed"}
TIME_LOG_STATUSES = {"draft", "pending_approval", "approved", "in_progress", "completed"}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def is_editable(status: str) -> bool:
    return status in EDITABLE_STATUSES


def is_deletable(status: str) -> bool:
    return status in DELETABLE_STATUSES


def accepts_change_orders(status: str) -> bool:
    return status in CHANGE_ORDER_STATUSES


def accepts_time_logs(status: str) -> bool:
    return status in TIME_LOG_STATUSES


def estimate_display(
    estimate_type: Optional[str],
    rate,
    hours_min=None,
    hours_max=None,
    hours_fixed=None,
    hours_nte=None,
) -> Optional[dict]:
    """Dollar figures for an estimate; nothing is stored"""
    rate = to_decimal(rate)

    if estimate_type == "range" and hours_min is not None and hours_max is not None:
        low = quantize_money(to_decimal(hours_min) * rate)
        high = quantize_money(to_decimal(hours_max) * rate)
        return {
            "type": "range",
            "minAmount": low,
            "maxAmount": high,
            "label": f"${low:,.2f} - ${high:,.2f}",
        }
    if estimate_type == "fixed" and hours_fixed is not None:
        amount = quantize_money(to_decimal(hours_fixed) * rate)
        return {"type": "fixed", "amount": amount, "label": f"${amount:,.2f}"}
    if estimate_type == "not_to_exceed" and hours_nte is not None:
        amount = quantize_money(to_decimal(hours_nte) * rate)
        return {"type": "not_to_exceed", "amount": amount, "label": f"up to ${amount:,.2f}"}
    return None


def work_order_estimate(work_order) -> Optional[dict]:
    return estimate_display(
        work_order.estimate_type,
        work_order.hourly_rate_snapshot,
        hours_min=work_order.estimated_hours_min,
        hours_max=work_order.estimated_hours_max,
        hours_fixed=work_order.estimated_hours_fixed,
        hours_nte=work_order.estimated_hours_nte,
    )


def approved_change_order_rollup(change_orders: Iterable, rate) -> tuple[Decimal, Decimal]:
    """(additional approved hours, additional approved cost)"""
    hours = ZERO
    for change_order in change_orders:
        if change_order.is_approved:
            hours += to_decimal(change_order.additional_hours)
    return hours, quantize_money(hours * to_decimal(rate))


def append_completion_notes(existing: Optional[str], completion_notes: Optional[str]) -> Optional[str]:
    if not completion_notes or not completion_notes.strip():
        return existing
    addition = f"Completion notes: {completion_notes.strip()}"
    if existing:
        return f"{existing}\n\n{addition}"
    return addition
