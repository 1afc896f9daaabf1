"""
Scheduled invoice housekeeping.

Each function takes an open session, commits its own work and returns a
summary dict for the worker log.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...email_service import send_invoice_reminder_email
from ...shared.money import to_float
from ...utils.timezone import utcnow
from .repository import InvoiceRepository
from .service import invoice_view_url

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("sent", "past_due")


async def send_due_reminders(db: Session, now: Optional[datetime] = None) -> dict:
    """Email every reminder whose scheduled date has passed.

    Reminders on invoices that are no longer open, or that have no live
    view link, are cancelled instead of sent.
    """
    now = now or utcnow()
    repo = InvoiceRepository()
    sent = cancelled = failed = 0

    for reminder in repo.get_due_reminders(db, now):
        invoice = reminder.invoice
        if invoice is None or invoice.status not in OPEN_STATUSES:
            reminder.cancelled = True
            cancelled += 1
            continue

        view_token = repo.latest_view_token(db, invoice.id, now)
        if not view_token:
            logger.warning(f"⚠️ Invoice {invoice.invoice_number} has no live view link, reminder cancelled")
            reminder.cancelled = True
            cancelled += 1
            continue

        days_since_sent = (now - invoice.sent_at).days if invoice.sent_at else 0
        try:
            await send_invoice_reminder_email(
                to=reminder.recipient_email,
                invoice_number=invoice.invoice_number,
                amount_due=to_float(invoice.amount_due),
                days_since_sent=days_since_sent,
                view_url=invoice_view_url(view_token.token),
                cc=reminder.cc_emails or None,
            )
        except Exception as e:
            # Left unsent so the next run retries it
            logger.error(f"❌ Reminder {reminder.id} for {invoice.invoice_number} failed: {e}")
            failed += 1
            continue

        reminder.sent_at = now
        sent += 1

    db.commit()
    return {"sent": sent, "cancelled": cancelled, "failed": failed}


def mark_past_due(db: Session, now: Optional[datetime] = None) -> dict:
    """Flip sent invoices whose due date has passed to past_due"""
    now = now or utcnow()
    invoices = InvoiceRepository.get_overdue_invoices(db, now)
    for invoice in invoices:
        invoice.status = "past_due"
        logger.info(f"⏰ Invoice {invoice.invoice_number} is past due")
    db.commit()
    return {"past_due": len(invoices)}


def purge_expired_view_tokens(db: Session, now: Optional[datetime] = None) -> dict:
    deleted = InvoiceRepository.delete_expired_view_tokens(db, now or utcnow())
    db.commit()
    return {"deleted": deleted}
