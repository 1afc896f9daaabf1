"""
Payment service - checkout and webhook reconciliation.

Reconciliation is keyed on the processor payment id, which is unique on the
payments table. A success either inserts the row or promotes a pending/failed
row with a conditional update; only the request that wins that step credits
the invoice, so a replayed delivery never credits twice.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import permissions
from ...config import FRONTEND_URL
from ...email_service import send_payment_received_notification
from ...models import User
from ...models_invoice import Invoice, Payment
from ...shared.money import ZERO, from_cents, to_cents, to_float
from ...utils.timezone import format_long_date, utcnow
from ..invoices.calculations import amount_due
from ..invoices.repository import InvoiceRepository
from .dodo_service import dodo_service
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = ("sent", "past_due")

# Processor event type -> stored payment status
EVENT_STATUSES = {
    "payment.succeeded": "succeeded",
    "payment.processing": "pending",
    "payment.failed": "failed",
    "payment.cancelled": "failed",
}


class PaymentService:
    """Service layer for payments"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()
        self.invoices = InvoiceRepository()

    def _get_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.invoices.get_invoice_by_id(self.db, invoice_id, user.organization_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    def list_payments(self, invoice_id: int, user: User) -> list[Payment]:
        if not permissions.can_view_invoices(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")
        invoice = self._get_invoice(invoice_id, user)
        return self.repo.list_for_invoice(self.db, invoice.id)

    async def create_checkout(self, invoice_id: int, user: User) -> dict:
        """Hosted checkout for the invoice's remaining balance"""
        if not permissions.can_pay(user.role, user.can_pay):
            raise HTTPException(status_code=403, detail="Unauthorized")

        invoice = self._get_invoice(invoice_id, user)
        if invoice.status not in PAYABLE_STATUSES:
            raise HTTPException(status_code=409, detail="Invoice is not open for payment")
        if invoice.amount_due is None or invoice.amount_due <= ZERO:
            raise HTTPException(status_code=409, detail="Invoice has no balance due")

        if not dodo_service.is_available():
            logger.error("❌ Checkout requested but Dodo Payments is not configured")
            raise HTTPException(status_code=503, detail="Payment system not configured")

        logger.info(f"💳 Creating checkout for invoice {invoice.invoice_number}")
        try:
            checkout_url, session_id = await dodo_service.create_invoice_checkout(
                amount_cents=to_cents(invoice.amount_due),
                customer_email=user.email,
                customer_name=user.full_name,
                return_url=f"{FRONTEND_URL.rstrip('/')}/invoices/{invoice.id}?payment=complete",
                metadata={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "organization_id": str(invoice.organization_id),
                    "user_id": str(user.id),
                },
            )
        except Exception as e:
            logger.error(f"❌ Failed to create checkout for invoice {invoice.id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to create payment link") from e

        if not checkout_url:
            raise HTTPException(status_code=502, detail="Failed to create payment link")

        return {"url": checkout_url, "sessionId": session_id, "amount": to_float(invoice.amount_due)}

    # ============================================================================
    # RECONCILIATION
    # ============================================================================

    def _event_invoice(self, data: dict) -> Optional[Invoice]:
        meta = data.get("metadata") or {}
        invoice_id = meta.get("invoice_id")
        if not invoice_id:
            logger.info("Payment webhook without invoice_id in metadata; ignoring")
            return None
        try:
            invoice = self.db.query(Invoice).filter(Invoice.id == int(invoice_id)).first()
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Malformed invoice_id in payment metadata: {invoice_id!r}")
            return None
        if not invoice:
            logger.warning(f"⚠️ Invoice {invoice_id} not found for payment webhook")
            return None

        organization_id = meta.get("organization_id")
        if organization_id and str(invoice.organization_id) != str(organization_id):
            logger.error(
                f"❌ Payment metadata organization {organization_id} does not own invoice {invoice.id}"
            )
            return None
        return invoice

    def _paid_by(self, invoice: Invoice, data: dict) -> Optional[int]:
        """The paying user from checkout metadata, when they belong to the invoice's organization"""
        user_id = (data.get("metadata") or {}).get("user_id")
        try:
            user_id = int(user_id) if user_id else None
        except (TypeError, ValueError):
            return None
        if user_id is None:
            return None
        user = (
            self.db.query(User)
            .filter(User.id == user_id, User.organization_id == invoice.organization_id)
            .first()
        )
        return user.id if user else None

    async def reconcile(self, event_type: str, data: dict) -> str:
        """
        Apply one processor event. Returns a short outcome:
        credited, recorded, duplicate or ignored.
        """
        status = EVENT_STATUSES.get(event_type)
        if status is None:
            return "ignored"

        invoice = self._event_invoice(data)
        if invoice is None:
            return "ignored"

        processor_payment_id = data.get("payment_id") or data.get("id")
        if not processor_payment_id:
            logger.warning(f"⚠️ {event_type} for invoice {invoice.id} has no payment id")
            return "ignored"

        raw_amount = data.get("total_amount")
        if raw_amount is None:
            raw_amount = data.get("amount") or 0
        amount = from_cents(raw_amount)
        fields = {
            "method": data.get("payment_method"),
            "receipt_url": data.get("receipt_url"),
            "checkout_session_id": data.get("checkout_session_id"),
        }

        if status == "succeeded":
            return await self._apply_success(invoice, processor_payment_id, amount, fields, data)
        return self._record_unsettled(invoice, processor_payment_id, amount, status, fields, data)

    def _record_unsettled(
        self, invoice: Invoice, processor_payment_id: str, amount, status: str, fields: dict, data
    ) -> str:
        """Pending and failed attempts are stored but never touch invoice amounts"""
        existing = self.repo.get_by_processor_id(self.db, processor_payment_id)
        try:
            if existing:
                if not self.repo.set_unsettled_status(self.db, existing.id, status):
                    self.db.rollback()
                    return "duplicate"
            else:
                self.repo.add_payment(
                    self.db,
                    invoice_id=invoice.id,
                    processor_payment_id=processor_payment_id,
                    amount=amount,
                    status=status,
                    paid_by_id=self._paid_by(invoice, data),
                    **fields,
                )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"🔄 Payment {processor_payment_id} already recorded")
            return "duplicate"
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"📝 Payment {processor_payment_id} for invoice {invoice.id} recorded as {status}")
        return "recorded"

    async def _apply_success(
        self, invoice: Invoice, processor_payment_id: str, amount, fields: dict, data
    ) -> str:
        existing = self.repo.get_by_processor_id(self.db, processor_payment_id)
        if existing and existing.status == "succeeded":
            logger.info(f"🔄 Payment {processor_payment_id} already credited, skipping")
            return "duplicate"

        now = utcnow()
        try:
            if existing:
                if not self.repo.promote_to_succeeded(
                    self.db, existing.id, amount=amount, **fields
                ):
                    self.db.rollback()
                    return "duplicate"
            else:
                self.repo.add_payment(
                    self.db,
                    invoice_id=invoice.id,
                    processor_payment_id=processor_payment_id,
                    amount=amount,
                    status="succeeded",
                    paid_by_id=self._paid_by(invoice, data),
                    **fields,
                )

            amount_paid, total = self.repo.credit_invoice(self.db, invoice.id, amount)
            balance = amount_due(total, amount_paid)
            fully_paid = balance == ZERO
            self.repo.set_amount_due(self.db, invoice.id, balance, paid_at=now if fully_paid else None)
            if fully_paid:
                self.invoices.mark_work_orders_paid(self.db, invoice.id)
                self.invoices.cancel_pending_reminders(self.db, invoice.id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"🔄 Payment {processor_payment_id} raced a duplicate delivery")
            return "duplicate"
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(
            f"✅ Invoice {invoice.invoice_number} credited ${to_float(amount):,.2f}; "
            f"due ${to_float(invoice.amount_due):,.2f}, status {invoice.status}"
        )
        await self._notify_creator(invoice, amount, now)
        return "credited"

    async def _notify_creator(self, invoice: Invoice, amount, paid_at) -> None:
        creator = invoice.created_by
        if not creator or not creator.email:
            return
        try:
            await send_payment_received_notification(
                to=creator.email,
                recipient_name=creator.full_name,
                organization_name=invoice.organization.name if invoice.organization else "",
                invoice_number=invoice.invoice_number,
                amount=to_float(amount),
                amount_due=to_float(invoice.amount_due),
                payment_date=format_long_date(paid_at),
            )
        except Exception as e:
            logger.error(f"❌ Failed to send payment notification for {invoice.invoice_number}: {e}")
