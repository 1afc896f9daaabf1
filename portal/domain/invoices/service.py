"""
Invoice service - assembly, numbering, sending and period drafts.

Attaching a work order to an invoice is a conditional completed -> invoiced
update in the same transaction as the invoice write; releasing it (detach or
draft delete) reverts to completed.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...config import FRONTEND_URL
from ...email_service import send_invoice_email
from ...models import User, WorkOrder
from ...models_invoice import Invoice, InvoiceViewToken
from ...shared.money import ZERO, quantize_money, to_decimal, to_float
from ...utils.timezone import (
    format_long_date,
    format_short_date,
    parse_org_datetime,
    to_org_date,
    utcnow,
)
from ..work_orders.repository import WorkOrderRepository
from .billing_periods import BillingPeriod, current_period, label_for_range, next_period
from .calculations import InvoiceAmountError, amount_due, compute_totals, line_amount
from .repository import InvoiceRepository
from .schemas import InvoiceCreate, InvoiceUpdate, LineItemInput, SendInvoiceRequest

logger = logging.getLogger(__name__)

INVALID_VIEW_LINK_MESSAGE = "Invalid invoice link"
EXPIRED_VIEW_LINK_MESSAGE = "This invoice link has expired"


def invoice_view_url(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/invoice/{token}"


def work_order_line(work_order: WorkOrder) -> dict:
    """Hours-based line for a completed work order"""
    quantity = quantize_money(work_order.actual_hours)
    unit_price = quantize_money(work_order.hourly_rate_snapshot)
    return {
        "description": f"{work_order.event_name} - {format_short_date(work_order.event_date)}",
        "quantity": quantity,
        "unit_price": unit_price,
        "amount": line_amount(quantity, unit_price),
        "work_order_id": work_order.id,
        "is_retainer": False,
        "is_custom": False,
    }


def line_from_input(item: LineItemInput) -> dict:
    quantity = quantize_money(item.quantity)
    unit_price = quantize_money(item.unitPrice)
    return {
        "description": item.description,
        "quantity": quantity,
        "unit_price": unit_price,
        "amount": line_amount(quantity, unit_price),
        "work_order_id": item.workOrderId,
        "is_retainer": item.isRetainer,
        "is_custom": item.workOrderId is None and not item.isRetainer,
    }


def line_from_model(item) -> dict:
    return {
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "amount": item.amount,
        "work_order_id": item.work_order_id,
        "is_retainer": item.is_retainer,
        "is_custom": item.is_custom,
    }


def retainer_line(monthly_retainer, label: str) -> Optional[dict]:
    """Half the monthly retainer per half-month period; None when there is none"""
    half = quantize_money(to_decimal(monthly_retainer) / 2)
    if half <= ZERO:
        return None
    return {
        "description": f"Monthly Retainer ({label})",
        "quantity": Decimal("1.00"),
        "unit_price": half,
        "amount": half,
        "work_order_id": None,
        "is_retainer": True,
        "is_custom": False,
    }


class InvoiceService:
    """Service layer for invoice business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()
        self.work_orders = WorkOrderRepository()

    # ============================================================================
    # GUARDS
    # ============================================================================

    def _require_creator(self, user: User) -> None:
        if not permissions.can_create_invoices(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def _require_viewer(self, user: User) -> None:
        if not permissions.can_view_invoices(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    @staticmethod
    def _require_draft(invoice: Invoice, action: str) -> None:
        if invoice.status != "draft":
            raise HTTPException(status_code=409, detail=f"Only draft invoices can be {action}")

    # ============================================================================
    # READS
    # ============================================================================

    def list_invoices(self, user: User, status: Optional[str] = None) -> list[Invoice]:
        self._require_viewer(user)
        return self.repo.get_invoices(self.db, user.organization_id, status)

    def get_invoice(self, invoice_id: int, user: User) -> Invoice:
        self._require_viewer(user)
        invoice = self.repo.get_invoice_by_id(self.db, invoice_id, user.organization_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    # ============================================================================
    # ASSEMBLY HELPERS
    # ============================================================================

    def _billable_work_orders(
        self, work_order_ids: set[int], organization_id: int, invoice_id: Optional[int] = None
    ) -> dict[int, WorkOrder]:
        """Every id must be completed and free, or already on this invoice"""
        found = {
            wo.id: wo
            for wo in self.work_orders.get_work_orders_by_ids(
                self.db, sorted(work_order_ids), organization_id
            )
        }
        missing = sorted(work_order_ids - set(found))
        if missing:
            raise HTTPException(status_code=404, detail=f"Work orders not found: {missing}")

        blocked = sorted(
            wo.id
            for wo in found.values()
            if not (
                (wo.status == "completed" and wo.invoice_id is None)
                or (invoice_id is not None and wo.invoice_id == invoice_id)
            )
        )
        if blocked:
            raise HTTPException(
                status_code=409,
                detail=f"Work orders must be completed and not already invoiced: {blocked}",
            )
        return found

    def _assemble_lines(
        self, lines: list[dict], work_order_ids: set[int], found: dict[int, WorkOrder]
    ) -> list[dict]:
        """Explicit lines first, then one generated line per attached work order without one"""
        covered = {line["work_order_id"] for line in lines if line["work_order_id"] is not None}
        generated = [
            work_order_line(found[wo_id])
            for wo_id in sorted(work_order_ids - covered, key=lambda i: (found[i].event_date, i))
        ]
        return lines + generated

    @staticmethod
    def _apply_totals(invoice: Invoice, amounts: list) -> None:
        try:
            totals = compute_totals(amounts, invoice.discount_type, invoice.discount_value)
        except InvoiceAmountError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        invoice.subtotal = totals["subtotal"]
        invoice.discount_amount = totals["discount_amount"]
        invoice.total = totals["total"]
        invoice.amount_due = amount_due(invoice.total, invoice.amount_paid)

    def _attach(self, invoice_id: int, work_order_ids: list[int]) -> None:
        moved = self.repo.attach_work_orders(self.db, invoice_id, work_order_ids)
        if moved != len(work_order_ids):
            raise HTTPException(
                status_code=409,
                detail="A work order was invoiced or changed status, reload and try again",
            )

    # ============================================================================
    # CORE CRUD OPERATIONS
    # ============================================================================

    def create_invoice(self, data: InvoiceCreate, user: User) -> Invoice:
        """Create a draft invoice; attached work orders move to invoiced"""
        self._require_creator(user)

        lines = [line_from_input(item) for item in data.lineItems]
        work_order_ids = set(data.workOrderIds) | {
            line["work_order_id"] for line in lines if line["work_order_id"] is not None
        }
        found = self._billable_work_orders(work_order_ids, user.organization_id)
        lines = self._assemble_lines(lines, work_order_ids, found)

        try:
            invoice_number = self.repo.allocate_invoice_number(self.db, user.organization_id)
            invoice = self.repo.add_invoice(
                self.db,
                organization_id=user.organization_id,
                invoice_number=invoice_number,
                invoice_date=parse_org_datetime(data.invoiceDate) if data.invoiceDate else utcnow(),
                due_date=parse_org_datetime(data.dueDate) if data.dueDate else None,
                period_start=parse_org_datetime(data.periodStart) if data.periodStart else None,
                period_end=parse_org_datetime(data.periodEnd) if data.periodEnd else None,
                discount_type=data.discountType,
                discount_value=data.discountValue if data.discountType else None,
                amount_paid=ZERO,
                notes=data.notes,
                internal_notes=data.internalNotes,
                status="draft",
                created_by_id=user.id,
            )
            self.repo.replace_line_items(self.db, invoice, lines)
            self._apply_totals(invoice, [line["amount"] for line in lines])
            self._attach(invoice.id, sorted(work_order_ids))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(
            f"✅ Invoice {invoice.invoice_number} created for org {user.organization_id}: "
            f"total ${to_float(invoice.total):,.2f}, {len(work_order_ids)} work orders"
        )
        return invoice

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate, user: User) -> Invoice:
        """
        Draft-only edit. Supplied line items replace the current set; omitted
        ones keep the current lines, minus those of detached work orders.
        Attachment is driven by workOrderIds alone: a work order that stays
        attached and has no supplied line gets its hours line regenerated, so
        dropping a work order means leaving it out of workOrderIds.
        """
        self._require_creator(user)
        invoice = self.get_invoice(invoice_id, user)
        self._require_draft(invoice, "edited")

        current_ids = {wo.id for wo in invoice.work_orders}
        if data.lineItems is not None:
            lines = [line_from_input(item) for item in data.lineItems]
        else:
            lines = [line_from_model(item) for item in invoice.line_items]

        if data.workOrderIds is not None:
            requested = set(data.workOrderIds)
            if data.lineItems is None:
                lines = [
                    line
                    for line in lines
                    if line["work_order_id"] is None or line["work_order_id"] in requested
                ]
        else:
            requested = set(current_ids)
        new_ids = requested | {
            line["work_order_id"] for line in lines if line["work_order_id"] is not None
        }

        found = self._billable_work_orders(new_ids, user.organization_id, invoice.id)
        lines = self._assemble_lines(lines, new_ids, found)

        fields = data.model_dump(exclude_unset=True)
        try:
            if "invoiceDate" in fields and data.invoiceDate:
                invoice.invoice_date = parse_org_datetime(data.invoiceDate)
            if "dueDate" in fields:
                invoice.due_date = parse_org_datetime(data.dueDate) if data.dueDate else None
            if "periodStart" in fields:
                invoice.period_start = (
                    parse_org_datetime(data.periodStart) if data.periodStart else None
                )
            if "periodEnd" in fields:
                invoice.period_end = parse_org_datetime(data.periodEnd) if data.periodEnd else None
            if "notes" in fields:
                invoice.notes = data.notes
            if "internalNotes" in fields:
                invoice.internal_notes = data.internalNotes

            if data.clearDiscount:
                invoice.discount_type = None
                invoice.discount_value = None
            else:
                if "discountType" in fields:
                    invoice.discount_type = data.discountType
                if "discountValue" in fields:
                    invoice.discount_value = data.discountValue

            self.repo.replace_line_items(self.db, invoice, lines)
            self._apply_totals(invoice, [line["amount"] for line in lines])

            self.repo.release_work_orders(self.db, invoice.id, sorted(current_ids - new_ids))
            self._attach(invoice.id, sorted(new_ids - current_ids))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(f"📝 Invoice {invoice.invoice_number} updated")
        return invoice

    def delete_invoice(self, invoice_id: int, user: User) -> dict:
        """Draft-only; attached work orders go back to completed"""
        self._require_creator(user)
        invoice = self.get_invoice(invoice_id, user)
        self._require_draft(invoice, "deleted")

        number = invoice.invoice_number
        try:
            released = self.repo.release_work_orders(self.db, invoice.id)
            self.repo.delete_invoice(self.db, invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🗑️ Invoice {number} deleted, {released} work orders released")
        return {"message": "Invoice deleted"}

    # ============================================================================
    # SENDING
    # ============================================================================

    async def send_invoice(
        self, invoice_id: int, data: SendInvoiceRequest, user: User
    ) -> tuple[Invoice, str, int, bool]:
        """draft -> sent with a view link; the email goes out after commit"""
        self._require_creator(user)
        invoice = self.get_invoice(invoice_id, user)
        if invoice.status != "draft":
            raise HTTPException(status_code=409, detail="Invoice has already been sent")

        organization = invoice.organization
        recipient = data.recipientEmail or (organization.email if organization else None)
        if not recipient:
            raise HTTPException(
                status_code=400,
                detail="No recipient email: provide one or set the organization email",
            )

        now = utcnow()
        try:
            invoice.status = "sent"
            invoice.sent_at = now
            view_token = self.repo.create_view_token(self.db, invoice.id)
            for day in data.reminderDays:
                self.repo.add_reminder(
                    self.db,
                    invoice_id=invoice.id,
                    reminder_type=f"{day}_day",
                    scheduled_date=now + timedelta(days=day),
                    recipient_email=recipient,
                    cc_emails=data.cc,
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        view_url = invoice_view_url(view_token.token)
        logger.info(
            f"📧 Invoice {invoice.invoice_number} sent to {recipient} "
            f"with {len(data.reminderDays)} reminders"
        )

        email_sent = False
        try:
            await send_invoice_email(
                to=recipient,
                organization_name=organization.name if organization else "",
                invoice_number=invoice.invoice_number,
                amount_due=to_float(invoice.amount_due),
                view_url=view_url,
                due_date=format_long_date(invoice.due_date) if invoice.due_date else None,
                cc=data.cc or None,
                subject=data.subject,
                message=data.message,
            )
            email_sent = True
        except Exception as e:
            logger.error(f"❌ Failed to email invoice {invoice.invoice_number}: {e}")

        return invoice, view_url, len(data.reminderDays), email_sent

    # ============================================================================
    # BILLING PERIODS
    # ============================================================================

    def _period_projection(self, period: BillingPeriod, organization, organization_id: int) -> dict:
        start, end = period.utc_bounds()
        billable = self.work_orders.get_billable_work_orders(self.db, organization_id, start, end)
        retainer = quantize_money(to_decimal(organization.monthly_retainer) / 2)
        hours_total = sum(
            (line_amount(wo.actual_hours, wo.hourly_rate_snapshot) for wo in billable), ZERO
        )
        return {
            "period": period,
            "projected": quantize_money(retainer + hours_total),
            "work_order_count": len(billable),
            "invoice": self.repo.get_period_invoice(
                self.db, organization_id, period.stored_start()
            ),
        }

    def billing_period_summary(self, user: User, today: Optional[date] = None) -> dict:
        """Projection for the current and next half-month periods"""
        self._require_creator(user)
        organization = self.work_orders.get_organization(self.db, user.organization_id)
        return {
            "current": self._period_projection(
                current_period(today), organization, user.organization_id
            ),
            "next": self._period_projection(next_period(today), organization, user.organization_id),
        }

    def get_or_create_period_draft(
        self, period_start: date, period_end: date, user: User
    ) -> tuple[Invoice, bool]:
        """The draft for exactly this period, creating it with retainer and completed work"""
        self._require_creator(user)
        if period_end < period_start:
            raise HTTPException(status_code=400, detail="Period end must not be before its start")

        period = BillingPeriod(period_start, period_end)
        stored_start, stored_end = period.stored_start(), period.stored_end()
        existing = self.repo.get_period_invoice(
            self.db, user.organization_id, stored_start, stored_end, status="draft"
        )
        if existing:
            return self.get_invoice(existing.id, user), False

        organization = self.work_orders.get_organization(self.db, user.organization_id)
        start, end = period.utc_bounds()
        billable = self.work_orders.get_billable_work_orders(
            self.db, user.organization_id, start, end
        )

        lines = []
        retainer = retainer_line(
            organization.monthly_retainer, label_for_range(period_start, period_end)
        )
        if retainer:
            lines.append(retainer)
        lines.extend(work_order_line(wo) for wo in billable)

        try:
            invoice = self.repo.add_invoice(
                self.db,
                organization_id=user.organization_id,
                invoice_number=self.repo.allocate_invoice_number(self.db, user.organization_id),
                invoice_date=utcnow(),
                period_start=stored_start,
                period_end=stored_end,
                amount_paid=ZERO,
                status="draft",
                created_by_id=user.id,
            )
            self.repo.replace_line_items(self.db, invoice, lines)
            self._apply_totals(invoice, [line["amount"] for line in lines])
            self._attach(invoice.id, [wo.id for wo in billable])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✅ Period draft {invoice.invoice_number} created for {period.label} "
            f"with {len(billable)} work orders"
        )
        return self.get_invoice(invoice.id, user), True

    def add_completed_work(self, invoice_id: int, user: User) -> tuple[Invoice, int]:
        """Append lines for work completed in the invoice's period since it was drafted"""
        self._require_creator(user)
        invoice = self.get_invoice(invoice_id, user)
        self._require_draft(invoice, "edited")
        if invoice.period_start is None or invoice.period_end is None:
            raise HTTPException(status_code=400, detail="Invoice has no billing period")

        start, end = BillingPeriod(
            to_org_date(invoice.period_start), to_org_date(invoice.period_end)
        ).utc_bounds()
        billable = self.work_orders.get_billable_work_orders(
            self.db, user.organization_id, start, end
        )
        if not billable:
            return invoice, 0

        try:
            self.repo.append_line_items(self.db, invoice, [work_order_line(wo) for wo in billable])
            self._apply_totals(invoice, [li.amount for li in invoice.line_items])
            self._attach(invoice.id, [wo.id for wo in billable])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"📝 Added {len(billable)} work orders to invoice {invoice.invoice_number}")
        return self.get_invoice(invoice.id, user), len(billable)

    # ============================================================================
    # PUBLIC VIEW
    # ============================================================================

    def resolve_view_token(self, token: str) -> InvoiceViewToken:
        view_token = self.repo.get_view_token(self.db, token)
        if not view_token:
            raise HTTPException(status_code=404, detail=INVALID_VIEW_LINK_MESSAGE)
        if view_token.expires_at <= utcnow():
            raise HTTPException(status_code=410, detail=EXPIRED_VIEW_LINK_MESSAGE)
        return view_token

    def get_invoice_by_view_token(self, token: str) -> Invoice:
        view_token = self.resolve_view_token(token)
        invoice = self.repo.get_invoice_by_id(
            self.db, view_token.invoice_id, view_token.invoice.organization_id
        )
        if not invoice:
            raise HTTPException(status_code=404, detail=INVALID_VIEW_LINK_MESSAGE)
        return invoice

    def get_line_item_work_orders(self, invoice: Invoice) -> dict[int, WorkOrder]:
        ids = sorted({li.work_order_id for li in invoice.line_items if li.work_order_id})
        return {
            wo.id: wo
            for wo in self.work_orders.get_work_orders_by_ids(self.db, ids, invoice.organization_id)
        }

    def get_service_names(self, work_orders) -> dict[int, str]:
        ids = sorted({sid for wo in work_orders for sid in (wo.scope_service_ids or [])})
        return self.work_orders.get_service_names(self.db, ids)
