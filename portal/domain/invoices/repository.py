"""Invoice repository - Database operations for invoices"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from ...config import INVOICE_VIEW_TOKEN_TTL_DAYS
from ...models import Organization, WorkOrder
from ...models_invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceReminder,
    InvoiceViewToken,
)
from ...utils.timezone import utcnow


class InvoiceRepository:
    """
    Invoice persistence. Writes flush only; the service commits.
    """

    @staticmethod
    def allocate_invoice_number(db: Session, organization_id: int) -> str:
        """Atomic increment-and-read of the organization counter"""
        row = db.execute(
            update(Organization)
            .where(Organization.id == organization_id)
            .values(next_invoice_number=Organization.next_invoice_number + 1)
            .returning(Organization.next_invoice_number, Organization.invoice_prefix)
            .execution_options(synchronize_session=False)
        ).first()
        if row is None:
            raise LookupError(f"Organization {organization_id} not found")
        allocated = row.next_invoice_number - 1
        return f"{row.invoice_prefix}-{allocated:05d}"

    @staticmethod
    def get_invoices(
        db: Session, organization_id: int, status: Optional[str] = None
    ) -> list[Invoice]:
        query = db.query(Invoice).filter(Invoice.organization_id == organization_id)
        if status:
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()

    @staticmethod
    def get_invoice_by_id(db: Session, invoice_id: int, organization_id: int) -> Optional[Invoice]:
        return (
            db.query(Invoice)
            .options(selectinload(Invoice.line_items), selectinload(Invoice.payments))
            .filter(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def get_period_invoice(
        db: Session,
        organization_id: int,
        period_start: datetime,
        period_end: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> Optional[Invoice]:
        query = db.query(Invoice).filter(
            Invoice.organization_id == organization_id,
            Invoice.period_start == period_start,
        )
        if period_end is not None:
            query = query.filter(Invoice.period_end == period_end)
        if status:
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.id.asc()).first()

    @staticmethod
    def add_invoice(db: Session, **fields) -> Invoice:
        invoice = Invoice(**fields)
        db.add(invoice)
        db.flush()
        return invoice

    @staticmethod
    def replace_line_items(db: Session, invoice: Invoice, items: list[dict]) -> list[InvoiceLineItem]:
        """Drop the current rows and write the new set in order"""
        invoice.line_items.clear()
        db.flush()
        for index, item in enumerate(items):
            invoice.line_items.append(InvoiceLineItem(sort_order=index, **item))
        db.flush()
        return invoice.line_items

    @staticmethod
    def append_line_items(db: Session, invoice: Invoice, items: list[dict]) -> None:
        start = max((li.sort_order for li in invoice.line_items), default=-1) + 1
        for offset, item in enumerate(items):
            invoice.line_items.append(InvoiceLineItem(sort_order=start + offset, **item))
        db.flush()

    @staticmethod
    def attach_work_orders(db: Session, invoice_id: int, work_order_ids: list[int]) -> int:
        """completed -> invoiced, only rows not already on an invoice"""
        if not work_order_ids:
            return 0
        result = db.execute(
            update(WorkOrder)
            .where(
                WorkOrder.id.in_(work_order_ids),
                WorkOrder.status == "completed",
                WorkOrder.invoice_id.is_(None),
            )
            .values(status="invoiced", invoice_id=invoice_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def release_work_orders(db: Session, invoice_id: int, work_order_ids: Optional[list[int]] = None) -> int:
        """invoiced -> completed and unlinked"""
        stmt = update(WorkOrder).where(WorkOrder.invoice_id == invoice_id)
        if work_order_ids is not None:
            if not work_order_ids:
                return 0
            stmt = stmt.where(WorkOrder.id.in_(work_order_ids))
        result = db.execute(
            stmt.values(status="completed", invoice_id=None).execution_options(
                synchronize_session=False
            )
        )
        return result.rowcount

    @staticmethod
    def mark_work_orders_paid(db: Session, invoice_id: int) -> int:
        result = db.execute(
            update(WorkOrder)
            .where(WorkOrder.invoice_id == invoice_id, WorkOrder.status == "invoiced")
            .values(status="paid")
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def delete_invoice(db: Session, invoice: Invoice) -> None:
        db.delete(invoice)
        db.flush()

    # ------------------------------------------------------------------
    # View tokens
    # ------------------------------------------------------------------

    @staticmethod
    def create_view_token(db: Session, invoice_id: int) -> InvoiceViewToken:
        token = InvoiceViewToken(
            token=secrets.token_hex(32),
            invoice_id=invoice_id,
            expires_at=utcnow() + timedelta(days=INVOICE_VIEW_TOKEN_TTL_DAYS),
        )
        db.add(token)
        db.flush()
        return token

    @staticmethod
    def get_view_token(db: Session, token: str) -> Optional[InvoiceViewToken]:
        return db.query(InvoiceViewToken).filter(InvoiceViewToken.token == token).first()

    @staticmethod
    def latest_view_token(
        db: Session, invoice_id: int, now: Optional[datetime] = None
    ) -> Optional[InvoiceViewToken]:
        return (
            db.query(InvoiceViewToken)
            .filter(
                InvoiceViewToken.invoice_id == invoice_id,
                InvoiceViewToken.expires_at > (now or utcnow()),
            )
            .order_by(InvoiceViewToken.expires_at.desc())
            .first()
        )

    @staticmethod
    def delete_expired_view_tokens(db: Session, now: datetime) -> int:
        return (
            db.query(InvoiceViewToken)
            .filter(InvoiceViewToken.expires_at < now)
            .delete(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    @staticmethod
    def add_reminder(db: Session, **fields) -> InvoiceReminder:
        reminder = InvoiceReminder(**fields)
        db.add(reminder)
        db.flush()
        return reminder

    @staticmethod
    def cancel_pending_reminders(db: Session, invoice_id: int) -> int:
        result = db.execute(
            update(InvoiceReminder)
            .where(
                InvoiceReminder.invoice_id == invoice_id,
                InvoiceReminder.sent_at.is_(None),
                InvoiceReminder.cancelled.is_(False),
            )
            .values(cancelled=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def get_due_reminders(db: Session, now: datetime) -> list[InvoiceReminder]:
        return (
            db.query(InvoiceReminder)
            .filter(
                InvoiceReminder.scheduled_date <= now,
                InvoiceReminder.sent_at.is_(None),
                InvoiceReminder.cancelled.is_(False),
            )
            .order_by(InvoiceReminder.scheduled_date.asc())
            .all()
        )

    @staticmethod
    def get_overdue_invoices(db: Session, now: datetime) -> list[Invoice]:
        return (
            db.query(Invoice)
            .filter(
                Invoice.status == "sent",
                Invoice.due_date.isnot(None),
                Invoice.due_date < now,
            )
            .all()
        )
