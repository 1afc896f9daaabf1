"""Payment repository - append-only payment rows and invoice crediting"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models_invoice import Invoice, Payment


class PaymentRepository:
    """Writes flush only; the service commits"""

    @staticmethod
    def get_by_processor_id(db: Session, processor_payment_id: str) -> Optional[Payment]:
        return (
            db.query(Payment).filter(Payment.processor_payment_id == processor_payment_id).first()
        )

    @staticmethod
    def list_for_invoice(db: Session, invoice_id: int) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.invoice_id == invoice_id)
            .order_by(Payment.created_at.asc(), Payment.id.asc())
            .all()
        )

    @staticmethod
    def add_payment(db: Session, **fields) -> Payment:
        """Raises IntegrityError on flush when the processor id was already recorded"""
        payment = Payment(**fields)
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def promote_to_succeeded(db: Session, payment_id: int, **fields) -> bool:
        """pending/failed -> succeeded, at most once"""
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status != "succeeded")
            .values(status="succeeded", **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def set_unsettled_status(db: Session, payment_id: int, status: str) -> bool:
        """Move between pending and failed; a succeeded row never goes back"""
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status != "succeeded")
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def credit_invoice(db: Session, invoice_id: int, amount: Decimal) -> tuple[Decimal, Decimal]:
        """amount_paid += amount in SQL; returns (amount_paid, total)"""
        row = db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(amount_paid=Invoice.amount_paid + amount)
            .returning(Invoice.amount_paid, Invoice.total)
            .execution_options(synchronize_session=False)
        ).first()
        return Decimal(str(row.amount_paid)), Decimal(str(row.total))

    @staticmethod
    def set_amount_due(db: Session, invoice_id: int, amount_due: Decimal, paid_at=None) -> None:
        """Store the new balance; paid_at also moves the invoice to paid"""
        values = {"amount_due": amount_due}
        if paid_at is not None:
            values.update(status="paid", paid_at=paid_at)
        db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
