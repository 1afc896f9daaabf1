"""
Invoice, Payment and invoice-collaboration models
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class Invoice(Base):
    """Billing document for one organization"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # {prefix}-{00001}; allocated atomically from organizations.next_invoice_number
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    invoice_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=True)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)

    # Amounts
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_type = Column(String(20), nullable=True)  # flat, percentage
    discount_value = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    amount_due = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="draft", index=True)
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")
    created_by = relationship("User")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.sort_order",
    )
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")
    work_orders = relationship("WorkOrder", back_populates="invoice")
    view_tokens = relationship(
        "InvoiceViewToken", back_populates="invoice", cascade="all, delete-orphan"
    )
    reminders = relationship("InvoiceReminder", back_populates="invoice", cascade="all, delete-orphan")
    comments = relationship("InvoiceComment", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)  # quantity * unit_price
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True)
    is_retainer = Column(Boolean, default=False, nullable=False)
    is_custom = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")
    work_order = relationship("WorkOrder")


class Payment(Base):
    """Append-only record of a processor payment attempt"""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    # Replay key for webhook deliveries
    processor_payment_id = Column(String(255), unique=True, nullable=False, index=True)
    checkout_session_id = Column(String(255), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False)  # pending, succeeded, failed
    receipt_url = Column(String(500), nullable=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    invoice = relationship("Invoice", back_populates="payments")


class InvoiceViewToken(Base):
    """Read-only public link to an invoice"""

    __tablename__ = "invoice_view_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="view_tokens")


class InvoiceReminder(Base):
    __tablename__ = "invoice_reminders"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    reminder_type = Column(String(30), nullable=False)  # e.g. "3_day"
    scheduled_date = Column(DateTime, nullable=False)
    recipient_email = Column(String(255), nullable=False)
    cc_emails = Column(JSON, default=list)
    sent_at = Column(DateTime, nullable=True)
    cancelled = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="reminders")


class InvoiceComment(Base):
    __tablename__ = "invoice_comments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    line_item_id = Column(Integer, ForeignKey("invoice_line_items.id"), nullable=True)
    author_name = Column(String(255), nullable=False)
    author_email = Column(String(255), nullable=True)
    author_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False)
    parent_id = Column(Integer, ForeignKey("invoice_comments.id"), nullable=True)
    is_internal = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="comments")
