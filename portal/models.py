import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    invoice_prefix = Column(String(20), nullable=False, default="INV")
    # Only ever advanced through an atomic UPDATE ... RETURNING
    next_invoice_number = Column(Integer, nullable=False, default=1)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    monthly_retainer = Column(Numeric(10, 2), nullable=True)
    payment_terms = Column(String(100), default="Due on Receipt")
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    users = relationship("User", back_populates="organization")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Linked on first sign-in; admins pre-create users by email
    firebase_uid = Column(String(255), unique=True, index=True, nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    title = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), nullable=False, default="client_viewer")
    can_pay = Column(Boolean, default=False, nullable=False)
    is_approver = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization", back_populates="users")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email


class ServiceTemplate(Base):
    """Catalogue entry referenced by a work order's scope"""

    __tablename__ = "service_templates"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class WorkOrderSeries(Base):
    __tablename__ = "work_order_series"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    allow_bulk_approval = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    work_orders = relationship("WorkOrder", back_populates="series")


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    series_id = Column(Integer, ForeignKey("work_order_series.id"), nullable=True, index=True)

    # Event
    event_name = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False)  # UTC, anchored at local noon for date-only
    start_time = Column(DateTime, nullable=True)  # UTC
    end_time = Column(DateTime, nullable=True)  # UTC
    venue = Column(String(50), nullable=False)
    venue_other = Column(String(255), nullable=True)
    event_type = Column(String(50), nullable=False)
    event_type_other = Column(String(255), nullable=True)

    # People
    requested_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    requested_by_name = Column(String(255), nullable=True)
    authorized_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Scope
    scope_service_ids = Column(JSON, default=list)
    custom_scope = Column(Text, nullable=True)

    # Estimate (hours)
    needs_pre_approval = Column(Boolean, default=True, nullable=False)
    estimate_type = Column(String(20), nullable=True)  # range, fixed, not_to_exceed
    estimated_hours_min = Column(Numeric(5, 2), nullable=True)
    estimated_hours_max = Column(Numeric(5, 2), nullable=True)
    estimated_hours_fixed = Column(Numeric(5, 2), nullable=True)
    estimated_hours_nte = Column(Numeric(5, 2), nullable=True)

    # Derived from time logs on every write
    actual_hours = Column(Numeric(6, 2), nullable=False, default=0)
    # Captured at creation; organization rate changes never touch it
    hourly_rate_snapshot = Column(Numeric(10, 2), nullable=False)

    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    status = Column(String(30), nullable=False, default="draft", index=True)

    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    series = relationship("WorkOrderSeries", back_populates="work_orders")
    requested_by = relationship("User", foreign_keys=[requested_by_id])
    authorized_approver = relationship("User", foreign_keys=[authorized_approver_id])
    time_logs = relationship(
        "TimeLog", back_populates="work_order", cascade="all, delete-orphan", order_by="TimeLog.date"
    )
    change_orders = relationship(
        "ChangeOrder", back_populates="work_order", cascade="all, delete-orphan"
    )
    approvals = relationship("Approval", back_populates="work_order", cascade="all, delete-orphan")
    incident_reports = relationship(
        "IncidentReport", back_populates="work_order", cascade="all, delete-orphan"
    )
    invoice = relationship("Invoice", back_populates="work_orders")


class ApprovalToken(Base):
    """Single-use bearer capability to sign one work order or one change order"""

    __tablename__ = "approval_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    work_order_id = Column(
        Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    change_order_id = Column(
        Integer, ForeignKey("change_orders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Approval(Base):
    """Immutable signature record"""

    __tablename__ = "approvals"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approver_name = Column(String(255), nullable=False)
    approver_title = Column(String(255), nullable=True)
    signature_key = Column(String(500), nullable=False)  # R2 object key
    signed_at = Column(DateTime, nullable=False)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(Text, nullable=True)
    device_info = Column(JSON, nullable=True)
    work_order_hash = Column(String(64), nullable=False)
    is_change_order = Column(Boolean, default=False, nullable=False)
    change_order_id = Column(Integer, ForeignKey("change_orders.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    work_order = relationship("WorkOrder", back_populates="approvals")
    approver = relationship("User")


class ChangeOrder(Base):
    __tablename__ = "change_orders"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    additional_hours = Column(Numeric(5, 2), nullable=False)
    reason = Column(String(50), nullable=False)
    reason_other = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    # Plain column: approvals.change_order_id already references this table
    approval_id = Column(Integer, nullable=True)
    requested_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    work_order = relationship("WorkOrder", back_populates="change_orders")
    approval = relationship(
        "Approval",
        primaryjoin="ChangeOrder.approval_id == Approval.id",
        foreign_keys=[approval_id],
        viewonly=True,
    )


class TimeLog(Base):
    __tablename__ = "time_logs"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False)  # UTC, anchored at local noon
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    hours = Column(Numeric(5, 2), nullable=False)
    category = Column(String(30), nullable=False)
    post_production_types = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    logged_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    work_order = relationship("WorkOrder", back_populates="time_logs")
    logged_by = relationship("User")


class IncidentReport(Base):
    __tablename__ = "incident_reports"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    incident_type = Column(String(30), nullable=False)
    incident_type_other = Column(String(255), nullable=True)
    root_cause = Column(String(30), nullable=False)
    mitigation = Column(Text, nullable=False)
    outcome = Column(String(60), nullable=False)
    notes = Column(Text, nullable=True)
    client_notified = Column(Boolean, default=False, nullable=False)
    client_notified_at = Column(DateTime, nullable=True)
    reported_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    work_order = relationship("WorkOrder", back_populates="incident_reports")
    reported_by = relationship("User")
