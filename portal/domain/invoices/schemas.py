"""Invoice domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...constants import DISCOUNT_TYPES, REMINDER_DAYS
from ...shared.money import to_float
from ...shared.validators import validate_choice, validate_email
from ...utils.timezone import parse_org_date, to_org_date_string
from ..approvals.schemas import ApprovalResponse
from ..payments.schemas import PaymentResponse
from ..time_logs.schemas import TimeLogResponse


class LineItemInput(BaseModel):
    description: str
    quantity: Decimal
    unitPrice: Decimal
    workOrderId: Optional[int] = None
    isRetainer: bool = False

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Line item description is required")
        return v

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError("Quantity must be greater than 0")
        return v

    @field_validator("unitPrice")
    @classmethod
    def validate_unit_price(cls, v):
        if v < 0:
            raise ValueError("Unit price cannot be negative")
        return v


def _check_date(v):
    if v:
        parse_org_date(v)
    return v or None


class InvoiceFields(BaseModel):
    invoiceDate: Optional[str] = None
    dueDate: Optional[str] = None
    periodStart: Optional[str] = None
    periodEnd: Optional[str] = None
    discountType: Optional[str] = None
    discountValue: Optional[Decimal] = None
    notes: Optional[str] = None
    internalNotes: Optional[str] = None

    @field_validator("invoiceDate", "dueDate", "periodStart", "periodEnd")
    @classmethod
    def validate_dates(cls, v):
        return _check_date(v)

    @field_validator("discountType")
    @classmethod
    def validate_discount_type(cls, v):
        return validate_choice(v or None, DISCOUNT_TYPES, "discount type")


class InvoiceCreate(InvoiceFields):
    lineItems: list[LineItemInput] = []
    workOrderIds: list[int] = []


class InvoiceUpdate(InvoiceFields):
    """Omitted collections keep their current contents"""

    lineItems: Optional[list[LineItemInput]] = None
    workOrderIds: Optional[list[int]] = None
    clearDiscount: bool = False


class SendInvoiceRequest(BaseModel):
    recipientEmail: Optional[str] = None
    cc: list[str] = []
    subject: Optional[str] = None
    message: Optional[str] = None
    reminderDays: list[int] = []

    @field_validator("recipientEmail")
    @classmethod
    def validate_recipient(cls, v):
        return validate_email(v) or None

    @field_validator("cc")
    @classmethod
    def validate_cc(cls, v):
        return [validate_email(e) for e in v if e and e.strip()]

    @field_validator("reminderDays")
    @classmethod
    def validate_reminder_days(cls, v):
        for day in v:
            if day not in REMINDER_DAYS:
                raise ValueError(f"Reminders can be scheduled {sorted(REMINDER_DAYS)} days out")
        return sorted(set(v))


class PeriodDraftRequest(BaseModel):
    periodStart: str
    periodEnd: str

    @field_validator("periodStart", "periodEnd")
    @classmethod
    def validate_dates(cls, v):
        parse_org_date(v)
        return v


# ============================================================================
# RESPONSES
# ============================================================================


class LineItemResponse(BaseModel):
    id: int
    description: str
    quantity: float
    unitPrice: float
    amount: float
    workOrderId: Optional[int] = None
    isRetainer: bool
    isCustom: bool
    sortOrder: int

    @classmethod
    def from_model(cls, item) -> "LineItemResponse":
        return cls(
            id=item.id,
            description=item.description,
            quantity=to_float(item.quantity),
            unitPrice=to_float(item.unit_price),
            amount=to_float(item.amount),
            workOrderId=item.work_order_id,
            isRetainer=item.is_retainer,
            isCustom=item.is_custom,
            sortOrder=item.sort_order,
        )


class InvoiceResponse(BaseModel):
    """Schema for invoice response"""

    id: int
    publicId: Optional[str] = None
    invoiceNumber: str
    invoiceDate: Optional[str] = None
    dueDate: Optional[str] = None
    periodStart: Optional[str] = None
    periodEnd: Optional[str] = None
    subtotal: float
    discountType: Optional[str] = None
    discountValue: Optional[float] = None
    discountAmount: float
    total: float
    amountPaid: float
    amountDue: float
    status: str
    notes: Optional[str] = None
    internalNotes: Optional[str] = None
    sentAt: Optional[datetime] = None
    paidAt: Optional[datetime] = None
    createdById: Optional[int] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def fields_from_model(cls, invoice, include_internal: bool = True) -> dict:
        return dict(
            id=invoice.id,
            publicId=invoice.public_id,
            invoiceNumber=invoice.invoice_number,
            invoiceDate=to_org_date_string(invoice.invoice_date),
            dueDate=to_org_date_string(invoice.due_date),
            periodStart=to_org_date_string(invoice.period_start),
            periodEnd=to_org_date_string(invoice.period_end),
            subtotal=to_float(invoice.subtotal),
            discountType=invoice.discount_type,
            discountValue=to_float(invoice.discount_value),
            discountAmount=to_float(invoice.discount_amount),
            total=to_float(invoice.total),
            amountPaid=to_float(invoice.amount_paid),
            amountDue=to_float(invoice.amount_due),
            status=invoice.status,
            notes=invoice.notes,
            internalNotes=invoice.internal_notes if include_internal else None,
            sentAt=invoice.sent_at,
            paidAt=invoice.paid_at,
            createdById=invoice.created_by_id,
            createdAt=invoice.created_at,
        )

    @classmethod
    def from_model(cls, invoice, include_internal: bool = True) -> "InvoiceResponse":
        return cls(**cls.fields_from_model(invoice, include_internal))


class InvoiceDetailResponse(InvoiceResponse):
    lineItems: list[LineItemResponse] = []
    payments: list[PaymentResponse] = []
    workOrderIds: list[int] = []

    @classmethod
    def from_model(cls, invoice, include_internal: bool = True) -> "InvoiceDetailResponse":
        return cls(
            **cls.fields_from_model(invoice, include_internal),
            lineItems=[LineItemResponse.from_model(li) for li in invoice.line_items],
            payments=[PaymentResponse.from_model(p) for p in invoice.payments],
            workOrderIds=sorted(wo.id for wo in invoice.work_orders),
        )


class BillingPeriodResponse(BaseModel):
    key: str
    label: str
    start: str
    end: str

    @classmethod
    def from_period(cls, period) -> "BillingPeriodResponse":
        return cls(
            key=period.key,
            label=period.label,
            start=period.start.isoformat(),
            end=period.end.isoformat(),
        )


class PeriodSummary(BaseModel):
    period: BillingPeriodResponse
    projected: float
    workOrderCount: int
    invoice: Optional[InvoiceResponse] = None


class BillingPeriodSummaryResponse(BaseModel):
    current: PeriodSummary
    next: PeriodSummary


class PeriodDraftResponse(BaseModel):
    invoice: InvoiceDetailResponse
    created: bool


class SendInvoiceResponse(BaseModel):
    invoice: InvoiceResponse
    viewUrl: str
    remindersScheduled: int
    emailSent: bool


# ============================================================================
# PUBLIC VIEW
# ============================================================================


class PublicOrganization(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    paymentTerms: Optional[str] = None


class PublicWorkOrder(BaseModel):
    id: int
    eventName: str
    eventDate: str
    venue: str
    actualHours: float
    scopeServiceNames: list[str] = []
    approvals: list[ApprovalResponse] = []
    timeLogs: list[TimeLogResponse] = []


class PublicLineItem(LineItemResponse):
    workOrder: Optional[PublicWorkOrder] = None


class PublicInvoiceResponse(BaseModel):
    invoice: InvoiceResponse
    organization: PublicOrganization
    lineItems: list[PublicLineItem]
