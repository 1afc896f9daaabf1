"""Invoice routers - staff management and the public view link"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ... import permissions
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...utils.timezone import to_org_date_string
from ..approvals.schemas import ApprovalResponse
from ..time_logs.schemas import TimeLogResponse
from .pdf import render_invoice_pdf
from .schemas import (
    BillingPeriodResponse,
    BillingPeriodSummaryResponse,
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceResponse,
    InvoiceUpdate,
    LineItemResponse,
    PeriodDraftRequest,
    PeriodDraftResponse,
    PeriodSummary,
    PublicInvoiceResponse,
    PublicLineItem,
    PublicOrganization,
    PublicWorkOrder,
    SendInvoiceRequest,
    SendInvoiceResponse,
)
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])
public_router = APIRouter(prefix="/invoice", tags=["Public Invoices"])

rate_limit_invoice_views = create_rate_limiter(limit=60, window_seconds=60, key_prefix="invoice_view")


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


def _detail(invoice, user: User) -> InvoiceDetailResponse:
    return InvoiceDetailResponse.from_model(invoice, include_internal=permissions.is_vendor(user.role))


def _pdf_response(invoice) -> Response:
    return Response(
        content=render_invoice_pdf(invoice),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'},
    )


def _period_summary(entry: dict) -> PeriodSummary:
    return PeriodSummary(
        period=BillingPeriodResponse.from_period(entry["period"]),
        projected=float(entry["projected"]),
        workOrderCount=entry["work_order_count"],
        invoice=InvoiceResponse.from_model(entry["invoice"]) if entry["invoice"] else None,
    )


# ============================================================================
# BILLING PERIODS
# ============================================================================


@router.get("/billing-periods", response_model=BillingPeriodSummaryResponse)
async def get_billing_period_summary(
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Projected totals for the current and next half-month periods"""
    summary = service.billing_period_summary(current_user)
    return BillingPeriodSummaryResponse(
        current=_period_summary(summary["current"]),
        next=_period_summary(summary["next"]),
    )


@router.post("/period-draft", response_model=PeriodDraftResponse)
async def get_or_create_period_draft(
    data: PeriodDraftRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, created = service.get_or_create_period_draft(
        date.fromisoformat(data.periodStart), date.fromisoformat(data.periodEnd), current_user
    )
    return PeriodDraftResponse(invoice=_detail(invoice, current_user), created=created)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    include_internal = permissions.is_vendor(current_user.role)
    return [
        InvoiceResponse.from_model(inv, include_internal)
        for inv in service.list_invoices(current_user, status)
    ]


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return _detail(service.get_invoice(invoice_id, current_user), current_user)


@router.post("", response_model=InvoiceDetailResponse, status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create a draft invoice from line items and completed work orders"""
    return _detail(service.create_invoice(data, current_user), current_user)


@router.put("/{invoice_id}", response_model=InvoiceDetailResponse)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return _detail(service.update_invoice(invoice_id, data, current_user), current_user)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.delete_invoice(invoice_id, current_user)


@router.post("/{invoice_id}/add-completed-work", response_model=InvoiceDetailResponse)
async def add_completed_work(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, _added = service.add_completed_work(invoice_id, current_user)
    return _detail(invoice, current_user)


@router.post("/{invoice_id}/send", response_model=SendInvoiceResponse)
async def send_invoice(
    invoice_id: int,
    data: Optional[SendInvoiceRequest] = None,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, view_url, reminders, email_sent = await service.send_invoice(
        invoice_id, data or SendInvoiceRequest(), current_user
    )
    return SendInvoiceResponse(
        invoice=InvoiceResponse.from_model(invoice),
        viewUrl=view_url,
        remindersScheduled=reminders,
        emailSent=email_sent,
    )


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return _pdf_response(service.get_invoice(invoice_id, current_user))


# ============================================================================
# PUBLIC (view token) ENDPOINTS
# ============================================================================


@public_router.get("/{token}", response_model=PublicInvoiceResponse)
async def get_public_invoice(
    token: str,
    _: None = Depends(rate_limit_invoice_views),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Read-only invoice with the work behind each line"""
    invoice = service.get_invoice_by_view_token(token)
    work_orders = service.get_line_item_work_orders(invoice)
    names = service.get_service_names(work_orders.values())

    line_items = []
    for item in invoice.line_items:
        work_order = work_orders.get(item.work_order_id)
        public_work_order = None
        if work_order:
            public_work_order = PublicWorkOrder(
                id=work_order.id,
                eventName=work_order.event_name,
                eventDate=to_org_date_string(work_order.event_date),
                venue=work_order.venue_other or work_order.venue,
                actualHours=float(work_order.actual_hours or 0),
                scopeServiceNames=[
                    names[sid] for sid in (work_order.scope_service_ids or []) if sid in names
                ],
                approvals=[ApprovalResponse.from_model(a) for a in work_order.approvals],
                timeLogs=[TimeLogResponse.from_model(t) for t in work_order.time_logs],
            )
        line_items.append(
            PublicLineItem(
                **LineItemResponse.from_model(item).model_dump(), workOrder=public_work_order
            )
        )

    organization = invoice.organization
    return PublicInvoiceResponse(
        invoice=InvoiceResponse.from_model(invoice, include_internal=False),
        organization=PublicOrganization(
            name=organization.name,
            address=organization.address,
            phone=organization.phone,
            email=organization.email,
            paymentTerms=organization.payment_terms,
        ),
        lineItems=line_items,
    )


@public_router.get("/{token}/pdf")
async def download_public_invoice_pdf(
    token: str,
    _: None = Depends(rate_limit_invoice_views),
    service: InvoiceService = Depends(get_invoice_service),
):
    return _pdf_response(service.get_invoice_by_view_token(token))
