"""Approval routers - public signing links and authenticated sign-off"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import client_ip, create_rate_limiter
from ..change_orders.schemas import ChangeOrderResponse
from ..work_orders.schemas import WorkOrderDetailResponse
from .schemas import (
    ApprovalDataResponse,
    ApprovalResponse,
    ApproverOption,
    BulkSignRequest,
    BulkSignResponse,
    RedeemApprovalRequest,
    RedeemApprovalResponse,
)
from .service import ApprovalService, RequestContext

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/approve", tags=["Public Approvals"])
router = APIRouter(prefix="/approvals", tags=["Approvals"])

rate_limit_approval_views = create_rate_limiter(limit=60, window_seconds=60, key_prefix="approve_view")
rate_limit_approval_submits = create_rate_limiter(
    limit=10, window_seconds=60, key_prefix="approve_submit"
)


def get_approval_service(db: Session = Depends(get_db)) -> ApprovalService:
    """Dependency injection for ApprovalService"""
    return ApprovalService(db)


def request_context(request: Request) -> RequestContext:
    return RequestContext(ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"))


# ============================================================================
# PUBLIC (token) ENDPOINTS
# ============================================================================


@public_router.get("/{token}", response_model=ApprovalDataResponse)
async def get_approval_data(
    token: str,
    _: None = Depends(rate_limit_approval_views),
    service: ApprovalService = Depends(get_approval_service),
):
    """Load the signing page for a work order or change order"""
    data = service.get_approval_data(token)
    work_order = data["work_order"]
    change_order = data["change_order"]
    return ApprovalDataResponse(
        token=data["token"].token,
        expiresAt=data["token"].expires_at,
        workOrder=WorkOrderDetailResponse.from_model(
            work_order, include_internal=False, service_names=data["service_names"]
        ).model_dump(mode="json", exclude={"approvals", "timeLogs"}),
        changeOrder=ChangeOrderResponse.from_model(change_order, work_order.hourly_rate_snapshot)
        if change_order
        else None,
        approvers=[ApproverOption(id=u.id, name=u.full_name, title=u.title) for u in data["approvers"]],
        organizationName=data["organization"].name if data["organization"] else "",
    )


@public_router.post("/{token}", response_model=RedeemApprovalResponse)
async def redeem_approval(
    token: str,
    data: RedeemApprovalRequest,
    request: Request,
    _: None = Depends(rate_limit_approval_submits),
    service: ApprovalService = Depends(get_approval_service),
):
    """Sign with a registered approver or a typed name"""
    approval, work_order, change_order = service.redeem(token, data, request_context(request))
    return RedeemApprovalResponse(
        approval=ApprovalResponse.from_model(approval),
        workOrderId=work_order.id,
        workOrderStatus=work_order.status,
        changeOrderId=change_order.id if change_order else None,
    )


# ============================================================================
# AUTHENTICATED ENDPOINTS
# ============================================================================


@router.get("", response_model=list[ApprovalResponse])
async def list_approvals(
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    return [ApprovalResponse.from_model(a) for a in service.list_approvals(current_user)]


@router.post("/bulk", response_model=BulkSignResponse)
async def bulk_sign(
    data: BulkSignRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Sign several pending work orders with one signature"""
    approvals = service.bulk_sign(data, current_user, request_context(request))
    return BulkSignResponse(
        approvals=[ApprovalResponse.from_model(a) for a in approvals],
        workOrderIds=[a.work_order_id for a in approvals],
    )


@router.get("/change-orders/{change_order_id}", response_model=ApprovalResponse)
async def get_change_order_approval(
    change_order_id: int,
    current_user: User = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    return ApprovalResponse.from_model(
        service.get_change_order_approval(change_order_id, current_user)
    )
