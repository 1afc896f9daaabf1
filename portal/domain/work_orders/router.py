"""Work order router - FastAPI endpoints for work order operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import permissions
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    CompleteWorkOrderRequest,
    SubmitForApprovalResponse,
    WorkOrderCreate,
    WorkOrderDetailResponse,
    WorkOrderResponse,
    WorkOrderUpdate,
)
from .service import WorkOrderService, approval_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/work-orders", tags=["Work Orders"])


def get_work_order_service(db: Session = Depends(get_db)) -> WorkOrderService:
    """Dependency injection for WorkOrderService"""
    return WorkOrderService(db)


def detail_response(service: WorkOrderService, work_order, user: User) -> WorkOrderDetailResponse:
    return WorkOrderDetailResponse.from_model(
        work_order,
        include_internal=permissions.is_vendor(user.role),
        service_names=service.get_service_names(work_order),
    )


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[WorkOrderResponse])
async def list_work_orders(
    status: Optional[str] = Query(None),
    series_id: Optional[int] = Query(None, alias="seriesId"),
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    """List the organization's work orders, newest event first"""
    include_internal = permissions.is_vendor(current_user.role)
    return [
        WorkOrderResponse.from_model(wo, include_internal)
        for wo in service.list_work_orders(current_user, status, series_id)
    ]


@router.get("/billable", response_model=list[WorkOrderResponse])
async def list_billable_work_orders(
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    """Completed work orders not yet on an invoice"""
    include_internal = permissions.is_vendor(current_user.role)
    return [WorkOrderResponse.from_model(wo, include_internal) for wo in service.list_billable(current_user)]


@router.get("/{work_order_id}", response_model=WorkOrderDetailResponse)
async def get_work_order(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    work_order = service.get_work_order(work_order_id, current_user)
    return detail_response(service, work_order, current_user)


@router.post("", response_model=WorkOrderDetailResponse, status_code=201)
async def create_work_order(
    data: WorkOrderCreate,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    work_order = service.create_work_order(data, current_user)
    return detail_response(service, work_order, current_user)


@router.put("/{work_order_id}", response_model=WorkOrderDetailResponse)
async def update_work_order(
    work_order_id: int,
    data: WorkOrderUpdate,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    work_order = service.update_work_order(work_order_id, data, current_user)
    return detail_response(service, work_order, current_user)


@router.delete("/{work_order_id}")
async def delete_work_order(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    return service.delete_work_order(work_order_id, current_user)


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================


@router.post("/{work_order_id}/submit", response_model=SubmitForApprovalResponse)
async def submit_for_approval(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    """Move a draft to pending_approval and issue its signing link"""
    work_order, token = service.submit_for_approval(work_order_id, current_user)
    return SubmitForApprovalResponse(
        workOrder=WorkOrderResponse.from_model(work_order),
        token=token,
        approvalUrl=approval_url(token),
    )


@router.post("/{work_order_id}/cancel-approval", response_model=WorkOrderResponse)
async def cancel_approval(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    return WorkOrderResponse.from_model(service.cancel_approval(work_order_id, current_user))


@router.post("/{work_order_id}/start", response_model=WorkOrderResponse)
async def start_work_order(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    return WorkOrderResponse.from_model(service.start(work_order_id, current_user))


@router.post("/{work_order_id}/complete", response_model=WorkOrderResponse)
async def complete_work_order(
    work_order_id: int,
    data: Optional[CompleteWorkOrderRequest] = None,
    current_user: User = Depends(get_current_user),
    service: WorkOrderService = Depends(get_work_order_service),
):
    notes = data.completionNotes if data else None
    return WorkOrderResponse.from_model(service.mark_complete(work_order_id, current_user, notes))
