"""Series router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import permissions
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..work_orders.schemas import WorkOrderResponse
from ..work_orders.service import approval_url
from .schemas import (
    AssignToSeriesRequest,
    SeriesCreate,
    SeriesDetailResponse,
    SeriesResponse,
    SubmitSeriesResponse,
    SubmittedWorkOrder,
)
from .service import SeriesService

router = APIRouter(tags=["Series"])


def get_series_service(db: Session = Depends(get_db)) -> SeriesService:
    """Dependency injection for SeriesService"""
    return SeriesService(db)


@router.get("/series", response_model=list[SeriesResponse])
async def list_series(
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    return [SeriesResponse.from_model(s) for s in service.list_series(current_user)]


@router.get("/series/{series_id}", response_model=SeriesDetailResponse)
async def get_series(
    series_id: int,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    return SeriesDetailResponse.from_model(
        service.get_series(series_id, current_user),
        include_internal=permissions.is_vendor(current_user.role),
    )


@router.post("/series", response_model=SeriesDetailResponse, status_code=201)
async def create_series(
    data: SeriesCreate,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    """Create a series and one work order per date"""
    return SeriesDetailResponse.from_model(service.create_series(data, current_user))


@router.post("/series/{series_id}/submit", response_model=SubmitSeriesResponse)
async def submit_series_for_approval(
    series_id: int,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    issued = service.submit_series_for_approval(series_id, current_user)
    return SubmitSeriesResponse(
        seriesId=series_id,
        submitted=[
            SubmittedWorkOrder(workOrderId=wo_id, token=token, approvalUrl=approval_url(token))
            for wo_id, token in issued
        ],
    )


@router.delete("/series/{series_id}")
async def delete_series(
    series_id: int,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    return service.delete_series(series_id, current_user)


@router.post("/work-orders/{work_order_id}/series", response_model=WorkOrderResponse)
async def assign_to_series(
    work_order_id: int,
    data: AssignToSeriesRequest,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    return WorkOrderResponse.from_model(service.assign_to_series(work_order_id, data, current_user))


@router.delete("/work-orders/{work_order_id}/series", response_model=WorkOrderResponse)
async def remove_from_series(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: SeriesService = Depends(get_series_service),
):
    return WorkOrderResponse.from_model(service.remove_from_series(work_order_id, current_user))
