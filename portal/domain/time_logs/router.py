"""Time log router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    SeriesTimeLogCreate,
    SeriesTimeLogResult,
    TimeLogCreate,
    TimeLogResponse,
    TimeLogUpdate,
)
from .service import TimeLogService

router = APIRouter(tags=["Time Logs"])


def get_time_log_service(db: Session = Depends(get_db)) -> TimeLogService:
    """Dependency injection for TimeLogService"""
    return TimeLogService(db)


@router.get("/time-logs", response_model=list[TimeLogResponse])
async def list_time_logs(
    work_order_id: Optional[int] = Query(None, alias="workOrderId"),
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    return [TimeLogResponse.from_model(t) for t in service.list_time_logs(current_user, work_order_id)]


@router.get("/time-logs/{time_log_id}", response_model=TimeLogResponse)
async def get_time_log(
    time_log_id: int,
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    return TimeLogResponse.from_model(service.get_time_log(time_log_id, current_user))


@router.post("/time-logs", response_model=TimeLogResponse, status_code=201)
async def create_time_log(
    data: TimeLogCreate,
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    return TimeLogResponse.from_model(service.create_time_log(data, current_user))


@router.put("/time-logs/{time_log_id}", response_model=TimeLogResponse)
async def update_time_log(
    time_log_id: int,
    data: TimeLogUpdate,
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    return TimeLogResponse.from_model(service.update_time_log(time_log_id, data, current_user))


@router.delete("/time-logs/{time_log_id}")
async def delete_time_log(
    time_log_id: int,
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    return service.delete_time_log(time_log_id, current_user)


@router.post("/series/{series_id}/time-logs", response_model=SeriesTimeLogResult, status_code=201)
async def create_series_time_logs(
    series_id: int,
    data: SeriesTimeLogCreate,
    current_user: User = Depends(get_current_user),
    service: TimeLogService = Depends(get_time_log_service),
):
    """Log the same entry against every open work order in a series"""
    series_id, work_order_ids = service.create_series_time_logs(series_id, data, current_user)
    return SeriesTimeLogResult(
        seriesId=series_id, created=len(work_order_ids), workOrderIds=work_order_ids
    )
