"""Time log service - hours against work orders and the actual-hours rollup"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import TimeLog, User, WorkOrder
from ...shared.money import quantize_money
from ...utils.timezone import parse_org_datetime, to_org_date_string, to_org_time_string
from ..series.repository import SeriesRepository
from ..work_orders.lifecycle import accepts_time_logs
from ..work_orders.repository import WorkOrderRepository
from .repository import TimeLogRepository
from .schemas import SeriesTimeLogCreate, TimeLogCreate, TimeLogUpdate

logger = logging.getLogger(__name__)


def derive_hours(start, end) -> Decimal:
    """Duration between two stored timestamps, in hours"""
    if end <= start:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    seconds = Decimal(int((end - start).total_seconds()))
    return quantize_money(seconds / Decimal(3600))


def resolve_entry(
    date_str: str,
    start_time: Optional[str],
    end_time: Optional[str],
    hours: Optional[Decimal],
) -> dict:
    """Local date/times to stored columns; hours fall back to end - start"""
    start = parse_org_datetime(date_str, start_time) if start_time else None
    end = parse_org_datetime(date_str, end_time) if end_time else None
    if hours is None:
        if start is None or end is None:
            raise HTTPException(
                status_code=400, detail="Hours are required unless start and end times are given"
            )
        hours = derive_hours(start, end)
    elif start is not None and end is not None and end <= start:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    return {
        "date": parse_org_datetime(date_str),
        "start_time": start,
        "end_time": end,
        "hours": quantize_money(hours),
    }


def hours_follow_clock(time_log) -> bool:
    """True when the stored hours are the stored start-end span, or there is no span"""
    if time_log.start_time is None or time_log.end_time is None:
        return True
    if time_log.end_time <= time_log.start_time:
        return False
    return derive_hours(time_log.start_time, time_log.end_time) == quantize_money(time_log.hours)


def post_production_types_for(category: str, types: Optional[list[str]]) -> Optional[list[str]]:
    if category != "post_production":
        return None
    return types or None


class TimeLogService:
    """Service layer for time logs"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TimeLogRepository()
        self.work_orders = WorkOrderRepository()
        self.series = SeriesRepository()

    def _require_staff(self, user: User) -> None:
        if not permissions.can_create_time_logs(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def _get_work_order(self, work_order_id: int, user: User) -> WorkOrder:
        work_order = self.work_orders.get_work_order_by_id(
            self.db, work_order_id, user.organization_id
        )
        if not work_order:
            raise HTTPException(status_code=404, detail="Work order not found")
        return work_order

    @staticmethod
    def _check_open(work_order: WorkOrder) -> None:
        if not accepts_time_logs(work_order.status):
            raise HTTPException(
                status_code=409, detail="Time cannot be logged against invoiced or paid work orders"
            )

    def _commit_with_rollup(self, work_order_ids: list[int]) -> None:
        """Recompute actual hours inside the same transaction as the log write"""
        try:
            for work_order_id in set(work_order_ids):
                self.work_orders.recompute_actual_hours(self.db, work_order_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_time_logs(self, user: User, work_order_id: Optional[int] = None) -> list[TimeLog]:
        if work_order_id is not None:
            self._get_work_order(work_order_id, user)
        return self.repo.get_time_logs(self.db, user.organization_id, work_order_id)

    def get_time_log(self, time_log_id: int, user: User) -> TimeLog:
        time_log = self.repo.get_time_log_by_id(self.db, time_log_id, user.organization_id)
        if not time_log:
            raise HTTPException(status_code=404, detail="Time log not found")
        return time_log

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_time_log(self, data: TimeLogCreate, user: User) -> TimeLog:
        self._require_staff(user)
        work_order = self._get_work_order(data.workOrderId, user)
        self._check_open(work_order)

        fields = resolve_entry(data.date, data.startTime, data.endTime, data.hours)
        try:
            time_log = self.repo.add_time_log(
                self.db,
                work_order_id=work_order.id,
                category=data.category,
                post_production_types=post_production_types_for(
                    data.category, data.postProductionTypes
                ),
                description=data.description,
                notes=data.notes,
                logged_by_id=user.id,
                **fields,
            )
        except Exception:
            self.db.rollback()
            raise
        self._commit_with_rollup([work_order.id])

        self.db.refresh(time_log)
        logger.info(f"⏱️ Logged {time_log.hours}h ({time_log.category}) on work order {work_order.id}")
        return time_log

    def update_time_log(self, time_log_id: int, data: TimeLogUpdate, user: User) -> TimeLog:
        self._require_staff(user)
        time_log = self.get_time_log(time_log_id, user)
        self._check_open(time_log.work_order)

        # Only-times edits keep the stored local date
        date_str = data.date or to_org_date_string(time_log.date)
        start = data.startTime
        if start is None:
            start = to_org_time_string(time_log.start_time)
        end = data.endTime
        if end is None:
            end = to_org_time_string(time_log.end_time)
        # Hours stay as entered unless both clock times are replaced on a log
        # whose hours were the clock span
        hours = data.hours
        if hours is None:
            hours = time_log.hours
            if data.startTime and data.endTime and hours_follow_clock(time_log):
                hours = None
        fields = resolve_entry(date_str, start or None, end or None, hours)

        category = data.category or time_log.category
        types = (
            data.postProductionTypes
            if data.postProductionTypes is not None
            else time_log.post_production_types
        )

        time_log.date = fields["date"]
        time_log.start_time = fields["start_time"]
        time_log.end_time = fields["end_time"]
        time_log.hours = fields["hours"]
        time_log.category = category
        time_log.post_production_types = post_production_types_for(category, types)
        if data.description is not None:
            time_log.description = data.description
        if data.notes is not None:
            time_log.notes = data.notes

        self._commit_with_rollup([time_log.work_order_id])
        self.db.refresh(time_log)
        logger.info(f"✏️ Time log {time_log.id} updated")
        return time_log

    def delete_time_log(self, time_log_id: int, user: User) -> dict:
        self._require_staff(user)
        time_log = self.get_time_log(time_log_id, user)
        self._check_open(time_log.work_order)

        work_order_id = time_log.work_order_id
        try:
            self.repo.delete_time_log(self.db, time_log)
        except Exception:
            self.db.rollback()
            raise
        self._commit_with_rollup([work_order_id])

        logger.info(f"🗑️ Time log {time_log_id} deleted from work order {work_order_id}")
        return {"message": "Time log deleted"}

    def create_series_time_logs(
        self, series_id: int, data: SeriesTimeLogCreate, user: User
    ) -> tuple[int, list[int]]:
        """One entry per open series work order, dated on that order's event"""
        self._require_staff(user)
        series = self.series.get_series_by_id(self.db, series_id, user.organization_id)
        if not series:
            raise HTTPException(status_code=404, detail="Series not found")

        eligible = [wo for wo in series.work_orders if accepts_time_logs(wo.status)]
        if not eligible:
            raise HTTPException(
                status_code=409, detail="No work orders in this series can accept time logs"
            )

        try:
            for work_order in eligible:
                fields = resolve_entry(
                    to_org_date_string(work_order.event_date),
                    data.startTime,
                    data.endTime,
                    data.hours,
                )
                self.repo.add_time_log(
                    self.db,
                    work_order_id=work_order.id,
                    category=data.category,
                    post_production_types=post_production_types_for(
                        data.category, data.postProductionTypes
                    ),
                    description=data.description,
                    notes=data.notes,
                    logged_by_id=user.id,
                    **fields,
                )
        except Exception:
            self.db.rollback()
            raise

        work_order_ids = [wo.id for wo in eligible]
        self._commit_with_rollup(work_order_ids)
        logger.info(f"⏱️ Series {series.id}: logged time on {len(work_order_ids)} work orders")
        return series.id, work_order_ids
