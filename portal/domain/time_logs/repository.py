"""Time log repository - Database operations for time logs"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import TimeLog, WorkOrder


class TimeLogRepository:
    """Repository for time log database operations; callers commit"""

    @staticmethod
    def get_time_logs(
        db: Session, organization_id: int, work_order_id: Optional[int] = None
    ) -> list[TimeLog]:
        query = (
            db.query(TimeLog)
            .join(WorkOrder, TimeLog.work_order_id == WorkOrder.id)
            .filter(WorkOrder.organization_id == organization_id)
        )
        if work_order_id is not None:
            query = query.filter(TimeLog.work_order_id == work_order_id)
        return query.order_by(TimeLog.date.desc(), TimeLog.id.desc()).all()

    @staticmethod
    def get_time_log_by_id(db: Session, time_log_id: int, organization_id: int) -> Optional[TimeLog]:
        return (
            db.query(TimeLog)
            .join(WorkOrder, TimeLog.work_order_id == WorkOrder.id)
            .filter(TimeLog.id == time_log_id, WorkOrder.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def add_time_log(db: Session, **fields) -> TimeLog:
        time_log = TimeLog(**fields)
        db.add(time_log)
        db.flush()
        return time_log

    @staticmethod
    def delete_time_log(db: Session, time_log: TimeLog) -> None:
        db.delete(time_log)
        db.flush()
