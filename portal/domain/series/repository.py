"""Series repository - Database operations for work-order series"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import WorkOrder, WorkOrderSeries


class SeriesRepository:
    """Repository for series database operations"""

    @staticmethod
    def get_series_list(db: Session, organization_id: int) -> list[WorkOrderSeries]:
        return (
            db.query(WorkOrderSeries)
            .options(selectinload(WorkOrderSeries.work_orders))
            .filter(WorkOrderSeries.organization_id == organization_id)
            .order_by(WorkOrderSeries.created_at.desc(), WorkOrderSeries.id.desc())
            .all()
        )

    @staticmethod
    def get_series_by_id(
        db: Session, series_id: int, organization_id: int
    ) -> Optional[WorkOrderSeries]:
        return (
            db.query(WorkOrderSeries)
            .options(selectinload(WorkOrderSeries.work_orders))
            .filter(
                WorkOrderSeries.id == series_id,
                WorkOrderSeries.organization_id == organization_id,
            )
            .first()
        )

    @staticmethod
    def create_series(db: Session, **fields) -> WorkOrderSeries:
        series = WorkOrderSeries(**fields)
        db.add(series)
        db.flush()
        return series

    @staticmethod
    def delete_series(db: Session, series: WorkOrderSeries) -> None:
        """Members first, then the series row"""
        for work_order in list(series.work_orders):
            db.delete(work_order)
        db.flush()
        db.delete(series)
        db.flush()

    @staticmethod
    def members_by_status(series: WorkOrderSeries, status: str) -> list[WorkOrder]:
        return sorted(
            (wo for wo in series.work_orders if wo.status == status),
            key=lambda wo: (wo.event_date, wo.id),
        )
