"""Work order repository - Database operations for work orders"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, selectinload

from ...models import (
    Organization,
    ServiceTemplate,
    TimeLog,
    User,
    WorkOrder,
)


class WorkOrderRepository:
    """Repository for work order database operations"""

    @staticmethod
    def get_work_orders(
        db: Session,
        organization_id: int,
        status: Optional[str] = None,
        series_id: Optional[int] = None,
    ) -> list[WorkOrder]:
        query = db.query(WorkOrder).filter(WorkOrder.organization_id == organization_id)
        if status:
            query = query.filter(WorkOrder.status == status)
        if series_id is not None:
            query = query.filter(WorkOrder.series_id == series_id)
        return query.order_by(WorkOrder.event_date.desc(), WorkOrder.id.desc()).all()

    @staticmethod
    def get_work_order_by_id(
        db: Session, work_order_id: int, organization_id: int
    ) -> Optional[WorkOrder]:
        """Scoped lookup; another tenant's row reads as missing"""
        return (
            db.query(WorkOrder)
            .options(
                selectinload(WorkOrder.change_orders),
                selectinload(WorkOrder.time_logs),
                selectinload(WorkOrder.approvals),
            )
            .filter(WorkOrder.id == work_order_id, WorkOrder.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def get_work_orders_by_ids(
        db: Session, work_order_ids: list[int], organization_id: int
    ) -> list[WorkOrder]:
        if not work_order_ids:
            return []
        return (
            db.query(WorkOrder)
            .filter(WorkOrder.id.in_(work_order_ids), WorkOrder.organization_id == organization_id)
            .all()
        )

    @staticmethod
    def get_billable_work_orders(
        db: Session,
        organization_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[WorkOrder]:
        """Completed work not yet on an invoice, optionally within [start, end)"""
        query = db.query(WorkOrder).filter(
            WorkOrder.organization_id == organization_id,
            WorkOrder.status == "completed",
            WorkOrder.invoice_id.is_(None),
        )
        if start is not None:
            query = query.filter(WorkOrder.event_date >= start)
        if end is not None:
            query = query.filter(WorkOrder.event_date < end)
        return query.order_by(WorkOrder.event_date.asc(), WorkOrder.id.asc()).all()

    @staticmethod
    def create_work_order(db: Session, commit: bool = True, **fields) -> WorkOrder:
        work_order = WorkOrder(**fields)
        db.add(work_order)
        if commit:
            db.commit()
            db.refresh(work_order)
        else:
            db.flush()
        return work_order

    @staticmethod
    def update_work_order(db: Session, work_order: WorkOrder, **updates) -> WorkOrder:
        """Apply updates; None values clear optional fields, so callers pass only what changed"""
        for key, value in updates.items():
            if hasattr(work_order, key):
                setattr(work_order, key, value)
        db.commit()
        db.refresh(work_order)
        return work_order

    @staticmethod
    def delete_work_order(db: Session, work_order: WorkOrder) -> None:
        db.delete(work_order)
        db.commit()

    @staticmethod
    def set_status(db: Session, work_order_ids: list[int], from_status: str, to_status: str) -> int:
        """Conditional bulk transition; returns rows moved"""
        if not work_order_ids:
            return 0
        result = db.execute(
            update(WorkOrder)
            .where(WorkOrder.id.in_(work_order_ids), WorkOrder.status == from_status)
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def recompute_actual_hours(db: Session, work_order_id: int) -> Decimal:
        """actual_hours = COALESCE(SUM(time_logs.hours), 0); caller commits"""
        db.flush()
        total = (
            db.query(func.coalesce(func.sum(TimeLog.hours), 0))
            .filter(TimeLog.work_order_id == work_order_id)
            .scalar()
        )
        total = Decimal(str(total)).quantize(Decimal("0.01"))
        db.execute(
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .values(actual_hours=total)
            .execution_options(synchronize_session=False)
        )
        return total

    @staticmethod
    def get_organization(db: Session, organization_id: int) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.id == organization_id).first()

    @staticmethod
    def count_org_users(db: Session, user_ids: list[int], organization_id: int) -> int:
        if not user_ids:
            return 0
        return (
            db.query(User)
            .filter(User.id.in_(user_ids), User.organization_id == organization_id)
            .count()
        )

    @staticmethod
    def count_org_services(db: Session, service_ids: list[int], organization_id: int) -> int:
        if not service_ids:
            return 0
        return (
            db.query(ServiceTemplate)
            .filter(
                ServiceTemplate.id.in_(service_ids),
                ServiceTemplate.organization_id == organization_id,
            )
            .count()
        )

    @staticmethod
    def get_service_names(db: Session, service_ids: list[int]) -> dict[int, str]:
        if not service_ids:
            return {}
        rows = db.query(ServiceTemplate.id, ServiceTemplate.name).filter(
            ServiceTemplate.id.in_(service_ids)
        )
        return {row.id: row.name for row in rows}
