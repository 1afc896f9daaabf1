"""Change order repository - Database operations for change orders"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import ChangeOrder, WorkOrder


class ChangeOrderRepository:
    """Repository for change order database operations"""

    @staticmethod
    def get_for_work_order(db: Session, work_order_id: int) -> list[ChangeOrder]:
        return (
            db.query(ChangeOrder)
            .filter(ChangeOrder.work_order_id == work_order_id)
            .order_by(ChangeOrder.created_at.asc(), ChangeOrder.id.asc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, change_order_id: int, organization_id: int) -> Optional[ChangeOrder]:
        """Scoped through the parent work order"""
        return (
            db.query(ChangeOrder)
            .join(WorkOrder, ChangeOrder.work_order_id == WorkOrder.id)
            .filter(ChangeOrder.id == change_order_id, WorkOrder.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def create(db: Session, **fields) -> ChangeOrder:
        change_order = ChangeOrder(**fields)
        db.add(change_order)
        db.flush()
        return change_order

    @staticmethod
    def delete(db: Session, change_order: ChangeOrder) -> None:
        db.delete(change_order)
        db.flush()

    @staticmethod
    def mark_approved(db: Session, change_order_id: int, approval_id: int) -> bool:
        """One-way flag; only flips an unapproved row"""
        result = db.execute(
            update(ChangeOrder)
            .where(ChangeOrder.id == change_order_id, ChangeOrder.is_approved.is_(False))
            .values(is_approved=True, approval_id=approval_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
