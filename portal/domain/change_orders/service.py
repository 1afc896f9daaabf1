"""Change order service - additional hours requested after approval"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...email_service import send_change_order_approval_request
from ...models import ChangeOrder, User
from ...shared.money import quantize_money, to_decimal
from ..approvals.repository import ApprovalRepository
from ..work_orders.lifecycle import accepts_change_orders
from ..work_orders.repository import WorkOrderRepository
from ..work_orders.service import approval_url
from .repository import ChangeOrderRepository
from .schemas import ChangeOrderCreate

logger = logging.getLogger(__name__)


class ChangeOrderService:
    """Service layer for change order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ChangeOrderRepository()
        self.work_orders = WorkOrderRepository()
        self.approvals = ApprovalRepository()

    def _get_work_order(self, work_order_id: int, user: User):
        work_order = self.work_orders.get_work_order_by_id(
            self.db, work_order_id, user.organization_id
        )
        if not work_order:
            raise HTTPException(status_code=404, detail="Work order not found")
        return work_order

    def list_change_orders(self, work_order_id: int, user: User):
        work_order = self._get_work_order(work_order_id, user)
        return work_order, self.repo.get_for_work_order(self.db, work_order.id)

    def get_change_order(self, change_order_id: int, user: User) -> ChangeOrder:
        change_order = self.repo.get_by_id(self.db, change_order_id, user.organization_id)
        if not change_order:
            raise HTTPException(status_code=404, detail="Change order not found")
        return change_order

    async def create_change_order(
        self, work_order_id: int, data: ChangeOrderCreate, user: User
    ) -> tuple[ChangeOrder, str]:
        """Persist an unapproved change order with its own signing token"""
        if not permissions.is_vendor(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        work_order = self._get_work_order(work_order_id, user)
        if not accepts_change_orders(work_order.status):
            raise HTTPException(
                status_code=409,
                detail="Change orders can only be added to approved, in-progress or completed work orders",
            )

        try:
            change_order = self.repo.create(
                self.db,
                work_order_id=work_order.id,
                additional_hours=data.additionalHours,
                reason=data.reason,
                reason_other=data.reasonOther if data.reason == "other" else None,
                notes=data.notes,
                is_approved=False,
                requested_by_id=user.id,
            )
            token = self.approvals.issue_token(self.db, work_order.id, change_order.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(change_order)
        logger.info(
            f"➕ Change order {change_order.id} (+{change_order.additional_hours}h) "
            f"created for work order {work_order.id}"
        )

        approver = work_order.authorized_approver
        if approver and approver.email:
            cost = quantize_money(
                to_decimal(change_order.additional_hours) * to_decimal(work_order.hourly_rate_snapshot)
            )
            try:
                await send_change_order_approval_request(
                    to=approver.email,
                    approver_name=approver.full_name,
                    event_name=work_order.event_name,
                    additional_hours=float(change_order.additional_hours),
                    additional_cost=float(cost),
                    reason=change_order.reason_other or change_order.reason.replace("_", " "),
                    approval_url=approval_url(token.token),
                )
            except Exception as e:
                logger.error(f"❌ Failed to email approver for change order {change_order.id}: {e}")

        return change_order, token.token

    def delete_change_order(self, change_order_id: int, user: User) -> dict:
        if not permissions.is_vendor(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        change_order = self.get_change_order(change_order_id, user)
        if change_order.is_approved:
            raise HTTPException(status_code=409, detail="Approved change orders cannot be deleted")

        try:
            self.approvals.delete_change_order_tokens(self.db, change_order.id)
            self.repo.delete(self.db, change_order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🗑️ Change order {change_order_id} deleted")
        return {"message": "Change order deleted"}
