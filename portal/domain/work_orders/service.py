"""Work order service - Business logic for the work order lifecycle"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...config import DEFAULT_HOURLY_RATE, FRONTEND_URL
from ...models import User, WorkOrder
from ...shared.money import quantize_money
from ...utils.timezone import parse_org_datetime, to_org_date_string, to_org_time_string
from ..approvals.repository import ApprovalRepository
from .lifecycle import append_completion_notes, is_deletable, is_editable
from .repository import WorkOrderRepository
from .schemas import WorkOrderCreate, WorkOrderUpdate, check_estimate

logger = logging.getLogger(__name__)

EDIT_LOCKED_MESSAGE = "Cannot edit approved work orders. Create a change order instead."


def approval_url(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/approve/{token}"


def resolve_rate_snapshot(organization) -> object:
    """Organization rate at creation time, falling back to the configured default"""
    if organization is not None and organization.hourly_rate is not None:
        return quantize_money(organization.hourly_rate)
    return quantize_money(DEFAULT_HOURLY_RATE)


def keep_other(value: Optional[str], other_text: Optional[str]) -> Optional[str]:
    return other_text if value == "other" else None


class WorkOrderService:
    """Service layer for work order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WorkOrderRepository()
        self.approvals = ApprovalRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_work_orders(
        self, user: User, status: Optional[str] = None, series_id: Optional[int] = None
    ) -> list[WorkOrder]:
        return self.repo.get_work_orders(self.db, user.organization_id, status, series_id)

    def get_work_order(self, work_order_id: int, user: User) -> WorkOrder:
        work_order = self.repo.get_work_order_by_id(self.db, work_order_id, user.organization_id)
        if not work_order:
            raise HTTPException(status_code=404, detail="Work order not found")
        return work_order

    def get_service_names(self, work_order: WorkOrder) -> dict[int, str]:
        return self.repo.get_service_names(self.db, work_order.scope_service_ids or [])

    def list_billable(self, user: User) -> list[WorkOrder]:
        """Completed work not yet attached to an invoice"""
        return self.repo.get_billable_work_orders(self.db, user.organization_id)

    # ------------------------------------------------------------------
    # Validation helpers shared with series
    # ------------------------------------------------------------------

    def check_references(
        self,
        user: User,
        requested_by_id: Optional[int] = None,
        authorized_approver_id: Optional[int] = None,
        scope_service_ids: Optional[list[int]] = None,
    ) -> None:
        """Referenced users and services must live in the caller's organization"""
        user_ids = [i for i in (requested_by_id, authorized_approver_id) if i is not None]
        unique_ids = list(set(user_ids))
        if unique_ids and self.repo.count_org_users(
            self.db, unique_ids, user.organization_id
        ) != len(unique_ids):
            raise HTTPException(status_code=400, detail="Referenced user not found")

        if scope_service_ids:
            if self.repo.count_org_services(
                self.db, scope_service_ids, user.organization_id
            ) != len(scope_service_ids):
                raise HTTPException(status_code=400, detail="Referenced service not found")

    @staticmethod
    def estimate_columns(data, keep: bool = True) -> dict:
        if not keep or not data.estimateType:
            return {
                "estimate_type": None,
                "estimated_hours_min": None,
                "estimated_hours_max": None,
                "estimated_hours_fixed": None,
                "estimated_hours_nte": None,
            }
        estimate_type = data.estimateType
        return {
            "estimate_type": estimate_type,
            "estimated_hours_min": data.estimatedHoursMin if estimate_type == "range" else None,
            "estimated_hours_max": data.estimatedHoursMax if estimate_type == "range" else None,
            "estimated_hours_fixed": data.estimatedHoursFixed if estimate_type == "fixed" else None,
            "estimated_hours_nte": data.estimatedHoursNte
            if estimate_type == "not_to_exceed"
            else None,
        }

    @staticmethod
    def schedule_columns(event_date: str, start_time: Optional[str], end_time: Optional[str]) -> dict:
        """Local date and clock times to stored UTC columns"""
        start = parse_org_datetime(event_date, start_time) if start_time else None
        end = parse_org_datetime(event_date, end_time) if end_time else None
        if start and end and end <= start:
            raise HTTPException(status_code=400, detail="End time must be after start time")
        return {
            "event_date": parse_org_datetime(event_date),
            "start_time": start,
            "end_time": end,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_work_order(self, data: WorkOrderCreate, user: User) -> WorkOrder:
        if not permissions.can_create_work_orders(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        self.check_references(
            user, data.requestedById, data.authorizedApproverId, data.scopeServiceIds
        )
        organization = self.repo.get_organization(self.db, user.organization_id)

        fields = {
            "organization_id": user.organization_id,
            "event_name": data.eventName,
            "venue": data.venue,
            "venue_other": keep_other(data.venue, data.venueOther),
            "event_type": data.eventType,
            "event_type_other": keep_other(data.eventType, data.eventTypeOther),
            "requested_by_id": data.requestedById,
            "requested_by_name": None if data.requestedById else data.requestedByName,
            "authorized_approver_id": data.authorizedApproverId,
            "scope_service_ids": data.scopeServiceIds,
            "custom_scope": data.customScope,
            "needs_pre_approval": data.needsPreApproval,
            "actual_hours": 0,
            "hourly_rate_snapshot": resolve_rate_snapshot(organization),
            "notes": data.notes,
            "internal_notes": data.internalNotes,
            "status": "draft",
            "created_by_id": user.id,
        }
        fields.update(self.schedule_columns(data.eventDate, data.startTime, data.endTime))
        fields.update(self.estimate_columns(data))

        work_order = self.repo.create_work_order(self.db, **fields)
        logger.info(
            f"✅ Work order {work_order.id} created for org {user.organization_id} "
            f"at rate {work_order.hourly_rate_snapshot}"
        )
        return work_order

    def update_work_order(self, work_order_id: int, data: WorkOrderUpdate, user: User) -> WorkOrder:
        if not permissions.can_edit_work_orders(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        work_order = self.get_work_order(work_order_id, user)
        if not is_editable(work_order.status):
            logger.warning(
                f"⚠️ Edit rejected for work order {work_order.id} in status {work_order.status}"
            )
            raise HTTPException(status_code=409, detail=EDIT_LOCKED_MESSAGE)

        self.check_references(
            user, data.requestedById, data.authorizedApproverId, data.scopeServiceIds
        )

        updates = {}
        if data.eventName is not None:
            updates["event_name"] = data.eventName
        if data.venue is not None:
            updates["venue"] = data.venue
            updates["venue_other"] = keep_other(data.venue, data.venueOther)
        elif data.venueOther is not None and work_order.venue == "other":
            updates["venue_other"] = data.venueOther
        if data.eventType is not None:
            updates["event_type"] = data.eventType
            updates["event_type_other"] = keep_other(data.eventType, data.eventTypeOther)
        elif data.eventTypeOther is not None and work_order.event_type == "other":
            updates["event_type_other"] = data.eventTypeOther
        if data.requestedById is not None:
            updates["requested_by_id"] = data.requestedById
            updates["requested_by_name"] = None
        elif data.requestedByName is not None:
            updates["requested_by_id"] = None
            updates["requested_by_name"] = data.requestedByName
        if data.authorizedApproverId is not None:
            updates["authorized_approver_id"] = data.authorizedApproverId
        if data.scopeServiceIds is not None:
            updates["scope_service_ids"] = data.scopeServiceIds
        if data.customScope is not None:
            updates["custom_scope"] = data.customScope
        if data.needsPreApproval is not None:
            updates["needs_pre_approval"] = data.needsPreApproval
        if data.notes is not None:
            updates["notes"] = data.notes
        if data.internalNotes is not None:
            updates["internal_notes"] = data.internalNotes

        # Times are re-read against the (possibly new) local date
        if data.eventDate is not None or data.startTime is not None or data.endTime is not None:
            event_date = data.eventDate or to_org_date_string(work_order.event_date)
            start = data.startTime
            if start is None:
                start = to_org_time_string(work_order.start_time)
            end = data.endTime
            if end is None:
                end = to_org_time_string(work_order.end_time)
            updates.update(self.schedule_columns(event_date, start or None, end or None))

        if data.estimateType is not None:
            try:
                check_estimate(data.model_dump())
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
            updates.update(self.estimate_columns(data))

        work_order = self.repo.update_work_order(self.db, work_order, **updates)
        logger.info(f"✏️ Work order {work_order.id} updated ({', '.join(sorted(updates)) or 'no-op'})")
        return work_order

    def delete_work_order(self, work_order_id: int, user: User) -> dict:
        if not permissions.can_delete_work_orders(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        work_order = self.get_work_order(work_order_id, user)
        if not is_deletable(work_order.status):
            raise HTTPException(status_code=409, detail="Only draft work orders can be deleted")

        self.approvals.delete_all_tokens(self.db, work_order.id)
        self.repo.delete_work_order(self.db, work_order)
        logger.info(f"🗑️ Work order {work_order_id} deleted")
        return {"message": "Work order deleted"}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require_staff(self, user: User) -> None:
        if not permissions.is_vendor(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def submit_for_approval(self, work_order_id: int, user: User) -> tuple[WorkOrder, str]:
        """draft -> pending_approval with one fresh token"""
        self._require_staff(user)
        work_order = self.get_work_order(work_order_id, user)
        if work_order.status != "draft":
            raise HTTPException(
                status_code=409, detail="Only draft work orders can be submitted for approval"
            )

        try:
            self.approvals.delete_work_order_tokens(self.db, work_order.id)
            moved = self.repo.set_status(self.db, [work_order.id], "draft", "pending_approval")
            if moved != 1:
                raise HTTPException(status_code=409, detail="Work order is no longer a draft")
            token = self.approvals.issue_token(self.db, work_order.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(work_order)
        logger.info(f"📝 Work order {work_order.id} submitted for approval")
        return work_order, token.token

    def cancel_approval(self, work_order_id: int, user: User) -> WorkOrder:
        """pending_approval -> draft; outstanding links stop working"""
        self._require_staff(user)
        work_order = self.get_work_order(work_order_id, user)
        if work_order.status != "pending_approval":
            raise HTTPException(status_code=409, detail="Work order is not pending approval")

        try:
            removed = self.approvals.delete_work_order_tokens(self.db, work_order.id)
            moved = self.repo.set_status(self.db, [work_order.id], "pending_approval", "draft")
            if moved != 1:
                raise HTTPException(status_code=409, detail="Work order is not pending approval")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(work_order)
        logger.info(f"↩️ Sign-off cancelled for work order {work_order.id} ({removed} token(s) removed)")
        return work_order

    def start(self, work_order_id: int, user: User) -> WorkOrder:
        """approved -> in_progress"""
        self._require_staff(user)
        work_order = self.get_work_order(work_order_id, user)
        if work_order.status != "approved":
            raise HTTPException(status_code=409, detail="Only approved work orders can be started")

        moved = self.repo.set_status(self.db, [work_order.id], "approved", "in_progress")
        if moved != 1:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="Only approved work orders can be started")
        self.db.commit()
        self.db.refresh(work_order)
        logger.info(f"▶️ Work order {work_order.id} started")
        return work_order

    def mark_complete(
        self, work_order_id: int, user: User, completion_notes: Optional[str] = None
    ) -> WorkOrder:
        """approved | in_progress -> completed"""
        self._require_staff(user)
        work_order = self.get_work_order(work_order_id, user)
        if work_order.status not in ("approved", "in_progress"):
            raise HTTPException(
                status_code=409,
                detail="Only approved or in-progress work orders can be completed",
            )

        previous = work_order.status
        try:
            moved = self.repo.set_status(self.db, [work_order.id], previous, "completed")
            if moved != 1:
                raise HTTPException(status_code=409, detail="Work order status changed, reload")
            notes = append_completion_notes(work_order.notes, completion_notes)
            if notes != work_order.notes:
                work_order.notes = notes
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(work_order)
        logger.info(f"🏁 Work order {work_order.id} completed (was {previous})")
        return work_order

