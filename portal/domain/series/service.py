"""
Series service.

A series groups recurring events that share details but not dates. Its work
orders skip pre-approval and start in_progress; sign-off happens afterwards,
either one at a time or in bulk.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import User, WorkOrder, WorkOrderSeries
from ..approvals.repository import ApprovalRepository
from ..work_orders.repository import WorkOrderRepository
from ..work_orders.service import WorkOrderService, keep_other, resolve_rate_snapshot
from .repository import SeriesRepository
from .schemas import AssignToSeriesRequest, SeriesCreate

logger = logging.getLogger(__name__)


class SeriesService:
    """Service layer for series business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SeriesRepository()
        self.work_orders = WorkOrderRepository()
        self.approvals = ApprovalRepository()
        self.work_order_service = WorkOrderService(db)

    def _require_staff(self, user: User) -> None:
        if not permissions.can_create_work_orders(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def list_series(self, user: User) -> list[WorkOrderSeries]:
        return self.repo.get_series_list(self.db, user.organization_id)

    def get_series(self, series_id: int, user: User) -> WorkOrderSeries:
        series = self.repo.get_series_by_id(self.db, series_id, user.organization_id)
        if not series:
            raise HTTPException(status_code=404, detail="Series not found")
        return series

    def create_series(self, data: SeriesCreate, user: User) -> WorkOrderSeries:
        """One in_progress work order per date, all at today's organization rate"""
        self._require_staff(user)
        self.work_order_service.check_references(
            user, data.requestedById, data.authorizedApproverId, data.scopeServiceIds
        )
        organization = self.work_orders.get_organization(self.db, user.organization_id)
        rate = resolve_rate_snapshot(organization)

        shared = {
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
            "hourly_rate_snapshot": rate,
            "notes": data.notes,
            "internal_notes": data.internalNotes,
            "status": "in_progress",
            "created_by_id": user.id,
        }
        shared.update(
            self.work_order_service.estimate_columns(data, keep=data.needsPreApproval)
        )

        try:
            series = self.repo.create_series(
                self.db,
                organization_id=user.organization_id,
                name=data.name,
                description=data.description,
                allow_bulk_approval=data.allowBulkApproval,
                created_by_id=user.id,
            )
            for entry in data.dates:
                fields = dict(shared, series_id=series.id)
                fields.update(
                    self.work_order_service.schedule_columns(
                        entry.date, entry.startTime, entry.endTime
                    )
                )
                self.work_orders.create_work_order(self.db, commit=False, **fields)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(series)
        logger.info(
            f"✅ Series {series.id} '{series.name}' created with {len(data.dates)} work orders"
        )
        return series

    def submit_series_for_approval(self, series_id: int, user: User) -> list[tuple[int, str]]:
        """in_progress -> pending_approval for every eligible member, one token each"""
        self._require_staff(user)
        series = self.get_series(series_id, user)
        eligible = self.repo.members_by_status(series, "in_progress")
        if not eligible:
            raise HTTPException(
                status_code=409, detail="No in-progress work orders in this series to submit"
            )

        issued = []
        try:
            for work_order in eligible:
                self.approvals.delete_work_order_tokens(self.db, work_order.id)
                moved = self.work_orders.set_status(
                    self.db, [work_order.id], "in_progress", "pending_approval"
                )
                if moved != 1:
                    raise HTTPException(
                        status_code=409,
                        detail=f"Work order {work_order.id} changed status, reload the series",
                    )
                token = self.approvals.issue_token(self.db, work_order.id)
                issued.append((work_order.id, token.token))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"📝 Series {series.id}: {len(issued)} work orders submitted for sign-off")
        return issued

    def delete_series(self, series_id: int, user: User) -> dict:
        if not permissions.can_delete_work_orders(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        series = self.get_series(series_id, user)
        blocked = sorted(wo.id for wo in series.work_orders if wo.status != "in_progress")
        if blocked:
            raise HTTPException(
                status_code=409,
                detail=f"Series has work orders past in-progress and cannot be deleted: {blocked}",
            )
        signed = sorted(
            wo.id
            for wo in series.work_orders
            if wo.approvals or any(co.is_approved for co in wo.change_orders)
        )
        if signed:
            raise HTTPException(
                status_code=409,
                detail=f"Series has signed work orders or change orders and cannot be deleted: {signed}",
            )

        count = len(series.work_orders)
        try:
            for work_order in series.work_orders:
                self.approvals.delete_all_tokens(self.db, work_order.id)
            self.repo.delete_series(self.db, series)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🗑️ Series {series_id} deleted with {count} work orders")
        return {"message": "Series deleted"}

    def assign_to_series(
        self, work_order_id: int, data: AssignToSeriesRequest, user: User
    ) -> WorkOrder:
        self._require_staff(user)
        work_order = self.work_order_service.get_work_order(work_order_id, user)

        try:
            if data.seriesId is not None:
                series = self.get_series(data.seriesId, user)
            else:
                series = self.repo.create_series(
                    self.db,
                    organization_id=user.organization_id,
                    name=data.newSeriesName.strip(),
                    created_by_id=user.id,
                )
            work_order.series_id = series.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(work_order)
        logger.info(f"🔗 Work order {work_order.id} assigned to series {work_order.series_id}")
        return work_order

    def remove_from_series(self, work_order_id: int, user: User) -> WorkOrder:
        self._require_staff(user)
        work_order = self.work_order_service.get_work_order(work_order_id, user)
        if work_order.series_id is None:
            raise HTTPException(status_code=409, detail="Work order is not part of a series")

        previous = work_order.series_id
        work_order.series_id = None
        self.db.commit()
        self.db.refresh(work_order)
        logger.info(f"🔗 Work order {work_order.id} removed from series {previous}")
        return work_order
