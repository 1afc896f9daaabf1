"""Incident reports against work orders"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import IncidentReport, User, WorkOrder
from ...utils.timezone import utcnow
from ..work_orders.repository import WorkOrderRepository
from ..work_orders.service import keep_other
from .schemas import IncidentCreate, IncidentUpdate

logger = logging.getLogger(__name__)


class IncidentService:
    """Service layer for incident reports"""

    def __init__(self, db: Session):
        self.db = db
        self.work_orders = WorkOrderRepository()

    def _require_staff(self, user: User) -> None:
        if not permissions.can_create_incidents(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def _scoped(self, user: User):
        return (
            self.db.query(IncidentReport)
            .join(WorkOrder, IncidentReport.work_order_id == WorkOrder.id)
            .filter(WorkOrder.organization_id == user.organization_id)
        )

    def list_incidents(self, user: User, work_order_id: Optional[int] = None) -> list[IncidentReport]:
        query = self._scoped(user)
        if work_order_id is not None:
            query = query.filter(IncidentReport.work_order_id == work_order_id)
        return query.order_by(IncidentReport.created_at.desc(), IncidentReport.id.desc()).all()

    def get_incident(self, incident_id: int, user: User) -> IncidentReport:
        incident = self._scoped(user).filter(IncidentReport.id == incident_id).first()
        if not incident:
            raise HTTPException(status_code=404, detail="Incident report not found")
        return incident

    def create_incident(self, data: IncidentCreate, user: User) -> IncidentReport:
        self._require_staff(user)
        work_order = self.work_orders.get_work_order_by_id(
            self.db, data.workOrderId, user.organization_id
        )
        if not work_order:
            raise HTTPException(status_code=404, detail="Work order not found")

        incident = IncidentReport(
            work_order_id=work_order.id,
            incident_type=data.incidentType,
            incident_type_other=keep_other(data.incidentType, data.incidentTypeOther),
            root_cause=data.rootCause,
            mitigation=data.mitigation,
            outcome=data.outcome,
            notes=data.notes,
            client_notified=data.clientNotified,
            client_notified_at=utcnow() if data.clientNotified else None,
            reported_by_id=user.id,
        )
        self.db.add(incident)
        self.db.commit()
        self.db.refresh(incident)
        logger.info(
            f"⚠️ Incident {incident.id} ({incident.incident_type}) logged on work order {work_order.id}"
        )
        return incident

    def update_incident(self, incident_id: int, data: IncidentUpdate, user: User) -> IncidentReport:
        self._require_staff(user)
        incident = self.get_incident(incident_id, user)
        fields = data.model_dump(exclude_unset=True)

        if data.incidentType is not None:
            incident.incident_type = data.incidentType
        if "incidentType" in fields or "incidentTypeOther" in fields:
            incident.incident_type_other = keep_other(
                incident.incident_type, fields.get("incidentTypeOther", incident.incident_type_other)
            )
        if data.rootCause is not None:
            incident.root_cause = data.rootCause
        if data.mitigation is not None:
            incident.mitigation = data.mitigation
        if data.outcome is not None:
            incident.outcome = data.outcome
        if "notes" in fields:
            incident.notes = data.notes
        if data.clientNotified is not None:
            self._set_notified(incident, data.clientNotified)

        self.db.commit()
        self.db.refresh(incident)
        return incident

    @staticmethod
    def _set_notified(incident: IncidentReport, notified: bool) -> None:
        """The timestamp is stamped the first time only"""
        incident.client_notified = notified
        if notified and incident.client_notified_at is None:
            incident.client_notified_at = utcnow()

    def mark_client_notified(self, incident_id: int, user: User) -> IncidentReport:
        self._require_staff(user)
        incident = self.get_incident(incident_id, user)
        self._set_notified(incident, True)
        self.db.commit()
        self.db.refresh(incident)
        return incident

    def delete_incident(self, incident_id: int, user: User) -> dict:
        self._require_staff(user)
        incident = self.get_incident(incident_id, user)
        self.db.delete(incident)
        self.db.commit()
        logger.info(f"🗑️ Incident {incident_id} deleted")
        return {"message": "Incident report deleted"}
