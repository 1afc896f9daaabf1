"""Incident report schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...constants import INCIDENT_OUTCOMES, INCIDENT_TYPES, ROOT_CAUSES
from ...shared.validators import validate_choice


class IncidentFields(BaseModel):
    incidentType: Optional[str] = None
    incidentTypeOther: Optional[str] = None
    rootCause: Optional[str] = None
    mitigation: Optional[str] = None
    outcome: Optional[str] = None
    notes: Optional[str] = None
    clientNotified: Optional[bool] = None

    @field_validator("incidentType")
    @classmethod
    def validate_incident_type(cls, v):
        return validate_choice(v, INCIDENT_TYPES, "incident type")

    @field_validator("rootCause")
    @classmethod
    def validate_root_cause(cls, v):
        return validate_choice(v, ROOT_CAUSES, "root cause")

    @field_validator("outcome")
    @classmethod
    def validate_outcome(cls, v):
        return validate_choice(v, INCIDENT_OUTCOMES, "outcome")

    @field_validator("mitigation")
    @classmethod
    def validate_mitigation(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Mitigation is required")
        return v.strip() if v else v


class IncidentCreate(IncidentFields):
    workOrderId: int
    incidentType: str
    rootCause: str
    mitigation: str
    outcome: str
    clientNotified: bool = False


class IncidentUpdate(IncidentFields):
    pass


class IncidentResponse(BaseModel):
    id: int
    workOrderId: int
    workOrderEventName: Optional[str] = None
    incidentType: str
    incidentTypeOther: Optional[str] = None
    rootCause: str
    mitigation: str
    outcome: str
    notes: Optional[str] = None
    clientNotified: bool
    clientNotifiedAt: Optional[datetime] = None
    reportedById: Optional[int] = None
    reportedByName: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, incident) -> "IncidentResponse":
        return cls(
            id=incident.id,
            workOrderId=incident.work_order_id,
            workOrderEventName=incident.work_order.event_name if incident.work_order else None,
            incidentType=incident.incident_type,
            incidentTypeOther=incident.incident_type_other,
            rootCause=incident.root_cause,
            mitigation=incident.mitigation,
            outcome=incident.outcome,
            notes=incident.notes,
            clientNotified=incident.client_notified,
            clientNotifiedAt=incident.client_notified_at,
            reportedById=incident.reported_by_id,
            reportedByName=incident.reported_by.full_name if incident.reported_by else None,
            createdAt=incident.created_at,
        )
