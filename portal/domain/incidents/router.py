"""Incident report router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import IncidentCreate, IncidentResponse, IncidentUpdate
from .service import IncidentService

router = APIRouter(prefix="/incidents", tags=["Incidents"])


def get_incident_service(db: Session = Depends(get_db)) -> IncidentService:
    """Dependency injection for IncidentService"""
    return IncidentService(db)


@router.get("", response_model=list[IncidentResponse])
async def list_incidents(
    work_order_id: Optional[int] = Query(None, alias="workOrderId"),
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return [IncidentResponse.from_model(i) for i in service.list_incidents(current_user, work_order_id)]


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return IncidentResponse.from_model(service.get_incident(incident_id, current_user))


@router.post("", response_model=IncidentResponse, status_code=201)
async def create_incident(
    data: IncidentCreate,
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return IncidentResponse.from_model(service.create_incident(data, current_user))


@router.put("/{incident_id}", response_model=IncidentResponse)
async def update_incident(
    incident_id: int,
    data: IncidentUpdate,
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return IncidentResponse.from_model(service.update_incident(incident_id, data, current_user))


@router.post("/{incident_id}/client-notified", response_model=IncidentResponse)
async def mark_client_notified(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return IncidentResponse.from_model(service.mark_client_notified(incident_id, current_user))


@router.delete("/{incident_id}")
async def delete_incident(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return service.delete_incident(incident_id, current_user)
