"""Service template router"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import ServiceTemplateCreate, ServiceTemplateResponse, ServiceTemplateUpdate
from .service import ServiceTemplateService

router = APIRouter(prefix="/service-templates", tags=["Service Templates"])


def get_template_service(db: Session = Depends(get_db)) -> ServiceTemplateService:
    return ServiceTemplateService(db)


@router.get("", response_model=list[ServiceTemplateResponse])
async def list_service_templates(
    activeOnly: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ServiceTemplateService = Depends(get_template_service),
):
    return [
        ServiceTemplateResponse.from_model(t)
        for t in service.list_templates(current_user, active_only=activeOnly)
    ]


@router.get("/{template_id}", response_model=ServiceTemplateResponse)
async def get_service_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceTemplateService = Depends(get_template_service),
):
    return ServiceTemplateResponse.from_model(service.get_template(template_id, current_user))


@router.post("", response_model=ServiceTemplateResponse, status_code=201)
async def create_service_template(
    data: ServiceTemplateCreate,
    current_user: User = Depends(get_current_user),
    service: ServiceTemplateService = Depends(get_template_service),
):
    return ServiceTemplateResponse.from_model(service.create_template(data, current_user))


@router.put("/{template_id}", response_model=ServiceTemplateResponse)
async def update_service_template(
    template_id: int,
    data: ServiceTemplateUpdate,
    current_user: User = Depends(get_current_user),
    service: ServiceTemplateService = Depends(get_template_service),
):
    return ServiceTemplateResponse.from_model(
        service.update_template(template_id, data, current_user)
    )
