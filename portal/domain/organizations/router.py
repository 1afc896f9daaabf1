"""Organization settings router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import OrganizationResponse, OrganizationUpdate
from .service import OrganizationService

router = APIRouter(prefix="/organization", tags=["Organization"])


def get_organization_service(db: Session = Depends(get_db)) -> OrganizationService:
    return OrganizationService(db)


@router.get("", response_model=OrganizationResponse)
async def get_organization(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return OrganizationResponse.from_model(service.get_organization(current_user))


@router.put("", response_model=OrganizationResponse)
async def update_organization(
    data: OrganizationUpdate,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return OrganizationResponse.from_model(service.update_organization(data, current_user))
