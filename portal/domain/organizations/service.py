"""Organization settings service"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import Organization, User
from .schemas import OrganizationUpdate

logger = logging.getLogger(__name__)

# camelCase request field -> column
FIELD_MAP = {
    "name": "name",
    "invoicePrefix": "invoice_prefix",
    "hourlyRate": "hourly_rate",
    "monthlyRetainer": "monthly_retainer",
    "paymentTerms": "payment_terms",
    "address": "address",
    "phone": "phone",
    "email": "email",
}


class OrganizationService:
    def __init__(self, db: Session):
        self.db = db

    def get_organization(self, user: User) -> Organization:
        organization = (
            self.db.query(Organization).filter(Organization.id == user.organization_id).first()
        )
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")
        return organization

    def update_organization(self, data: OrganizationUpdate, user: User) -> Organization:
        """Rate changes apply to new work orders only; snapshots are never rewritten"""
        if not permissions.can_manage_settings(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

        organization = self.get_organization(user)
        for field, value in data.model_dump(exclude_unset=True).items():
            column = FIELD_MAP[field]
            if column in ("name", "invoice_prefix") and value is None:
                continue
            setattr(organization, column, value)

        self.db.commit()
        self.db.refresh(organization)
        logger.info(f"✅ Organization {organization.id} settings updated")
        return organization
