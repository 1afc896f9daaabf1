"""Service template catalogue"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import ServiceTemplate, User
from .schemas import ServiceTemplateCreate, ServiceTemplateUpdate

logger = logging.getLogger(__name__)


class ServiceTemplateService:
    def __init__(self, db: Session):
        self.db = db

    def _require_manager(self, user: User) -> None:
        if not permissions.can_manage_settings(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")

    def list_templates(self, user: User, active_only: bool = False) -> list[ServiceTemplate]:
        """Active first, then by sort order"""
        query = self.db.query(ServiceTemplate).filter(
            ServiceTemplate.organization_id == user.organization_id
        )
        if active_only:
            query = query.filter(ServiceTemplate.is_active.is_(True))
        return query.order_by(
            ServiceTemplate.is_active.desc(), ServiceTemplate.sort_order.asc(), ServiceTemplate.id
        ).all()

    def get_template(self, template_id: int, user: User) -> ServiceTemplate:
        template: Optional[ServiceTemplate] = (
            self.db.query(ServiceTemplate)
            .filter(
                ServiceTemplate.id == template_id,
                ServiceTemplate.organization_id == user.organization_id,
            )
            .first()
        )
        if not template:
            raise HTTPException(status_code=404, detail="Service not found")
        return template

    def create_template(self, data: ServiceTemplateCreate, user: User) -> ServiceTemplate:
        self._require_manager(user)
        template = ServiceTemplate(
            organization_id=user.organization_id,
            name=data.name,
            description=data.description,
            sort_order=data.sortOrder,
            is_active=True,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"✅ Service template {template.id} '{template.name}' created")
        return template

    def update_template(
        self, template_id: int, data: ServiceTemplateUpdate, user: User
    ) -> ServiceTemplate:
        self._require_manager(user)
        template = self.get_template(template_id, user)
        if data.name is not None:
            template.name = data.name
        if "description" in data.model_fields_set:
            template.description = data.description
        if data.isActive is not None:
            template.is_active = data.isActive
        if data.sortOrder is not None:
            template.sort_order = data.sortOrder
        self.db.commit()
        self.db.refresh(template)
        return template
