"""Service template schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ServiceTemplateCreate(BaseModel):
    name: str
    description: Optional[str] = None
    sortOrder: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Service name is required")
        return v


class ServiceTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    isActive: Optional[bool] = None
    sortOrder: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Service name cannot be empty")
        return v.strip() if v else v


class ServiceTemplateResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    isActive: bool
    sortOrder: int
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, template) -> "ServiceTemplateResponse":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            isActive=template.is_active,
            sortOrder=template.sort_order,
            createdAt=template.created_at,
        )
