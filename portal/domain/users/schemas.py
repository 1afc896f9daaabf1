"""User (staff and client contact) schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...permissions import Role
from ...shared.validators import validate_choice, validate_email, validate_us_phone

ROLE_VALUES = {r.value for r in Role}


class UserFields(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    canPay: Optional[bool] = None
    isApprover: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_us_phone(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return validate_choice(v, ROLE_VALUES, "role")


class UserCreate(UserFields):
    email: str
    role: str = Role.CLIENT_VIEWER.value
    canPay: bool = False
    isApprover: bool = False

    @field_validator("email")
    @classmethod
    def validate_user_email(cls, v):
        v = validate_email(v)
        if not v:
            raise ValueError("Email is required")
        return v


class UserUpdate(UserFields):
    isActive: Optional[bool] = None


class UserResponse(BaseModel):
    id: int
    organizationId: int
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    fullName: str
    title: Optional[str] = None
    phone: Optional[str] = None
    role: str
    canPay: bool
    isApprover: bool
    isActive: bool
    linked: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            organizationId=user.organization_id,
            email=user.email,
            firstName=user.first_name,
            lastName=user.last_name,
            fullName=user.full_name,
            title=user.title,
            phone=user.phone,
            role=user.role,
            canPay=user.can_pay,
            isApprover=user.is_approver,
            isActive=user.is_active,
            linked=user.firebase_uid is not None,
            createdAt=user.created_at,
        )
