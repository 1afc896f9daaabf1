"""User service - staff and client contacts within one organization"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import permissions
from ...models import User
from .repository import UserRepository
from .schemas import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

FIELD_MAP = {
    "firstName": "first_name",
    "lastName": "last_name",
    "title": "title",
    "phone": "phone",
    "role": "role",
    "canPay": "can_pay",
    "isApprover": "is_approver",
    "isActive": "is_active",
}


class UserService:
    """Service layer for user management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    def list_users(self, user: User) -> list[User]:
        return self.repo.get_users(self.db, user.organization_id)

    def list_approvers(self, user: User) -> list[User]:
        return self.repo.get_approvers(self.db, user.organization_id)

    def get_user(self, user_id: int, user: User) -> User:
        target = self.repo.get_user_by_id(self.db, user_id, user.organization_id)
        if not target:
            raise HTTPException(status_code=404, detail="User not found")
        return target

    def create_user(self, data: UserCreate, user: User) -> User:
        """Pre-create an account; the login is linked on first sign-in by email"""
        if not permissions.can_manage_staff(user.role):
            raise HTTPException(status_code=403, detail="Unauthorized")
        if not permissions.can_assign_role(user.role, data.role):
            raise HTTPException(status_code=403, detail="You cannot assign this role")

        if self.repo.get_user_by_email(self.db, data.email):
            raise HTTPException(status_code=409, detail="A user with this email already exists")

        try:
            created = self.repo.create_user(
                self.db,
                organization_id=user.organization_id,
                email=data.email,
                first_name=data.firstName,
                last_name=data.lastName,
                title=data.title,
                phone=data.phone,
                role=data.role,
                can_pay=data.canPay,
                is_approver=data.isApprover,
                is_active=True,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(
                status_code=409, detail="A user with this email already exists"
            ) from e

        logger.info(f"✅ User {created.id} ({created.role}) created by {user.id}")
        return created

    def update_user(self, user_id: int, data: UserUpdate, user: User) -> User:
        target = self.get_user(user_id, user)
        if not permissions.can_edit_user(user.role, target.role):
            raise HTTPException(status_code=403, detail="Unauthorized")
        if data.role is not None and not permissions.can_assign_role(user.role, data.role):
            raise HTTPException(status_code=403, detail="You cannot assign this role")
        if target.id == user.id and data.isActive is False:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

        for field, value in data.model_dump(exclude_unset=True).items():
            column = FIELD_MAP[field]
            if value is None and column in ("role", "can_pay", "is_approver", "is_active"):
                continue
            setattr(target, column, value)

        self.db.commit()
        self.db.refresh(target)
        logger.info(f"📝 User {target.id} updated by {user.id}")
        return target

    def deactivate_user(self, user_id: int, user: User) -> User:
        """No hard delete: history keeps pointing at the account"""
        target = self.get_user(user_id, user)
        if not permissions.can_edit_user(user.role, target.role):
            raise HTTPException(status_code=403, detail="Unauthorized")
        if target.id == user.id:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

        target.is_active = False
        self.db.commit()
        self.db.refresh(target)
        logger.info(f"🚫 User {target.id} deactivated by {user.id}")
        return target
