"""User repository - Database operations for portal users"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import User


class UserRepository:
    @staticmethod
    def get_users(db: Session, organization_id: int, include_inactive: bool = True) -> list[User]:
        query = db.query(User).filter(User.organization_id == organization_id)
        if not include_inactive:
            query = query.filter(User.is_active.is_(True))
        return query.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc()).all()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int, organization_id: int) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.id == user_id, User.organization_id == organization_id)
            .first()
        )

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_approvers(db: Session, organization_id: int) -> list[User]:
        return (
            db.query(User)
            .filter(
                User.organization_id == organization_id,
                User.is_approver.is_(True),
                User.is_active.is_(True),
            )
            .order_by(User.last_name.asc(), User.first_name.asc())
            .all()
        )

    @staticmethod
    def create_user(db: Session, **fields) -> User:
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
