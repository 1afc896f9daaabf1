"""Approval repository - tokens and signature records"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...config import APPROVAL_TOKEN_TTL_DAYS
from ...models import Approval, ApprovalToken, WorkOrder
from ...utils.timezone import utcnow


class ApprovalRepository:
    """
    Token and approval persistence.
    Methods here only flush; the calling service owns the transaction.
    """

    @staticmethod
    def issue_token(
        db: Session, work_order_id: int, change_order_id: Optional[int] = None
    ) -> ApprovalToken:
        token = ApprovalToken(
            token=secrets.token_urlsafe(32),
            work_order_id=work_order_id,
            change_order_id=change_order_id,
            expires_at=utcnow() + timedelta(days=APPROVAL_TOKEN_TTL_DAYS),
        )
        db.add(token)
        db.flush()
        return token

    @staticmethod
    def get_token(db: Session, token: str) -> Optional[ApprovalToken]:
        return db.query(ApprovalToken).filter(ApprovalToken.token == token).first()

    @staticmethod
    def delete_work_order_tokens(db: Session, work_order_id: int) -> int:
        """Drop the work order's own tokens; change-order tokens are untouched"""
        return (
            db.query(ApprovalToken)
            .filter(
                ApprovalToken.work_order_id == work_order_id,
                ApprovalToken.change_order_id.is_(None),
            )
            .delete(synchronize_session=False)
        )

    @staticmethod
    def delete_all_tokens(db: Session, work_order_id: int) -> int:
        return (
            db.query(ApprovalToken)
            .filter(ApprovalToken.work_order_id == work_order_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def delete_change_order_tokens(db: Session, change_order_id: int) -> int:
        return (
            db.query(ApprovalToken)
            .filter(ApprovalToken.change_order_id == change_order_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def consume_token(db: Session, token_id: int, now: datetime) -> bool:
        """Compare-and-swap on used_at; True for exactly one caller"""
        result = db.execute(
            update(ApprovalToken)
            .where(
                ApprovalToken.id == token_id,
                ApprovalToken.used_at.is_(None),
                ApprovalToken.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def work_orders_with_live_tokens(db: Session, work_order_ids: list[int], now: datetime) -> set[int]:
        if not work_order_ids:
            return set()
        rows = db.query(ApprovalToken.work_order_id).filter(
            ApprovalToken.work_order_id.in_(work_order_ids),
            ApprovalToken.change_order_id.is_(None),
            ApprovalToken.used_at.is_(None),
            ApprovalToken.expires_at > now,
        )
        return {row.work_order_id for row in rows}

    @staticmethod
    def consume_work_order_tokens(db: Session, work_order_id: int, now: datetime) -> int:
        """Spend every outstanding work-order token (bulk sign-off)"""
        result = db.execute(
            update(ApprovalToken)
            .where(
                ApprovalToken.work_order_id == work_order_id,
                ApprovalToken.change_order_id.is_(None),
                ApprovalToken.used_at.is_(None),
                ApprovalToken.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def mark_work_order_approved(db: Session, work_order_id: int) -> bool:
        """pending_approval -> approved, only if still pending"""
        result = db.execute(
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id, WorkOrder.status == "pending_approval")
            .values(status="approved")
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def add_approval(db: Session, **fields) -> Approval:
        approval = Approval(**fields)
        db.add(approval)
        db.flush()
        return approval

    @staticmethod
    def list_for_organization(db: Session, organization_id: int) -> list[Approval]:
        return (
            db.query(Approval)
            .join(WorkOrder, Approval.work_order_id == WorkOrder.id)
            .filter(WorkOrder.organization_id == organization_id)
            .order_by(Approval.signed_at.desc())
            .all()
        )

    @staticmethod
    def get_for_change_order(db: Session, change_order_id: int) -> Optional[Approval]:
        return (
            db.query(Approval)
            .filter(Approval.change_order_id == change_order_id, Approval.is_change_order.is_(True))
            .first()
        )
