"""
Approval service - signing links, token redemption and bulk sign-off.

Redemption is one transaction: the token is spent with a compare-and-swap on
used_at, the Approval row is written, and the target is flipped with a
conditional update. Any failed step rolls the whole thing back, so a token is
never spent without an Approval and an Approval never exists for an unspent token.
The signature image is uploaded first; an orphaned object in storage is harmless.
"""

import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...models import ApprovalToken, ChangeOrder, Organization, User, WorkOrder
from ...storage import SignatureDecodeError, upload_signature_image
from ...utils.timezone import utcnow
from ..change_orders.repository import ChangeOrderRepository
from ..work_orders.repository import WorkOrderRepository
from .hashing import compute_approval_hash
from .repository import ApprovalRepository
from .schemas import BulkSignRequest, RedeemApprovalRequest, SignerFields

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "This approval link is invalid or has expired"
USED_TOKEN_MESSAGE = "This approval link has already been used"


class RequestContext:
    """Where a signature came from"""

    def __init__(self, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
        self.ip_address = ip_address
        self.user_agent = user_agent


class ApprovalService:
    """Service layer for approvals"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ApprovalRepository()
        self.work_orders = WorkOrderRepository()
        self.change_orders = ChangeOrderRepository()

    # ------------------------------------------------------------------
    # Token validation
    # ------------------------------------------------------------------

    def validate_token(
        self, token_value: str, work_order_id: Optional[int] = None
    ) -> tuple[ApprovalToken, WorkOrder, Optional[ChangeOrder]]:
        """
        Checks run in a fixed order and the first failure wins:
        existence/expiry, reuse, work-order match, then target state.
        """
        now = utcnow()
        token = self.repo.get_token(self.db, token_value)
        if not token or token.expires_at <= now:
            raise HTTPException(status_code=404, detail=INVALID_TOKEN_MESSAGE)

        if token.used_at is not None:
            raise HTTPException(status_code=409, detail=USED_TOKEN_MESSAGE)

        if work_order_id is not None and token.work_order_id != work_order_id:
            logger.warning(
                f"⚠️ Approval token {token.id} presented for work order {work_order_id}, "
                f"issued for {token.work_order_id}"
            )
            raise HTTPException(
                status_code=400, detail="This approval link does not match the work order"
            )

        work_order = self.db.query(WorkOrder).filter(WorkOrder.id == token.work_order_id).first()
        if not work_order:
            raise HTTPException(status_code=404, detail=INVALID_TOKEN_MESSAGE)

        change_order = None
        if token.change_order_id is not None:
            change_order = (
                self.db.query(ChangeOrder).filter(ChangeOrder.id == token.change_order_id).first()
            )
            if not change_order:
                raise HTTPException(status_code=404, detail="Change order not found")
            if change_order.is_approved:
                raise HTTPException(
                    status_code=409, detail="This change order has already been approved"
                )
        elif work_order.status != "pending_approval":
            raise HTTPException(
                status_code=409, detail="This work order is no longer pending approval"
            )

        return token, work_order, change_order

    def get_approval_data(self, token_value: str) -> dict:
        """Everything the public signing page needs"""
        token, work_order, change_order = self.validate_token(token_value)
        organization = (
            self.db.query(Organization).filter(Organization.id == work_order.organization_id).first()
        )
        approvers = (
            self.db.query(User)
            .filter(
                User.organization_id == work_order.organization_id,
                User.is_approver.is_(True),
                User.is_active.is_(True),
            )
            .order_by(User.last_name, User.first_name)
            .all()
        )
        service_names = self.work_orders.get_service_names(
            self.db, work_order.scope_service_ids or []
        )
        return {
            "token": token,
            "work_order": work_order,
            "change_order": change_order,
            "approvers": approvers,
            "organization": organization,
            "service_names": service_names,
        }

    # ------------------------------------------------------------------
    # Signer resolution
    # ------------------------------------------------------------------

    def resolve_signer(
        self, data: SignerFields, organization_id: int, fallback: Optional[User] = None
    ) -> tuple[Optional[int], str, Optional[str]]:
        """(approver_id, name, title) from a registered approver or typed name"""
        if data.approverId is not None:
            approver = (
                self.db.query(User)
                .filter(
                    User.id == data.approverId,
                    User.organization_id == organization_id,
                    User.is_active.is_(True),
                )
                .first()
            )
            if not approver or not permissions.can_approve(approver.is_approver):
                raise HTTPException(status_code=400, detail="Selected approver is not authorized")
            return approver.id, approver.full_name, data.approverTitle or approver.title

        if data.approverName:
            return None, data.approverName, data.approverTitle

        if fallback is not None:
            return fallback.id, fallback.full_name, data.approverTitle or fallback.title

        raise HTTPException(status_code=400, detail="Approver name is required")

    @staticmethod
    def store_signature(signature: str, organization_id: int, label: str) -> str:
        key = f"signatures/{organization_id}/{label}/{uuid.uuid4().hex}.png"
        try:
            return upload_signature_image(signature, key)
        except SignatureDecodeError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            logger.error(f"❌ Signature upload failed for {label}: {e}")
            raise HTTPException(status_code=502, detail="Failed to store signature") from e

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    def redeem(self, token_value: str, data: RedeemApprovalRequest, context: RequestContext):
        token, work_order, change_order = self.validate_token(token_value, data.workOrderId)
        approver_id, approver_name, approver_title = self.resolve_signer(
            data, work_order.organization_id
        )

        label = f"change-orders/{change_order.id}" if change_order else f"work-orders/{work_order.id}"
        signature_key = self.store_signature(data.signature, work_order.organization_id, label)
        work_order_hash = compute_approval_hash(work_order, change_order)
        now = utcnow()

        try:
            if not self.repo.consume_token(self.db, token.id, now):
                raise HTTPException(status_code=409, detail=USED_TOKEN_MESSAGE)

            approval = self.repo.add_approval(
                self.db,
                work_order_id=work_order.id,
                approver_id=approver_id,
                approver_name=approver_name,
                approver_title=approver_title,
                signature_key=signature_key,
                signed_at=now,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                device_info=data.deviceInfo,
                work_order_hash=work_order_hash,
                is_change_order=change_order is not None,
                change_order_id=change_order.id if change_order else None,
            )

            if change_order is not None:
                if not self.change_orders.mark_approved(self.db, change_order.id, approval.id):
                    raise HTTPException(
                        status_code=409, detail="This change order has already been approved"
                    )
            elif not self.repo.mark_work_order_approved(self.db, work_order.id):
                raise HTTPException(
                    status_code=409, detail="This work order is no longer pending approval"
                )

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(approval)
        self.db.refresh(work_order)
        if change_order is not None:
            self.db.refresh(change_order)
            logger.info(f"✅ Change order {change_order.id} approved by {approver_name}")
        else:
            logger.info(f"✅ Work order {work_order.id} approved by {approver_name}")
        return approval, work_order, change_order

    def bulk_sign(self, data: BulkSignRequest, user: User, context: RequestContext):
        """All-or-nothing: every work order must be pending_approval with a live link"""
        if not permissions.can_bulk_sign(user.role, user.is_approver):
            raise HTTPException(status_code=403, detail="Unauthorized")

        work_orders = self.work_orders.get_work_orders_by_ids(
            self.db, data.workOrderIds, user.organization_id
        )
        found = {wo.id for wo in work_orders}
        missing = [i for i in data.workOrderIds if i not in found]
        if missing:
            raise HTTPException(status_code=404, detail=f"Work orders not found: {missing}")

        ineligible = sorted(wo.id for wo in work_orders if wo.status != "pending_approval")
        if ineligible:
            raise HTTPException(
                status_code=409,
                detail=f"Work orders not pending approval: {ineligible}",
            )

        now = utcnow()
        live = self.repo.work_orders_with_live_tokens(self.db, sorted(found), now)
        unlinked = sorted(found - live)
        if unlinked:
            raise HTTPException(
                status_code=409,
                detail=f"Work orders without a live approval link: {unlinked}",
            )

        approver_id, approver_name, approver_title = self.resolve_signer(
            data, user.organization_id, fallback=user
        )
        signature_key = self.store_signature(data.signature, user.organization_id, "bulk")

        approvals = []
        try:
            for work_order in sorted(work_orders, key=lambda wo: wo.id):
                approvals.append(
                    self.repo.add_approval(
                        self.db,
                        work_order_id=work_order.id,
                        approver_id=approver_id,
                        approver_name=approver_name,
                        approver_title=approver_title,
                        signature_key=signature_key,
                        signed_at=now,
                        ip_address=context.ip_address,
                        user_agent=context.user_agent,
                        device_info=data.deviceInfo,
                        work_order_hash=compute_approval_hash(work_order),
                        is_change_order=False,
                    )
                )
                if not self.repo.consume_work_order_tokens(self.db, work_order.id, now):
                    raise HTTPException(
                        status_code=409,
                        detail=f"Approval link for work order {work_order.id} was already used",
                    )
                if not self.repo.mark_work_order_approved(self.db, work_order.id):
                    raise HTTPException(
                        status_code=409,
                        detail=f"Work order {work_order.id} is no longer pending approval",
                    )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for approval in approvals:
            self.db.refresh(approval)
        logger.info(
            f"✅ Bulk sign-off of {len(approvals)} work orders by {approver_name} (user {user.id})"
        )
        return approvals

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_approvals(self, user: User):
        return self.repo.list_for_organization(self.db, user.organization_id)

    def get_change_order_approval(self, change_order_id: int, user: User):
        change_order = self.change_orders.get_by_id(self.db, change_order_id, user.organization_id)
        if not change_order:
            raise HTTPException(status_code=404, detail="Change order not found")
        approval = self.repo.get_for_change_order(self.db, change_order.id)
        if not approval:
            raise HTTPException(status_code=404, detail="Change order has not been approved")
        return approval
