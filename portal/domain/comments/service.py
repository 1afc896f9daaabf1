"""
Invoice comments.

Staff comment from the portal; clients comment through the invoice view link.
Internal comments never leave the staff listing.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import permissions
from ...email_service import send_invoice_comment_notification
from ...models import User
from ...models_invoice import Invoice, InvoiceComment, InvoiceLineItem
from ..invoices.repository import InvoiceRepository
from ..invoices.service import InvoiceService, invoice_view_url
from .schemas import CommentCreate, PublicCommentCreate

logger = logging.getLogger(__name__)


class CommentService:
    """Service layer for invoice comments"""

    def __init__(self, db: Session):
        self.db = db
        self.invoices = InvoiceRepository()
        self.invoice_service = InvoiceService(db)

    def _list(self, invoice_id: int, include_internal: bool) -> list[InvoiceComment]:
        query = self.db.query(InvoiceComment).filter(InvoiceComment.invoice_id == invoice_id)
        if not include_internal:
            query = query.filter(InvoiceComment.is_internal.is_(False))
        return query.order_by(InvoiceComment.created_at.asc(), InvoiceComment.id.asc()).all()

    def _check_refs(
        self, invoice: Invoice, parent_id: Optional[int], line_item_id: Optional[int]
    ) -> Optional[InvoiceComment]:
        """Parent and line item must both belong to this invoice"""
        parent = None
        if parent_id is not None:
            parent = (
                self.db.query(InvoiceComment)
                .filter(InvoiceComment.id == parent_id, InvoiceComment.invoice_id == invoice.id)
                .first()
            )
            if not parent:
                raise HTTPException(status_code=400, detail="Parent comment not found on this invoice")
        if line_item_id is not None:
            item = (
                self.db.query(InvoiceLineItem)
                .filter(InvoiceLineItem.id == line_item_id, InvoiceLineItem.invoice_id == invoice.id)
                .first()
            )
            if not item:
                raise HTTPException(status_code=400, detail="Line item not found on this invoice")
        return parent

    def _add(self, **fields) -> InvoiceComment:
        comment = InvoiceComment(**fields)
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    # ============================================================================
    # STAFF
    # ============================================================================

    def list_comments(self, invoice_id: int, user: User) -> list[InvoiceComment]:
        invoice = self.invoice_service.get_invoice(invoice_id, user)
        return self._list(invoice.id, include_internal=permissions.is_vendor(user.role))

    async def create_comment(self, invoice_id: int, data: CommentCreate, user: User) -> InvoiceComment:
        invoice = self.invoice_service.get_invoice(invoice_id, user)
        parent = self._check_refs(invoice, data.parentId, data.lineItemId)
        is_internal = data.isInternal and permissions.is_vendor(user.role)

        comment = self._add(
            invoice_id=invoice.id,
            line_item_id=data.lineItemId,
            parent_id=data.parentId,
            author_name=user.full_name,
            author_email=user.email,
            author_user_id=user.id,
            content=data.content,
            is_internal=is_internal,
        )
        logger.info(f"💬 Comment {comment.id} on invoice {invoice.invoice_number} by user {user.id}")

        # A public reply to a comment left through the view link goes back to its author
        if not is_internal and parent and parent.author_user_id is None and parent.author_email:
            await self._notify(
                to=parent.author_email,
                recipient_name=parent.author_name,
                author_name=user.full_name,
                invoice=invoice,
                content=data.content,
                is_reply=True,
            )
        return comment

    # ============================================================================
    # VIEW LINK
    # ============================================================================

    def list_public_comments(self, token: str) -> list[InvoiceComment]:
        view_token = self.invoice_service.resolve_view_token(token)
        return self._list(view_token.invoice_id, include_internal=False)

    async def create_public_comment(self, token: str, data: PublicCommentCreate) -> InvoiceComment:
        view_token = self.invoice_service.resolve_view_token(token)
        invoice = view_token.invoice
        parent = self._check_refs(invoice, data.parentId, data.lineItemId)
        if parent and parent.is_internal:
            raise HTTPException(status_code=400, detail="Parent comment not found on this invoice")

        comment = self._add(
            invoice_id=invoice.id,
            line_item_id=data.lineItemId,
            parent_id=data.parentId,
            author_name=data.authorName,
            author_email=data.authorEmail,
            content=data.content,
            is_internal=False,
        )
        logger.info(f"💬 Client comment {comment.id} on invoice {invoice.invoice_number}")

        creator = invoice.created_by
        if creator and creator.email:
            await self._notify(
                to=creator.email,
                recipient_name=creator.full_name,
                author_name=data.authorName,
                invoice=invoice,
                content=data.content,
                is_reply=False,
                view_token=token,
            )
        return comment

    async def _notify(
        self,
        to: str,
        recipient_name: str,
        author_name: str,
        invoice: Invoice,
        content: str,
        is_reply: bool,
        view_token: Optional[str] = None,
    ) -> None:
        if view_token is None:
            latest = self.invoices.latest_view_token(self.db, invoice.id)
            if not latest:
                logger.warning(f"⚠️ No live view link for invoice {invoice.id}; reply not emailed")
                return
            view_token = latest.token
        try:
            await send_invoice_comment_notification(
                to=to,
                recipient_name=recipient_name,
                author_name=author_name,
                invoice_number=invoice.invoice_number,
                content=content,
                view_url=invoice_view_url(view_token),
                is_reply=is_reply,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send comment notification for {invoice.invoice_number}: {e}")
