"""Invoice comment schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email
from ...utils.sanitization import validate_and_sanitize_input

MAX_COMMENT_LENGTH = 5000


def _check_content(v: str) -> str:
    v = validate_and_sanitize_input(v, max_length=MAX_COMMENT_LENGTH)
    if not v:
        raise ValueError("Comment cannot be empty")
    return v


class CommentCreate(BaseModel):
    content: str
    parentId: Optional[int] = None
    lineItemId: Optional[int] = None
    isInternal: bool = False

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return _check_content(v)


class PublicCommentCreate(BaseModel):
    authorName: str
    authorEmail: str
    content: str
    parentId: Optional[int] = None
    lineItemId: Optional[int] = None

    @field_validator("authorName")
    @classmethod
    def validate_author_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v[:255]

    @field_validator("authorEmail")
    @classmethod
    def validate_author_email(cls, v):
        v = validate_email(v)
        if not v:
            raise ValueError("Email is required")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return _check_content(v)


class CommentResponse(BaseModel):
    id: int
    invoiceId: int
    lineItemId: Optional[int] = None
    parentId: Optional[int] = None
    authorName: str
    authorEmail: Optional[str] = None
    authorUserId: Optional[int] = None
    content: str
    isInternal: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            invoiceId=comment.invoice_id,
            lineItemId=comment.line_item_id,
            parentId=comment.parent_id,
            authorName=comment.author_name,
            authorEmail=comment.author_email,
            authorUserId=comment.author_user_id,
            content=comment.content,
            isInternal=comment.is_internal,
            createdAt=comment.created_at,
        )
