"""Invoice comment routers"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import CommentCreate, CommentResponse, PublicCommentCreate
from .service import CommentService

router = APIRouter(prefix="/invoices", tags=["Invoice Comments"])
public_router = APIRouter(prefix="/invoice", tags=["Public Invoices"])

rate_limit_comment_views = create_rate_limiter(limit=60, window_seconds=60, key_prefix="comment_view")
rate_limit_comment_posts = create_rate_limiter(limit=10, window_seconds=60, key_prefix="comment_post")


def get_comment_service(db: Session = Depends(get_db)) -> CommentService:
    """Dependency injection for CommentService"""
    return CommentService(db)


@router.get("/{invoice_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return [CommentResponse.from_model(c) for c in service.list_comments(invoice_id, current_user)]


@router.post("/{invoice_id}/comments", response_model=CommentResponse, status_code=201)
async def create_comment(
    invoice_id: int,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return CommentResponse.from_model(await service.create_comment(invoice_id, data, current_user))


@public_router.get("/{token}/comments", response_model=list[CommentResponse])
async def list_public_comments(
    token: str,
    _: None = Depends(rate_limit_comment_views),
    service: CommentService = Depends(get_comment_service),
):
    return [CommentResponse.from_model(c) for c in service.list_public_comments(token)]


@public_router.post("/{token}/comments", response_model=CommentResponse, status_code=201)
async def create_public_comment(
    token: str,
    data: PublicCommentCreate,
    _: None = Depends(rate_limit_comment_posts),
    service: CommentService = Depends(get_comment_service),
):
    """Client comment through the invoice view link"""
    return CommentResponse.from_model(await service.create_public_comment(token, data))
