"""Change order router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..work_orders.service import approval_url
from .schemas import ChangeOrderCreate, ChangeOrderCreatedResponse, ChangeOrderResponse
from .service import ChangeOrderService

router = APIRouter(tags=["Change Orders"])


def get_change_order_service(db: Session = Depends(get_db)) -> ChangeOrderService:
    """Dependency injection for ChangeOrderService"""
    return ChangeOrderService(db)


@router.get("/work-orders/{work_order_id}/change-orders", response_model=list[ChangeOrderResponse])
async def list_change_orders(
    work_order_id: int,
    current_user: User = Depends(get_current_user),
    service: ChangeOrderService = Depends(get_change_order_service),
):
    work_order, change_orders = service.list_change_orders(work_order_id, current_user)
    return [ChangeOrderResponse.from_model(co, work_order.hourly_rate_snapshot) for co in change_orders]


@router.post(
    "/work-orders/{work_order_id}/change-orders",
    response_model=ChangeOrderCreatedResponse,
    status_code=201,
)
async def create_change_order(
    work_order_id: int,
    data: ChangeOrderCreate,
    current_user: User = Depends(get_current_user),
    service: ChangeOrderService = Depends(get_change_order_service),
):
    """Create a change order and return its signing link"""
    change_order, token = await service.create_change_order(work_order_id, data, current_user)
    return ChangeOrderCreatedResponse(
        changeOrder=ChangeOrderResponse.from_model(
            change_order, change_order.work_order.hourly_rate_snapshot
        ),
        token=token,
        approvalUrl=approval_url(token),
    )


@router.delete("/change-orders/{change_order_id}")
async def delete_change_order(
    change_order_id: int,
    current_user: User = Depends(get_current_user),
    service: ChangeOrderService = Depends(get_change_order_service),
):
    return service.delete_change_order(change_order_id, current_user)
