"""Change order schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...constants import CHANGE_ORDER_REASONS
from ...shared.money import quantize_money, to_decimal, to_float
from ...shared.validators import validate_choice, validate_positive_hours


class ChangeOrderCreate(BaseModel):
    additionalHours: Decimal
    reason: str
    reasonOther: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("additionalHours")
    @classmethod
    def validate_hours(cls, v):
        return validate_positive_hours(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return validate_choice(v, CHANGE_ORDER_REASONS, "reason")


class ChangeOrderResponse(BaseModel):
    id: int
    workOrderId: int
    additionalHours: float
    additionalCost: float
    reason: str
    reasonOther: Optional[str] = None
    notes: Optional[str] = None
    isApproved: bool
    approvalId: Optional[int] = None
    requestedById: Optional[int] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, change_order, rate) -> "ChangeOrderResponse":
        return cls(
            id=change_order.id,
            workOrderId=change_order.work_order_id,
            additionalHours=to_float(change_order.additional_hours),
            additionalCost=to_float(
                quantize_money(to_decimal(change_order.additional_hours) * to_decimal(rate))
            ),
            reason=change_order.reason,
            reasonOther=change_order.reason_other,
            notes=change_order.notes,
            isApproved=change_order.is_approved,
            approvalId=change_order.approval_id,
            requestedById=change_order.requested_by_id,
            createdAt=change_order.created_at,
        )


class ChangeOrderCreatedResponse(BaseModel):
    changeOrder: ChangeOrderResponse
    token: str
    approvalUrl: str
