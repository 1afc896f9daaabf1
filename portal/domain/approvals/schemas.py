"""Approval domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...storage import signature_url
from ..change_orders.schemas import ChangeOrderResponse


class SignerFields(BaseModel):
    """Who is signing: a registered approver, or a typed name"""

    approverId: Optional[int] = None
    approverName: Optional[str] = None
    approverTitle: Optional[str] = None
    signature: str  # data:image/png;base64,...
    deviceInfo: Optional[dict[str, Any]] = None

    @field_validator("approverName", "approverTitle")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class RedeemApprovalRequest(SignerFields):
    workOrderId: int


class BulkSignRequest(SignerFields):
    workOrderIds: list[int]

    @field_validator("workOrderIds")
    @classmethod
    def validate_ids(cls, v):
        if not v:
            raise ValueError("Select at least one work order")
        return list(dict.fromkeys(v))


class ApprovalResponse(BaseModel):
    id: int
    workOrderId: int
    approverId: Optional[int] = None
    approverName: str
    approverTitle: Optional[str] = None
    signatureUrl: Optional[str] = None
    signedAt: datetime
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    deviceInfo: Optional[dict[str, Any]] = None
    workOrderHash: str
    isChangeOrder: bool
    changeOrderId: Optional[int] = None

    @classmethod
    def from_model(cls, approval) -> "ApprovalResponse":
        return cls(
            id=approval.id,
            workOrderId=approval.work_order_id,
            approverId=approval.approver_id,
            approverName=approval.approver_name,
            approverTitle=approval.approver_title,
            signatureUrl=signature_url(approval.signature_key),
            signedAt=approval.signed_at,
            ipAddress=approval.ip_address,
            userAgent=approval.user_agent,
            deviceInfo=approval.device_info,
            workOrderHash=approval.work_order_hash,
            isChangeOrder=approval.is_change_order,
            changeOrderId=approval.change_order_id,
        )


class ApproverOption(BaseModel):
    id: int
    name: str
    title: Optional[str] = None


class ApprovalDataResponse(BaseModel):
    """Everything the public signing page shows"""

    token: str
    expiresAt: datetime
    workOrder: dict[str, Any]
    changeOrder: Optional[ChangeOrderResponse] = None
    approvers: list[ApproverOption]
    organizationName: str


class RedeemApprovalResponse(BaseModel):
    approval: ApprovalResponse
    workOrderId: int
    workOrderStatus: str
    changeOrderId: Optional[int] = None


class BulkSignResponse(BaseModel):
    approvals: list[ApprovalResponse]
    workOrderIds: list[int]
