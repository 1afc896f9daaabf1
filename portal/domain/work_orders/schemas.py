"""Work order domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...constants import ESTIMATE_TYPES, EVENT_TYPES, VENUES
from ...shared.money import to_float
from ...shared.validators import validate_choice
from ...utils.timezone import parse_org_date, parse_org_time, to_org_date_string, to_org_time_string
from ..approvals.schemas import ApprovalResponse
from ..change_orders.schemas import ChangeOrderResponse
from ..time_logs.schemas import TimeLogResponse
from .lifecycle import approved_change_order_rollup, is_editable, work_order_estimate


def check_estimate(values: dict) -> None:
    """Bounds required by each estimate type"""
    estimate_type = values.get("estimateType")
    if estimate_type is None:
        return
    low, high = values.get("estimatedHoursMin"), values.get("estimatedHoursMax")
    if estimate_type == "range":
        if low is None or high is None:
            raise ValueError("Range estimates need both minimum and maximum hours")
        if low > high:
            raise ValueError("Minimum hours cannot exceed maximum hours")
    elif estimate_type == "fixed" and values.get("estimatedHoursFixed") is None:
        raise ValueError("Fixed estimates need a number of hours")
    elif estimate_type == "not_to_exceed" and values.get("estimatedHoursNte") is None:
        raise ValueError("Not-to-exceed estimates need a maximum number of hours")


class EventFields(BaseModel):
    """Fields shared by single work orders and series"""

    eventName: Optional[str] = None
    venue: Optional[str] = None
    venueOther: Optional[str] = None
    eventType: Optional[str] = None
    eventTypeOther: Optional[str] = None
    requestedById: Optional[int] = None
    requestedByName: Optional[str] = None
    authorizedApproverId: Optional[int] = None
    scopeServiceIds: Optional[list[int]] = None
    customScope: Optional[str] = None
    needsPreApproval: Optional[bool] = None
    estimateType: Optional[str] = None
    estimatedHoursMin: Optional[Decimal] = None
    estimatedHoursMax: Optional[Decimal] = None
    estimatedHoursFixed: Optional[Decimal] = None
    estimatedHoursNte: Optional[Decimal] = None
    notes: Optional[str] = None
    internalNotes: Optional[str] = None

    @field_validator("eventName")
    @classmethod
    def validate_event_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Event name is required")
        return v

    @field_validator("venue")
    @classmethod
    def validate_venue(cls, v):
        return validate_choice(v, VENUES, "venue")

    @field_validator("eventType")
    @classmethod
    def validate_event_type(cls, v):
        return validate_choice(v, EVENT_TYPES, "event type")

    @field_validator("estimateType")
    @classmethod
    def validate_estimate_type(cls, v):
        return validate_choice(v, ESTIMATE_TYPES, "estimate type")

    @field_validator(
        "estimatedHoursMin", "estimatedHoursMax", "estimatedHoursFixed", "estimatedHoursNte"
    )
    @classmethod
    def validate_estimate_hours(cls, v):
        if v is not None and v < 0:
            raise ValueError("Estimated hours cannot be negative")
        return v

    @field_validator("scopeServiceIds")
    @classmethod
    def dedupe_scope(cls, v):
        if v is None:
            return v
        return list(dict.fromkeys(v))


class WorkOrderCreate(EventFields):
    eventName: str
    eventDate: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    venue: str
    eventType: str
    needsPreApproval: bool = True
    scopeServiceIds: list[int] = []

    @field_validator("eventDate")
    @classmethod
    def validate_event_date(cls, v):
        parse_org_date(v)
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock(cls, v):
        if v:
            parse_org_time(v)
        return v or None

    @model_validator(mode="after")
    def validate_estimate(self):
        check_estimate(self.__dict__)
        return self


class WorkOrderUpdate(EventFields):
    eventDate: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None

    @field_validator("eventDate")
    @classmethod
    def validate_event_date(cls, v):
        if v is not None:
            parse_org_date(v)
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock(cls, v):
        if v:
            parse_org_time(v)
        return v


class CompleteWorkOrderRequest(BaseModel):
    completionNotes: Optional[str] = None


class EstimateDisplay(BaseModel):
    type: str
    label: str
    amount: Optional[float] = None
    minAmount: Optional[float] = None
    maxAmount: Optional[float] = None


class WorkOrderResponse(BaseModel):
    """Schema for work order response"""

    id: int
    publicId: Optional[str] = None
    eventName: str
    eventDate: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    venue: str
    venueOther: Optional[str] = None
    eventType: str
    eventTypeOther: Optional[str] = None
    requestedById: Optional[int] = None
    requestedByName: Optional[str] = None
    authorizedApproverId: Optional[int] = None
    scopeServiceIds: list[int] = []
    customScope: Optional[str] = None
    needsPreApproval: bool
    estimateType: Optional[str] = None
    estimatedHoursMin: Optional[float] = None
    estimatedHoursMax: Optional[float] = None
    estimatedHoursFixed: Optional[float] = None
    estimatedHoursNte: Optional[float] = None
    estimate: Optional[EstimateDisplay] = None
    actualHours: float
    hourlyRateSnapshot: float
    notes: Optional[str] = None
    internalNotes: Optional[str] = None
    status: str
    isEditable: bool
    seriesId: Optional[int] = None
    invoiceId: Optional[int] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def fields_from_model(cls, wo, include_internal: bool = True) -> dict:
        estimate = work_order_estimate(wo)
        return dict(
            id=wo.id,
            publicId=wo.public_id,
            eventName=wo.event_name,
            eventDate=to_org_date_string(wo.event_date),
            startTime=to_org_time_string(wo.start_time),
            endTime=to_org_time_string(wo.end_time),
            venue=wo.venue,
            venueOther=wo.venue_other,
            eventType=wo.event_type,
            eventTypeOther=wo.event_type_other,
            requestedById=wo.requested_by_id,
            requestedByName=wo.requested_by_name,
            authorizedApproverId=wo.authorized_approver_id,
            scopeServiceIds=wo.scope_service_ids or [],
            customScope=wo.custom_scope,
            needsPreApproval=wo.needs_pre_approval,
            estimateType=wo.estimate_type,
            estimatedHoursMin=to_float(wo.estimated_hours_min),
            estimatedHoursMax=to_float(wo.estimated_hours_max),
            estimatedHoursFixed=to_float(wo.estimated_hours_fixed),
            estimatedHoursNte=to_float(wo.estimated_hours_nte),
            estimate=EstimateDisplay(
                **{k: to_float(v) if k != "type" and k != "label" else v for k, v in estimate.items()}
            )
            if estimate
            else None,
            actualHours=to_float(wo.actual_hours) or 0.0,
            hourlyRateSnapshot=to_float(wo.hourly_rate_snapshot),
            notes=wo.notes,
            internalNotes=wo.internal_notes if include_internal else None,
            status=wo.status,
            isEditable=is_editable(wo.status),
            seriesId=wo.series_id,
            invoiceId=wo.invoice_id,
            createdAt=wo.created_at,
        )

    @classmethod
    def from_model(cls, wo, include_internal: bool = True) -> "WorkOrderResponse":
        return cls(**cls.fields_from_model(wo, include_internal))


class WorkOrderDetailResponse(WorkOrderResponse):
    scopeServiceNames: list[str] = []
    changeOrders: list[ChangeOrderResponse] = []
    additionalApprovedHours: float = 0.0
    additionalApprovedCost: float = 0.0
    approvals: list[ApprovalResponse] = []
    timeLogs: list[TimeLogResponse] = []

    @classmethod
    def from_model(
        cls, wo, include_internal: bool = True, service_names: Optional[dict[int, str]] = None
    ) -> "WorkOrderDetailResponse":
        hours, cost = approved_change_order_rollup(wo.change_orders, wo.hourly_rate_snapshot)
        names = service_names or {}
        return cls(
            **cls.fields_from_model(wo, include_internal),
            scopeServiceNames=[names[i] for i in (wo.scope_service_ids or []) if i in names],
            changeOrders=[
                ChangeOrderResponse.from_model(co, wo.hourly_rate_snapshot)
                for co in sorted(wo.change_orders, key=lambda c: c.id)
            ],
            additionalApprovedHours=to_float(hours),
            additionalApprovedCost=to_float(cost),
            approvals=[
                ApprovalResponse.from_model(a) for a in sorted(wo.approvals, key=lambda a: a.id)
            ],
            timeLogs=[TimeLogResponse.from_model(t) for t in wo.time_logs],
        )


class SubmitForApprovalResponse(BaseModel):
    workOrder: WorkOrderResponse
    token: str
    approvalUrl: str
