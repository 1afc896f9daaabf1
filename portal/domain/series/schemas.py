"""Series schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...utils.timezone import parse_org_date, parse_org_time
from ..work_orders.schemas import EventFields, WorkOrderResponse, check_estimate


class SeriesDate(BaseModel):
    date: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        parse_org_date(v)
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock(cls, v):
        if v:
            parse_org_time(v)
        return v or None


class SeriesCreate(EventFields):
    """Shared event details plus one entry per date"""

    name: str
    description: Optional[str] = None
    allowBulkApproval: bool = True
    eventName: str
    venue: str
    eventType: str
    needsPreApproval: bool = False
    scopeServiceIds: list[int] = []
    dates: list[SeriesDate]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Series name is required")
        return v

    @field_validator("dates")
    @classmethod
    def validate_dates(cls, v):
        if not v:
            raise ValueError("At least one date is required")
        return v

    @model_validator(mode="after")
    def validate_estimate(self):
        if self.needsPreApproval:
            check_estimate(self.__dict__)
        return self


class AssignToSeriesRequest(BaseModel):
    seriesId: Optional[int] = None
    newSeriesName: Optional[str] = None

    @model_validator(mode="after")
    def validate_target(self):
        if self.seriesId is None and not (self.newSeriesName or "").strip():
            raise ValueError("Choose a series or give a name for a new one")
        return self


class SeriesResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    allowBulkApproval: bool
    workOrderCount: int
    statusCounts: dict[str, int]
    createdAt: Optional[datetime] = None

    @classmethod
    def fields_from_model(cls, series) -> dict:
        counts: dict[str, int] = {}
        for wo in series.work_orders:
            counts[wo.status] = counts.get(wo.status, 0) + 1
        return dict(
            id=series.id,
            name=series.name,
            description=series.description,
            allowBulkApproval=series.allow_bulk_approval,
            workOrderCount=len(series.work_orders),
            statusCounts=counts,
            createdAt=series.created_at,
        )

    @classmethod
    def from_model(cls, series) -> "SeriesResponse":
        return cls(**cls.fields_from_model(series))


class SeriesDetailResponse(SeriesResponse):
    workOrders: list[WorkOrderResponse]

    @classmethod
    def from_model(cls, series, include_internal: bool = True) -> "SeriesDetailResponse":
        members = sorted(series.work_orders, key=lambda wo: (wo.event_date, wo.id))
        return cls(
            **cls.fields_from_model(series),
            workOrders=[WorkOrderResponse.from_model(wo, include_internal) for wo in members],
        )


class SubmittedWorkOrder(BaseModel):
    workOrderId: int
    token: str
    approvalUrl: str


class SubmitSeriesResponse(BaseModel):
    seriesId: int
    submitted: list[SubmittedWorkOrder]
