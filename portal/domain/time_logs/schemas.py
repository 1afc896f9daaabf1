"""Time log schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...constants import POST_PRODUCTION_TYPES, TIME_LOG_CATEGORIES
from ...shared.money import to_float
from ...shared.validators import validate_choice, validate_positive_hours
from ...utils.timezone import parse_org_date, parse_org_time, to_org_date_string, to_org_time_string


class TimeLogFields(BaseModel):
    """Fields shared by single and series entries; all optional here"""

    startTime: Optional[str] = None
    endTime: Optional[str] = None
    hours: Optional[Decimal] = None
    category: Optional[str] = None
    postProductionTypes: Optional[list[str]] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock(cls, v):
        if v:
            parse_org_time(v)
        return v or None

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v):
        if v is None:
            return v
        return validate_positive_hours(v)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return validate_choice(v, TIME_LOG_CATEGORIES, "category")

    @field_validator("postProductionTypes")
    @classmethod
    def validate_post_production_types(cls, v):
        if v is None:
            return v
        for item in v:
            validate_choice(item, POST_PRODUCTION_TYPES, "post-production type")
        return list(dict.fromkeys(v))


class TimeLogCreate(TimeLogFields):
    workOrderId: int
    date: str
    category: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        parse_org_date(v)
        return v


class TimeLogUpdate(TimeLogFields):
    date: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        if v is not None:
            parse_org_date(v)
        return v


class SeriesTimeLogCreate(TimeLogFields):
    """One entry copied onto every eligible work order of a series, dated on its event"""

    category: str


class TimeLogResponse(BaseModel):
    id: int
    workOrderId: int
    date: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    hours: float
    category: str
    postProductionTypes: Optional[list[str]] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    loggedById: Optional[int] = None
    loggedByName: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, log) -> "TimeLogResponse":
        return cls(
            id=log.id,
            workOrderId=log.work_order_id,
            date=to_org_date_string(log.date),
            startTime=to_org_time_string(log.start_time),
            endTime=to_org_time_string(log.end_time),
            hours=to_float(log.hours),
            category=log.category,
            postProductionTypes=log.post_production_types,
            description=log.description,
            notes=log.notes,
            loggedById=log.logged_by_id,
            loggedByName=log.logged_by.full_name if log.logged_by else None,
            createdAt=log.created_at,
        )


class SeriesTimeLogResult(BaseModel):
    seriesId: int
    created: int
    workOrderIds: list[int]
