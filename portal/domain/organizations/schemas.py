"""Organization schemas"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.money import to_float
from ...shared.validators import validate_email, validate_us_phone


class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    invoicePrefix: Optional[str] = None
    hourlyRate: Optional[Decimal] = None
    monthlyRetainer: Optional[Decimal] = None
    paymentTerms: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Organization name cannot be empty")
        return v.strip() if v else v

    @field_validator("invoicePrefix")
    @classmethod
    def validate_prefix(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if not re.match(r"^[A-Z0-9]{1,20}$", v):
            raise ValueError("Invoice prefix must be 1-20 letters or digits")
        return v

    @field_validator("hourlyRate", "monthlyRetainer")
    @classmethod
    def validate_amounts(cls, v):
        if v is not None and v < 0:
            raise ValueError("Amount cannot be negative")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_us_phone(v)

    @field_validator("email")
    @classmethod
    def validate_org_email(cls, v):
        return validate_email(v)


class OrganizationResponse(BaseModel):
    id: int
    name: str
    slug: str
    invoicePrefix: str
    nextInvoiceNumber: int
    hourlyRate: Optional[float] = None
    monthlyRetainer: Optional[float] = None
    paymentTerms: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, org) -> "OrganizationResponse":
        return cls(
            id=org.id,
            name=org.name,
            slug=org.slug,
            invoicePrefix=org.invoice_prefix,
            nextInvoiceNumber=org.next_invoice_number,
            hourlyRate=to_float(org.hourly_rate),
            monthlyRetainer=to_float(org.monthly_retainer),
            paymentTerms=org.payment_terms,
            address=org.address,
            phone=org.phone,
            email=org.email,
            createdAt=org.created_at,
        )
