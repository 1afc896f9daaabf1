"""Shared validation utilities"""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_choice(value: Optional[str], allowed: Iterable[str], field: str) -> Optional[str]:
    """Reject values outside a closed set"""
    if value is None:
        return value
    if value not in allowed:
        raise ValueError(f"Invalid {field}: {value}")
    return value


def validate_positive_hours(value) -> Decimal:
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise ValueError("Hours must be a number") from e
    if hours <= 0:
        raise ValueError("Hours must be greater than 0")
    return hours
