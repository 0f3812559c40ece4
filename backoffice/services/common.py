"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Enum validation
- Billing-month and calendar arithmetic
- Monetary rounding
- Timestamp normalisation
"""

from __future__ import annotations

import calendar
import uuid
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from fastapi import HTTPException

from backoffice.config import settings


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid id: {value}") from exc


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Args:
        value: Value to validate (can be None)
        enum_cls: Enum class to validate against
        label: Human-readable label for error messages

    Returns:
        Enum member or None if value is None

    Raises:
        HTTPException: 400 if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}") from exc


def require_reason(reason: str | None, label: str = "reason") -> str:
    """Return the stripped reason or raise 400 when it is blank."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail=f"A {label} is required")
    return cleaned


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round monetary value to 2 decimal places using half-up rounding.

    Args:
        value: Monetary value to round

    Returns:
        Decimal rounded to 2 decimal places
    """
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def billing_today() -> date:
    """Current calendar date in the billing timezone."""
    return datetime.now(ZoneInfo(settings.billing_timezone)).date()


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def current_billing_month() -> date:
    return first_of_month(billing_today())


def previous_billing_month(month: date | None = None) -> date:
    month = first_of_month(month or billing_today())
    if month.month == 1:
        return date(month.year - 1, 12, 1)
    return date(month.year, month.month - 1, 1)


def next_billing_month(month: date) -> date:
    month = first_of_month(month)
    if month.month == 12:
        return date(month.year + 1, 1, 1)
    return date(month.year, month.month + 1, 1)


def clamp_day(month: date, day: int) -> date:
    """Return ``day`` within ``month``, clamped to the month's last day."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=max(1, min(day, last_day)))


def parse_month(value) -> date:
    """Parse ``YYYY-MM`` (or any date) into a first-of-month date.

    Raises:
        HTTPException: 400 if the value is not a month
    """
    if isinstance(value, datetime):
        return first_of_month(value.date())
    if isinstance(value, date):
        return first_of_month(value)
    text = str(value or "").strip()
    try:
        parsed = datetime.strptime(text[:7], "%Y-%m")
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid billing month: {value!r} (expected YYYY-MM)"
        ) from exc
    return date(parsed.year, parsed.month, 1)


def format_month(value: date) -> str:
    return value.strftime("%Y-%m")
