from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_positive_int(value: Any, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return number


def require_date_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError(
            f"End date {end.isoformat()} is before start date {start.isoformat()}",
            start_date=start.isoformat(),
            end_date=end.isoformat(),
        )


def optional_hours(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        hours = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if hours < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return hours
