from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator

from ..core.constants import WEEKEND_DAYS
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date {value!r}, expected a YYYY-MM-DD string")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def parse_iso_datetime(value: str | None) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid timestamp {value!r}, expected an ISO 8601 string")
    v = value.strip()
    if not v:
        return None
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"Invalid timestamp {value!r}, expected ISO 8601")


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def iter_weekdays(start: date, end: date) -> Iterator[date]:
    """Every Monday-Friday from start to end, both inclusive."""
    day = start
    while day <= end:
        if day.weekday() not in WEEKEND_DAYS:
            yield day
        day += timedelta(days=1)
