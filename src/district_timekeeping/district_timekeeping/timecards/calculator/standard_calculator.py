from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...core.constants import STANDARD_DAY_HOURS
from .base import HoursCalculator

_CENTS = Decimal("0.01")


class StandardHoursCalculator(HoursCalculator):
    """Standard rule: (out - in) - break, not below 0; overtime above a standard day."""

    def __init__(self, *, standard_day_hours: Decimal = STANDARD_DAY_HOURS):
        self._standard_day_hours = Decimal(standard_day_hours)

    def worked_hours(
        self,
        *,
        clock_in: datetime,
        clock_out: Optional[datetime],
        break_start: Optional[datetime] = None,
        break_end: Optional[datetime] = None,
    ) -> Decimal:
        if not clock_out:
            return Decimal("0.00")
        minutes = int((clock_out - clock_in).total_seconds() // 60)
        if break_start and break_end:
            minutes -= int((break_end - break_start).total_seconds() // 60)
        minutes = max(minutes, 0)
        return (Decimal(minutes) / Decimal(60)).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def overtime_hours(self, total_hours: Decimal) -> Decimal:
        return max(Decimal(total_hours) - self._standard_day_hours, Decimal("0.00")).quantize(_CENTS)
