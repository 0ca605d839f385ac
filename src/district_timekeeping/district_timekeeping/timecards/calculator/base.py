from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional


class HoursCalculator(ABC):
    """Calculator interface (Strategy Pattern for worked hours)."""

    @abstractmethod
    def worked_hours(
        self,
        *,
        clock_in: datetime,
        clock_out: Optional[datetime],
        break_start: Optional[datetime] = None,
        break_end: Optional[datetime] = None,
    ) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    def overtime_hours(self, total_hours: Decimal) -> Decimal:
        raise NotImplementedError
