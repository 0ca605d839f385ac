from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import EmployeeType


@dataclass(frozen=True)
class Employee:
    """Directory read-model; employee CRUD lives outside this service."""

    employee_id: int
    district_id: int
    first_name: str
    last_name: str
    employee_type: EmployeeType
    status: str = "active"
    user_id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == "active"
