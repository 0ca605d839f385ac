from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.context import ActorContext
from .model import Employee


class EmployeeDirectory(Protocol):
    def get_employee(self, ctx: ActorContext, employee_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def get_employee_by_user(self, ctx: ActorContext, user_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def list_available_substitutes(self, ctx: ActorContext) -> Sequence[Employee]:
        """Active employees of type substitute in the caller's district."""

        raise NotImplementedError
