from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AssignmentStatus, LeaveStatus
from .model import LeaveRequest, LeaveType, NewLeaveRequest, SubstituteAssignment


class LeaveRequestRepository(Protocol):
    def create_leave_request(self, *, district_id: int, request: NewLeaveRequest) -> int:
        raise NotImplementedError

    def get_leave_request(self, *, district_id: int, leave_request_id: int) -> Optional[LeaveRequest]:
        raise NotImplementedError

    def list_leave_requests(
        self,
        *,
        district_id: int,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[LeaveRequest]:
        raise NotImplementedError

    def decide_leave_request(
        self,
        *,
        district_id: int,
        leave_request_id: int,
        status: LeaveStatus,
        decided_by: int,
        at: datetime,
    ) -> bool:
        """Move a pending request to ``status``. False when it is no longer pending."""

        raise NotImplementedError


class LeaveTypeRepository(Protocol):
    def get_leave_types(self, *, district_id: int) -> Sequence[LeaveType]:
        raise NotImplementedError

    def get_leave_type(self, *, district_id: int, leave_type_id: int) -> Optional[LeaveType]:
        raise NotImplementedError


class SubstituteAssignmentRepository(Protocol):
    def create_assignment(
        self,
        *,
        district_id: int,
        leave_request_id: int,
        substitute_employee_id: int,
        assigned_date: datetime,
        status: AssignmentStatus,
        notes: Optional[str],
    ) -> int:
        raise NotImplementedError

    def list_assignments(self, *, district_id: int, leave_request_id: int) -> Sequence[SubstituteAssignment]:
        raise NotImplementedError

    def list_recent_assignments(self, *, district_id: int, limit: int = 200) -> Sequence[SubstituteAssignment]:
        raise NotImplementedError
