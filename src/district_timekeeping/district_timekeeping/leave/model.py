from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import AssignmentStatus, LeaveStatus
from ..timecards.model import TimeCard


@dataclass(frozen=True)
class LeaveType:
    leave_type_id: int
    district_id: int
    name: str
    is_paid: bool = True
    description: Optional[str] = None
    max_days_per_year: Optional[int] = None


@dataclass(frozen=True)
class LeaveRequest:
    leave_request_id: int
    district_id: int
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    reason: Optional[str]
    substitute_required: bool
    status: LeaveStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewLeaveRequest:
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None
    substitute_required: bool = False


@dataclass(frozen=True)
class SubstituteAssignment:
    assignment_id: int
    district_id: int
    leave_request_id: int
    substitute_employee_id: int
    assigned_date: datetime
    status: AssignmentStatus
    notes: Optional[str] = None


@dataclass(frozen=True)
class LeaveRequestCreated:
    """Outcome of ``create_leave_request``.

    ``notes`` collects informational messages (e.g. no substitute could be
    recommended); they never indicate that the request failed.
    """

    leave_request: LeaveRequest
    time_cards: Sequence[TimeCard]
    substitute_assignment: Optional[SubstituteAssignment] = None
    notes: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class LeaveRequestDecision:
    leave_request: LeaveRequest
    time_cards: Sequence[TimeCard] = field(default_factory=tuple)
    count: int = 0
    removed_count: int = 0
