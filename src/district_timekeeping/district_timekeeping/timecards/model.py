from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from ..core.constants import APPROVED_FIELD, PRELIMINARY_ENTRY_FIELD
from ..core.enums import ApprovalStage, TimeCardKind, TimeCardStatus


@dataclass(frozen=True)
class TimeCard:
    """One worker's record for one work date.

    ``worker_id`` is the employee id for regular cards and the substitute's
    employee id for substitute cards.
    """

    time_card_id: int
    district_id: int
    kind: TimeCardKind
    worker_id: int
    work_date: date
    status: TimeCardStatus
    current_approval_stage: ApprovalStage
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    overtime_hours: Decimal = Decimal("0")
    leave_request_id: Optional[int] = None
    leave_type: Optional[str] = None
    is_paid_leave: bool = False
    assignment_id: Optional[int] = None
    custom_fields: Mapping[str, Any] = field(default_factory=dict)
    locked: bool = False
    locked_by: Optional[int] = None
    lock_reason: Optional[str] = None
    locked_at: Optional[datetime] = None
    submitted_by: Optional[int] = None
    submitted_at: Optional[datetime] = None
    secretary_notes: Optional[str] = None
    employee_approved_by: Optional[int] = None
    employee_approved_at: Optional[datetime] = None
    employee_notes: Optional[str] = None
    admin_approved_by: Optional[int] = None
    admin_approved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    payroll_processed_by: Optional[int] = None
    payroll_processed_at: Optional[datetime] = None
    payroll_notes: Optional[str] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_preliminary(self) -> bool:
        return bool(self.custom_fields.get(PRELIMINARY_ENTRY_FIELD, False))

    @property
    def is_reconciled(self) -> bool:
        return bool(self.custom_fields.get(APPROVED_FIELD, False))


@dataclass(frozen=True)
class NewTimeCard:
    """Insert payload; cards start as drafts at the secretary stage unless a
    caller (leave reconciliation) creates them already submitted."""

    kind: TimeCardKind
    worker_id: int
    work_date: date
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    overtime_hours: Decimal = Decimal("0")
    leave_request_id: Optional[int] = None
    leave_type: Optional[str] = None
    is_paid_leave: bool = False
    assignment_id: Optional[int] = None
    custom_fields: Mapping[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None
    status: TimeCardStatus = TimeCardStatus.DRAFT
    current_approval_stage: ApprovalStage = ApprovalStage.SECRETARY
    submitted_by: Optional[int] = None
    submitted_at: Optional[datetime] = None
