"""Stage catalog for the time-card approval pipeline.

The pipeline is a fixed sequence of roles::

    secretary -> employee -> admin -> payroll

Each role owns exactly one forward transition. ``reject`` is the only
transition that is valid from any non-terminal stage; it leaves the stage
untouched so the record shows where in the pipeline it was stopped.

Everything here is pure data: no storage access, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.enums import ApprovalStage, TimeCardStatus

STAGE_ORDER: tuple[ApprovalStage, ...] = (
    ApprovalStage.SECRETARY,
    ApprovalStage.EMPLOYEE,
    ApprovalStage.ADMIN,
    ApprovalStage.PAYROLL,
)

NON_TERMINAL_STATUSES: tuple[TimeCardStatus, ...] = tuple(s for s in TimeCardStatus if not s.is_terminal)


class Transition(str, Enum):
    SUBMIT = "submit"
    APPROVE_BY_EMPLOYEE = "approve_by_employee"
    APPROVE_BY_ADMIN = "approve_by_admin"
    PROCESS_BY_PAYROLL = "process_by_payroll"
    REJECT = "reject"


@dataclass(frozen=True)
class TransitionRule:
    transition: Transition
    verb: str
    # Statuses the card may be in; expected_stage None means "any stage"
    from_statuses: tuple[TimeCardStatus, ...]
    expected_stage: Optional[ApprovalStage]
    to_status: TimeCardStatus
    # None leaves the stage as it is
    to_stage: Optional[ApprovalStage]
    actor_column: str
    timestamp_column: str
    notes_column: str


def next_stage(current: ApprovalStage) -> Optional[ApprovalStage]:
    """Stage after ``current``; None once payroll has been reached."""
    idx = STAGE_ORDER.index(current)
    if idx + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[idx + 1]


_FORWARD: dict[Transition, tuple[ApprovalStage, TimeCardStatus, TimeCardStatus, str, str]] = {
    Transition.SUBMIT: (
        ApprovalStage.SECRETARY, TimeCardStatus.DRAFT, TimeCardStatus.SECRETARY_SUBMITTED, "submit", "submitted",
    ),
    Transition.APPROVE_BY_EMPLOYEE: (
        ApprovalStage.EMPLOYEE,
        TimeCardStatus.SECRETARY_SUBMITTED,
        TimeCardStatus.EMPLOYEE_APPROVED,
        "employee-approve",
        "employee_approved",
    ),
    Transition.APPROVE_BY_ADMIN: (
        ApprovalStage.ADMIN,
        TimeCardStatus.EMPLOYEE_APPROVED,
        TimeCardStatus.ADMIN_APPROVED,
        "admin-approve",
        "admin_approved",
    ),
    Transition.PROCESS_BY_PAYROLL: (
        ApprovalStage.PAYROLL,
        TimeCardStatus.ADMIN_APPROVED,
        TimeCardStatus.PAYROLL_PROCESSED,
        "payroll-process",
        "payroll_processed",
    ),
}

_NOTES_COLUMN = {
    ApprovalStage.SECRETARY: "secretary_notes",
    ApprovalStage.EMPLOYEE: "employee_notes",
    ApprovalStage.ADMIN: "admin_notes",
    ApprovalStage.PAYROLL: "payroll_notes",
}


def _build_rules() -> dict[Transition, TransitionRule]:
    rules: dict[Transition, TransitionRule] = {}
    for transition, (stage, from_status, to_status, verb, column_prefix) in _FORWARD.items():
        rules[transition] = TransitionRule(
            transition=transition,
            verb=verb,
            from_statuses=(from_status,),
            expected_stage=stage,
            to_status=to_status,
            # processing by payroll freezes the stage at payroll
            to_stage=next_stage(stage) or stage,
            actor_column=f"{column_prefix}_by",
            timestamp_column=f"{column_prefix}_at",
            notes_column=_NOTES_COLUMN[stage],
        )
    rules[Transition.REJECT] = TransitionRule(
        transition=Transition.REJECT,
        verb="reject",
        from_statuses=NON_TERMINAL_STATUSES,
        expected_stage=None,
        to_status=TimeCardStatus.REJECTED,
        to_stage=None,
        actor_column="rejected_by",
        timestamp_column="rejected_at",
        notes_column="notes",
    )
    return rules


_RULES = _build_rules()


def rule_for(transition: Transition) -> TransitionRule:
    return _RULES[Transition(transition)]


def expected_stage_for(transition: Transition) -> ApprovalStage:
    """Stage a card must be at for ``transition``.

    ``reject`` has no single expected stage and raises ValueError.
    """
    stage = rule_for(transition).expected_stage
    if stage is None:
        raise ValueError(f"{Transition(transition).value} is valid from any non-terminal stage")
    return stage
