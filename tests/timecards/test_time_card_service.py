from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from district_timekeeping.core.enums import ApprovalStage, TimeCardKind, TimeCardStatus
from district_timekeeping.core.exceptions import NotFoundError, ValidationError

from conftest import OTHER_DISTRICT_EMPLOYEE_ID, SECRETARY_USER, SUBSTITUTE_ID, TEACHER_ID

DAY = date(2024, 1, 2)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 2, hour, minute)


def test_create_computes_hours_and_overtime_from_clock_times(stack, secretary_ctx):
    card = stack.container.time_card_service.create_time_card(
        secretary_ctx,
        kind=TimeCardKind.REGULAR,
        worker_id=TEACHER_ID,
        work_date=DAY,
        clock_in=_at(7),
        clock_out=_at(17, 30),
        break_start=_at(12),
        break_end=_at(12, 30),
        notes="  ",
    )

    assert card.status == TimeCardStatus.DRAFT
    assert card.current_approval_stage == ApprovalStage.SECRETARY
    assert card.total_hours == Decimal("10.00")
    assert card.overtime_hours == Decimal("2.00")
    assert card.notes is None
    assert stack.audit_sink.actions() == ["create_regular_time_card"]


def test_explicit_hours_win_over_clock_times(stack, secretary_ctx):
    card = stack.container.time_card_service.create_time_card(
        secretary_ctx,
        kind=TimeCardKind.REGULAR,
        worker_id=TEACHER_ID,
        work_date=DAY,
        clock_in=_at(8),
        clock_out=_at(16),
        total_hours=Decimal("4"),
    )
    assert card.total_hours == Decimal("4")
    assert card.overtime_hours == Decimal("0.00")


def test_substitute_card_requires_a_substitute(stack, secretary_ctx):
    service = stack.container.time_card_service

    with pytest.raises(ValidationError):
        service.create_time_card(secretary_ctx, kind=TimeCardKind.SUBSTITUTE, worker_id=TEACHER_ID, work_date=DAY)

    card = service.create_time_card(
        secretary_ctx, kind=TimeCardKind.SUBSTITUTE, worker_id=SUBSTITUTE_ID, work_date=DAY, assignment_id=7
    )
    assert card.kind is TimeCardKind.SUBSTITUTE
    assert card.assignment_id == 7
    assert stack.audit_sink.actions() == ["create_substitute_time_card"]


def test_regular_card_ignores_assignment(stack, secretary_ctx):
    card = stack.container.time_card_service.create_time_card(
        secretary_ctx, kind=TimeCardKind.REGULAR, worker_id=TEACHER_ID, work_date=DAY, assignment_id=7
    )
    assert card.assignment_id is None


@pytest.mark.parametrize(
    "times",
    [
        dict(clock_out=_at(17)),
        dict(clock_in=_at(17), clock_out=_at(8)),
        dict(clock_in=_at(8), clock_out=_at(17), break_start=_at(12)),
        dict(clock_in=_at(8), clock_out=_at(17), break_start=_at(13), break_end=_at(12)),
        dict(clock_in=_at(8), clock_out=_at(17), break_start=_at(7), break_end=_at(9)),
        dict(clock_in=_at(8), clock_out=_at(17), break_start=_at(16), break_end=_at(18)),
    ],
)
def test_inconsistent_clock_times_are_rejected(stack, secretary_ctx, times):
    with pytest.raises(ValidationError):
        stack.container.time_card_service.create_time_card(
            secretary_ctx, kind=TimeCardKind.REGULAR, worker_id=TEACHER_ID, work_date=DAY, **times
        )
    assert stack.time_cards.all() == []


def test_worker_from_another_district_is_not_found(stack, secretary_ctx):
    with pytest.raises(NotFoundError):
        stack.container.time_card_service.create_time_card(
            secretary_ctx, kind=TimeCardKind.REGULAR, worker_id=OTHER_DISTRICT_EMPLOYEE_ID, work_date=DAY
        )


def test_reads_are_scoped_and_filtered(stack, secretary_ctx, other_district_ctx):
    service = stack.container.time_card_service
    draft = stack.add_card(work_date=date(2024, 1, 1))
    submitted = stack.add_card(
        work_date=date(2024, 1, 3),
        status=TimeCardStatus.SECRETARY_SUBMITTED,
        current_approval_stage=ApprovalStage.EMPLOYEE,
        submitted_by=SECRETARY_USER,
    )
    stack.add_card(kind=TimeCardKind.SUBSTITUTE, worker_id=SUBSTITUTE_ID, work_date=date(2024, 1, 3))
    stack.add_card(district_id=2, worker_id=OTHER_DISTRICT_EMPLOYEE_ID, work_date=date(2024, 1, 3))

    assert service.get_by_id(secretary_ctx, kind=TimeCardKind.REGULAR, time_card_id=draft.time_card_id) == draft
    assert [c.time_card_id for c in service.list_by_employee(secretary_ctx, kind=TimeCardKind.REGULAR, worker_id=TEACHER_ID)] == [
        submitted.time_card_id,
        draft.time_card_id,
    ]
    in_range = service.list_by_date_range(
        secretary_ctx, kind=TimeCardKind.REGULAR, start_date=date(2024, 1, 2), end_date=date(2024, 1, 5)
    )
    assert [c.time_card_id for c in in_range] == [submitted.time_card_id]
    assert [c.time_card_id for c in service.list_by_stage(secretary_ctx, kind=TimeCardKind.REGULAR, stage=ApprovalStage.SECRETARY)] == [
        draft.time_card_id
    ]
    assert [c.time_card_id for c in service.list_pending(secretary_ctx, kind=TimeCardKind.REGULAR)] == [
        submitted.time_card_id
    ]
    assert len(service.list_pending(secretary_ctx, kind=TimeCardKind.SUBSTITUTE)) == 0

    with pytest.raises(NotFoundError):
        service.get_by_id(other_district_ctx, kind=TimeCardKind.REGULAR, time_card_id=draft.time_card_id)


def test_date_range_must_be_ordered(stack, secretary_ctx):
    with pytest.raises(ValidationError):
        stack.container.time_card_service.list_by_date_range(
            secretary_ctx, kind=TimeCardKind.REGULAR, start_date=date(2024, 1, 5), end_date=date(2024, 1, 1)
        )
