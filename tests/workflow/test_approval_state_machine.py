from __future__ import annotations

import threading

import pytest

from district_timekeeping.core.enums import ApprovalStage, TimeCardKind, TimeCardStatus
from district_timekeeping.core.exceptions import InvalidStateError, LockedError, NotFoundError
from district_timekeeping.workflow.approval import check_transition
from district_timekeeping.workflow.stages import Transition, rule_for

from conftest import ADMIN_USER, DISTRICT, PAYROLL_USER, SECRETARY_USER, SUBSTITUTE_ID, TEACHER_ID


@pytest.mark.parametrize("kind", list(TimeCardKind))
def test_full_pipeline_for_both_kinds(stack, admin_ctx, kind):
    worker = SUBSTITUTE_ID if kind is TimeCardKind.SUBSTITUTE else TEACHER_ID
    card = stack.add_card(kind=kind, worker_id=worker)
    sm = stack.container.approvals

    submitted = sm.submit_for_approval(admin_ctx, kind=kind, time_card_id=card.time_card_id, submitted_by=SECRETARY_USER)
    assert submitted.status == TimeCardStatus.SECRETARY_SUBMITTED
    assert submitted.current_approval_stage == ApprovalStage.EMPLOYEE
    assert submitted.submitted_by == SECRETARY_USER
    assert submitted.submitted_at is not None

    approved = sm.approve_by_employee(
        admin_ctx, kind=kind, time_card_id=card.time_card_id, employee_id=100, notes="looks right"
    )
    assert approved.status == TimeCardStatus.EMPLOYEE_APPROVED
    assert approved.current_approval_stage == ApprovalStage.ADMIN
    assert approved.employee_notes == "looks right"

    admin = sm.approve_by_admin(admin_ctx, kind=kind, time_card_id=card.time_card_id, admin_id=ADMIN_USER)
    assert admin.status == TimeCardStatus.ADMIN_APPROVED
    assert admin.current_approval_stage == ApprovalStage.PAYROLL

    done = sm.process_by_payroll(admin_ctx, kind=kind, time_card_id=card.time_card_id, payroll_id=PAYROLL_USER)
    assert done.status == TimeCardStatus.PAYROLL_PROCESSED
    assert done.current_approval_stage == ApprovalStage.PAYROLL
    assert done.payroll_processed_by == PAYROLL_USER
    assert done.payroll_processed_at is not None

    assert stack.audit_sink.actions() == [
        f"submit_{kind.value}_time_card",
        f"approve_by_employee_{kind.value}_time_card",
        f"approve_by_admin_{kind.value}_time_card",
        f"process_by_payroll_{kind.value}_time_card",
    ]


def test_admin_approve_on_secretary_card_is_refused_and_card_unchanged(stack, admin_ctx):
    card = stack.add_card()

    with pytest.raises(InvalidStateError) as exc:
        stack.container.approvals.approve_by_admin(
            admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, admin_id=ADMIN_USER
        )

    message = str(exc.value)
    assert "admin-approve" in message
    assert "current stage is secretary" in message
    assert "expected admin" in message
    assert exc.value.details["expected"] == "admin"
    assert exc.value.details["current"] == "secretary"
    assert stack.card(card.time_card_id) == card
    assert stack.audit_sink.entries == []


def test_reject_from_any_non_terminal_stage_keeps_stage(stack, admin_ctx):
    card = stack.add_card(
        status=TimeCardStatus.EMPLOYEE_APPROVED, current_approval_stage=ApprovalStage.ADMIN
    )

    rejected = stack.container.approvals.reject(
        admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, rejected_by=ADMIN_USER, notes="wrong day"
    )

    assert rejected.status == TimeCardStatus.REJECTED
    assert rejected.current_approval_stage == ApprovalStage.ADMIN
    assert rejected.rejected_by == ADMIN_USER
    assert rejected.notes == "wrong day"


@pytest.mark.parametrize("terminal", [TimeCardStatus.REJECTED, TimeCardStatus.PAYROLL_PROCESSED])
@pytest.mark.parametrize("transition", list(Transition))
def test_terminal_cards_refuse_every_transition(stack, admin_ctx, terminal, transition):
    card = stack.add_card(status=terminal, current_approval_stage=ApprovalStage.PAYROLL)

    with pytest.raises(InvalidStateError):
        stack.container.approvals.apply(
            admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, transition=transition, actor_id=1
        )
    assert stack.card(card.time_card_id).status == terminal


@pytest.mark.parametrize("transition", list(Transition))
def test_locked_card_refuses_all_transitions_until_unlocked(stack, admin_ctx, transition):
    stage = rule_for(transition).expected_stage or ApprovalStage.SECRETARY
    status = rule_for(transition).from_statuses[0]
    card = stack.add_card(status=status, current_approval_stage=stage)
    stack.container.locks.lock(
        admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, locked_by=ADMIN_USER, reason="payroll run"
    )

    with pytest.raises(LockedError) as exc:
        stack.container.approvals.apply(
            admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, transition=transition, actor_id=1
        )
    assert exc.value.details["lock_reason"] == "payroll run"
    assert stack.card(card.time_card_id).status == status

    stack.container.locks.unlock(admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id)
    moved = stack.container.approvals.apply(
        admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, transition=transition, actor_id=1
    )
    assert moved.status == rule_for(transition).to_status


def test_lock_is_checked_before_stage(stack, admin_ctx):
    card = stack.add_card(locked=True, locked_by=ADMIN_USER)

    # wrong stage AND locked: the lock wins
    with pytest.raises(LockedError):
        stack.container.approvals.approve_by_admin(
            admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, admin_id=ADMIN_USER
        )


def test_unknown_card_is_not_found(stack, admin_ctx):
    with pytest.raises(NotFoundError) as exc:
        stack.container.approvals.submit_for_approval(
            admin_ctx, kind=TimeCardKind.SUBSTITUTE, time_card_id=999, submitted_by=SECRETARY_USER
        )
    assert "substitute time card 999" in str(exc.value)


def test_other_districts_card_is_not_found(stack, other_district_ctx):
    card = stack.add_card()

    with pytest.raises(NotFoundError):
        stack.container.approvals.submit_for_approval(
            other_district_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, submitted_by=1
        )
    assert stack.card(card.time_card_id).status == TimeCardStatus.DRAFT


def test_concurrent_payroll_processing_has_exactly_one_winner(stack, payroll_ctx):
    card = stack.add_card(status=TimeCardStatus.ADMIN_APPROVED, current_approval_stage=ApprovalStage.PAYROLL)
    barrier = threading.Barrier(2)
    results: list[str] = []
    lock = threading.Lock()

    def worker(actor_id: int):
        barrier.wait()
        try:
            stack.container.approvals.process_by_payroll(
                payroll_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, payroll_id=actor_id
            )
            outcome = "ok"
        except InvalidStateError:
            outcome = "conflict"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(actor,)) for actor in (601, 602)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["conflict", "ok"]
    assert stack.card(card.time_card_id).status == TimeCardStatus.PAYROLL_PROCESSED
    assert stack.audit_sink.actions().count("process_by_payroll_regular_time_card") == 1


def test_lost_race_is_reported_against_the_current_state(stack, admin_ctx, monkeypatch):
    card = stack.add_card()
    real_apply = stack.time_cards.apply_transition

    def racing_apply(**kwargs):
        # another request submits first
        real_apply(**kwargs)
        return False

    monkeypatch.setattr(stack.time_cards, "apply_transition", racing_apply)

    with pytest.raises(InvalidStateError) as exc:
        stack.container.approvals.submit_for_approval(
            admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, submitted_by=SECRETARY_USER
        )
    assert exc.value.details["current"] in {"employee", "secretary_submitted"}


def test_audit_failure_does_not_undo_transition(stack, admin_ctx):
    stack.audit_sink.fail = True
    card = stack.add_card()

    updated = stack.container.approvals.submit_for_approval(
        admin_ctx, kind=TimeCardKind.REGULAR, time_card_id=card.time_card_id, submitted_by=SECRETARY_USER
    )
    assert updated.status == TimeCardStatus.SECRETARY_SUBMITTED


def test_check_transition_names_expected_status_when_stage_matches(stack):
    card = stack.add_card(status=TimeCardStatus.EMPLOYEE_APPROVED, current_approval_stage=ApprovalStage.SECRETARY)

    with pytest.raises(InvalidStateError) as exc:
        check_transition(card, rule_for(Transition.SUBMIT))
    assert "expected draft" in str(exc.value)
    assert card.district_id == DISTRICT
