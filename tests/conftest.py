from __future__ import annotations

import copy
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime

import pytest

from district_timekeeping.audit.model import ActivityLog
from district_timekeeping.container import Container, assemble_container
from district_timekeeping.core.constants import PRELIMINARY_ENTRY_FIELD
from district_timekeeping.core.context import ActorContext
from district_timekeeping.core.enums import (
    ApprovalStage,
    EmployeeType,
    LeaveStatus,
    Role,
    TimeCardKind,
    TimeCardStatus,
)
from district_timekeeping.employees.model import Employee
from district_timekeeping.leave.model import LeaveRequest, LeaveType, SubstituteAssignment
from district_timekeeping.timecards.model import TimeCard

FIXED_NOW = datetime(2024, 1, 15, 9, 30)

DISTRICT = 1
OTHER_DISTRICT = 2

# user ids carried in the actor context
EMPLOYEE_USER = 100
SECRETARY_USER = 400
ADMIN_USER = 300
PAYROLL_USER = 600
HR_USER = 700
OTHER_DISTRICT_ADMIN_USER = 900

# employee ids
TEACHER_ID = 10
SUBSTITUTE_ID = 20
SECOND_SUBSTITUTE_ID = 21
INACTIVE_SUBSTITUTE_ID = 22
COLLEAGUE_ID = 11
OTHER_DISTRICT_EMPLOYEE_ID = 50

SICK_LEAVE_ID = 1
UNPAID_LEAVE_ID = 2
OTHER_DISTRICT_LEAVE_TYPE_ID = 3


class FakeTimeCardRepo:
    """Thread-safe in-memory store; ``apply_transition`` is a real compare-and-swap."""

    def __init__(self):
        self._lock = threading.RLock()
        self._next_id = 1
        self._cards: dict[tuple[TimeCardKind, int], TimeCard] = {}
        self.fail_on_create_after: int | None = None
        self.created = 0

    def snapshot(self):
        with self._lock:
            return (self._next_id, dict(self._cards), self.created)

    def restore(self, state):
        with self._lock:
            self._next_id, cards, self.created = state
            self._cards = dict(cards)

    def all(self, kind: TimeCardKind = TimeCardKind.REGULAR) -> list[TimeCard]:
        with self._lock:
            return sorted((c for (k, _), c in self._cards.items() if k == kind), key=lambda c: c.time_card_id)

    def put(self, card: TimeCard) -> TimeCard:
        with self._lock:
            self._cards[(card.kind, card.time_card_id)] = card
            self._next_id = max(self._next_id, card.time_card_id + 1)
        return card

    def discard(self, card: TimeCard) -> None:
        with self._lock:
            del self._cards[(card.kind, card.time_card_id)]

    def create(self, *, district_id, card):
        with self._lock:
            if self.fail_on_create_after is not None and self.created >= self.fail_on_create_after:
                raise RuntimeError("simulated storage failure")
            card_id = self._next_id
            self._next_id += 1
            self.created += 1
            self._cards[(card.kind, card_id)] = TimeCard(
                time_card_id=card_id,
                district_id=int(district_id),
                kind=card.kind,
                worker_id=card.worker_id,
                work_date=card.work_date,
                status=card.status,
                current_approval_stage=card.current_approval_stage,
                clock_in=card.clock_in,
                clock_out=card.clock_out,
                break_start=card.break_start,
                break_end=card.break_end,
                total_hours=card.total_hours,
                overtime_hours=card.overtime_hours,
                leave_request_id=card.leave_request_id,
                leave_type=card.leave_type,
                is_paid_leave=card.is_paid_leave,
                assignment_id=card.assignment_id,
                custom_fields=dict(card.custom_fields),
                submitted_by=card.submitted_by,
                submitted_at=card.submitted_at,
                notes=card.notes,
                created_at=FIXED_NOW,
            )
            return card_id

    def get(self, *, district_id, kind, time_card_id):
        with self._lock:
            card = self._cards.get((kind, int(time_card_id)))
        if card is None or card.district_id != int(district_id):
            return None
        return card

    def _filter(self, district_id, kind, pred, limit=200):
        with self._lock:
            cards = [
                c
                for (k, _), c in self._cards.items()
                if k == kind and c.district_id == int(district_id) and pred(c)
            ]
        cards.sort(key=lambda c: (c.work_date, c.time_card_id), reverse=True)
        return cards[: int(limit)]

    def list_for_worker(self, *, district_id, kind, worker_id, limit=200):
        return self._filter(district_id, kind, lambda c: c.worker_id == int(worker_id), limit)

    def list_by_date_range(self, *, district_id, kind, start_date, end_date, limit=200):
        return self._filter(district_id, kind, lambda c: start_date <= c.work_date <= end_date, limit)

    def list_by_stage(self, *, district_id, kind, stage, limit=200):
        return self._filter(district_id, kind, lambda c: c.current_approval_stage == stage, limit)

    def list_pending(self, *, district_id, kind, limit=200):
        return self._filter(district_id, kind, lambda c: c.status != TimeCardStatus.DRAFT, limit)

    def list_for_leave_request(self, *, district_id, leave_request_id):
        cards = self._filter(
            district_id, TimeCardKind.REGULAR, lambda c: c.leave_request_id == int(leave_request_id), 10_000
        )
        return sorted(cards, key=lambda c: (c.work_date, c.time_card_id))

    def apply_transition(
        self, *, district_id, kind, time_card_id, rule, expected_status, expected_stage, actor_id, notes, at
    ):
        with self._lock:
            card = self._cards.get((kind, int(time_card_id)))
            if (
                card is None
                or card.district_id != int(district_id)
                or card.status != expected_status
                or card.current_approval_stage != expected_stage
                or card.locked
            ):
                return False
            changes = {
                "status": rule.to_status,
                rule.actor_column: int(actor_id),
                rule.timestamp_column: at,
            }
            if rule.to_stage is not None:
                changes["current_approval_stage"] = rule.to_stage
            if notes is not None:
                changes[rule.notes_column] = notes
            self._cards[(kind, card.time_card_id)] = replace(card, **changes)
            return True

    def set_lock(self, *, district_id, kind, time_card_id, locked_by, reason, at):
        with self._lock:
            card = self.get(district_id=district_id, kind=kind, time_card_id=time_card_id)
            if card is None:
                return False
            self._cards[(kind, card.time_card_id)] = replace(
                card, locked=True, locked_by=int(locked_by), lock_reason=reason, locked_at=at
            )
            return True

    def clear_lock(self, *, district_id, kind, time_card_id):
        with self._lock:
            card = self.get(district_id=district_id, kind=kind, time_card_id=time_card_id)
            if card is None:
                return False
            self._cards[(kind, card.time_card_id)] = replace(
                card, locked=False, locked_by=None, lock_reason=None, locked_at=None
            )
            return True

    def mark_reconciled(self, *, district_id, time_card_id):
        with self._lock:
            card = self.get(district_id=district_id, kind=TimeCardKind.REGULAR, time_card_id=time_card_id)
            if card is None:
                return False
            fields = dict(card.custom_fields)
            fields.update({PRELIMINARY_ENTRY_FIELD: False, "approved": True})
            self._cards[(TimeCardKind.REGULAR, card.time_card_id)] = replace(card, custom_fields=fields)
            return True

    def delete_preliminary_drafts(self, *, district_id, leave_request_id):
        with self._lock:
            doomed = [
                key
                for key, c in self._cards.items()
                if key[0] == TimeCardKind.REGULAR
                and c.district_id == int(district_id)
                and c.leave_request_id == int(leave_request_id)
                and c.status == TimeCardStatus.DRAFT
                and not c.locked
                and c.custom_fields.get(PRELIMINARY_ENTRY_FIELD) is True
            ]
            for key in doomed:
                del self._cards[key]
            return len(doomed)


class FakeLeaveRepo:
    def __init__(self, leave_types):
        self._next_request_id = 1
        self._next_assignment_id = 1
        self.requests: dict[int, LeaveRequest] = {}
        self.assignments: dict[int, SubstituteAssignment] = {}
        self.types = {t.leave_type_id: t for t in leave_types}
        self.fail_on_assignment = False

    def snapshot(self):
        return (self._next_request_id, self._next_assignment_id, dict(self.requests), dict(self.assignments))

    def restore(self, state):
        self._next_request_id, self._next_assignment_id, requests, assignments = state
        self.requests = dict(requests)
        self.assignments = dict(assignments)

    def create_leave_request(self, *, district_id, request):
        rid = self._next_request_id
        self._next_request_id += 1
        self.requests[rid] = LeaveRequest(
            leave_request_id=rid,
            district_id=int(district_id),
            employee_id=request.employee_id,
            leave_type_id=request.leave_type_id,
            start_date=request.start_date,
            end_date=request.end_date,
            reason=request.reason,
            substitute_required=request.substitute_required,
            status=LeaveStatus.PENDING,
            created_at=FIXED_NOW,
        )
        return rid

    def get_leave_request(self, *, district_id, leave_request_id):
        req = self.requests.get(int(leave_request_id))
        return req if req and req.district_id == int(district_id) else None

    def list_leave_requests(self, *, district_id, status=None, employee_id=None, limit=200):
        rows = [
            r
            for r in self.requests.values()
            if r.district_id == int(district_id)
            and (status is None or r.status == status)
            and (employee_id is None or r.employee_id == int(employee_id))
        ]
        return sorted(rows, key=lambda r: r.leave_request_id, reverse=True)[: int(limit)]

    def decide_leave_request(self, *, district_id, leave_request_id, status, decided_by, at):
        req = self.get_leave_request(district_id=district_id, leave_request_id=leave_request_id)
        if req is None or req.status != LeaveStatus.PENDING:
            return False
        self.requests[req.leave_request_id] = replace(req, status=status, approved_by=int(decided_by), approved_at=at)
        return True

    def get_leave_types(self, *, district_id):
        return [t for t in self.types.values() if t.district_id == int(district_id)]

    def get_leave_type(self, *, district_id, leave_type_id):
        t = self.types.get(int(leave_type_id))
        return t if t and t.district_id == int(district_id) else None

    def create_assignment(self, *, district_id, leave_request_id, substitute_employee_id, assigned_date, status, notes):
        if self.fail_on_assignment:
            raise RuntimeError("assignment table unavailable")
        aid = self._next_assignment_id
        self._next_assignment_id += 1
        self.assignments[aid] = SubstituteAssignment(
            assignment_id=aid,
            district_id=int(district_id),
            leave_request_id=int(leave_request_id),
            substitute_employee_id=int(substitute_employee_id),
            assigned_date=assigned_date,
            status=status,
            notes=notes,
        )
        return aid

    def list_assignments(self, *, district_id, leave_request_id):
        return [
            a
            for a in self.assignments.values()
            if a.district_id == int(district_id) and a.leave_request_id == int(leave_request_id)
        ]

    def list_recent_assignments(self, *, district_id, limit=200):
        mine = [a for a in self.assignments.values() if a.district_id == int(district_id)]
        mine.sort(key=lambda a: (a.assigned_date, a.assignment_id), reverse=True)
        return mine[:limit]


class FakeEmployeeDirectory:
    def __init__(self, employees):
        self._employees = {e.employee_id: e for e in employees}

    def get_employee(self, ctx, employee_id):
        e = self._employees.get(int(employee_id))
        return e if e and e.district_id == ctx.district_id else None

    def get_employee_by_user(self, ctx, user_id):
        for e in self._employees.values():
            if e.user_id == int(user_id) and e.district_id == ctx.district_id:
                return e
        return None

    def list_available_substitutes(self, ctx):
        return [
            e
            for e in self._employees.values()
            if e.district_id == ctx.district_id and e.employee_type == EmployeeType.SUBSTITUTE and e.is_active
        ]


class FakeAuditSink:
    def __init__(self):
        self.entries: list[ActivityLog] = []
        self.fail = False

    def record(self, *, district_id, actor_id, action, entity_type, entity_id, description):
        if self.fail:
            raise RuntimeError("activity log unavailable")
        self.entries.append(
            ActivityLog(
                activity_log_id=len(self.entries) + 1,
                district_id=district_id,
                user_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                created_at=FIXED_NOW,
            )
        )

    def list_for_entity(self, *, district_id, entity_type, entity_id, limit=200):
        return [
            e
            for e in reversed(self.entries)
            if e.district_id == district_id and e.entity_type == entity_type and e.entity_id == entity_id
        ][:limit]

    def actions(self) -> list[str]:
        return [e.action for e in self.entries]


class FakeTransactionManager:
    """Snapshot/restore over the fake stores; nested blocks join the outer one."""

    def __init__(self, *stores):
        self._stores = stores
        self._depth = 0
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        states = [s.snapshot() for s in self._stores]
        self._depth = 1
        try:
            yield
        except BaseException:
            for store, state in zip(self._stores, states):
                store.restore(state)
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
        finally:
            self._depth = 0


def _employees():
    return [
        Employee(TEACHER_ID, DISTRICT, "Ada", "Lovelace", EmployeeType.TEACHER, user_id=EMPLOYEE_USER),
        Employee(COLLEAGUE_ID, DISTRICT, "Alan", "Turing", EmployeeType.TEACHER, user_id=101),
        Employee(SUBSTITUTE_ID, DISTRICT, "Grace", "Hopper", EmployeeType.SUBSTITUTE, user_id=200),
        Employee(SECOND_SUBSTITUTE_ID, DISTRICT, "Edsger", "Dijkstra", EmployeeType.SUBSTITUTE, user_id=201),
        Employee(
            INACTIVE_SUBSTITUTE_ID, DISTRICT, "Old", "Timer", EmployeeType.SUBSTITUTE, status="inactive", user_id=202
        ),
        Employee(30, DISTRICT, "Barbara", "Liskov", EmployeeType.ADMINISTRATOR, user_id=ADMIN_USER),
        Employee(OTHER_DISTRICT_EMPLOYEE_ID, OTHER_DISTRICT, "Ken", "Thompson", EmployeeType.TEACHER, user_id=500),
    ]


def _leave_types():
    return [
        LeaveType(SICK_LEAVE_ID, DISTRICT, "Sick Leave", is_paid=True),
        LeaveType(UNPAID_LEAVE_ID, DISTRICT, "Unpaid Leave", is_paid=False),
        LeaveType(OTHER_DISTRICT_LEAVE_TYPE_ID, OTHER_DISTRICT, "Vacation", is_paid=True),
    ]


@dataclass
class Stack:
    time_cards: FakeTimeCardRepo
    leave_repo: FakeLeaveRepo
    employees: FakeEmployeeDirectory
    audit_sink: FakeAuditSink
    transactions: FakeTransactionManager
    container: Container

    def card(self, time_card_id: int, kind: TimeCardKind = TimeCardKind.REGULAR) -> TimeCard:
        found = self.time_cards.get(district_id=DISTRICT, kind=kind, time_card_id=time_card_id)
        assert found is not None
        return found

    def add_card(self, **overrides) -> TimeCard:
        values = dict(
            time_card_id=self.time_cards.snapshot()[0],
            district_id=DISTRICT,
            kind=TimeCardKind.REGULAR,
            worker_id=TEACHER_ID,
            work_date=FIXED_NOW.date(),
            status=TimeCardStatus.DRAFT,
            current_approval_stage=ApprovalStage.SECRETARY,
        )
        values.update(overrides)
        return self.time_cards.put(TimeCard(**values))


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=False)


@pytest.fixture
def make_stack(executor):
    def factory(*, ranker=None, recommendation_timeout: float = 1.0) -> Stack:
        time_cards = FakeTimeCardRepo()
        leave_repo = FakeLeaveRepo(_leave_types())
        employees = FakeEmployeeDirectory(_employees())
        audit_sink = FakeAuditSink()
        transactions = FakeTransactionManager(time_cards, leave_repo)
        container = assemble_container(
            employees=employees,
            time_cards=time_cards,
            leave_requests=leave_repo,
            leave_types=leave_repo,
            assignments=leave_repo,
            audit_sink=audit_sink,
            transactions=transactions,
            ranker=ranker,
            executor=executor,
            recommendation_timeout=recommendation_timeout,
        )
        return Stack(time_cards, leave_repo, employees, audit_sink, transactions, container)

    return factory


@pytest.fixture
def stack(make_stack) -> Stack:
    return make_stack()


@pytest.fixture
def admin_ctx() -> ActorContext:
    return ActorContext(actor_id=ADMIN_USER, role=Role.ADMIN, district_id=DISTRICT)


@pytest.fixture
def secretary_ctx() -> ActorContext:
    return ActorContext(actor_id=SECRETARY_USER, role=Role.SECRETARY, district_id=DISTRICT)


@pytest.fixture
def employee_ctx() -> ActorContext:
    return ActorContext(actor_id=EMPLOYEE_USER, role=Role.EMPLOYEE, district_id=DISTRICT)


@pytest.fixture
def payroll_ctx() -> ActorContext:
    return ActorContext(actor_id=PAYROLL_USER, role=Role.PAYROLL, district_id=DISTRICT)


@pytest.fixture
def hr_ctx() -> ActorContext:
    return ActorContext(actor_id=HR_USER, role=Role.HR, district_id=DISTRICT)


@pytest.fixture
def other_district_ctx() -> ActorContext:
    return ActorContext(actor_id=OTHER_DISTRICT_ADMIN_USER, role=Role.ADMIN, district_id=OTHER_DISTRICT)
