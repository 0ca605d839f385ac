from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, ContextManager, List, Optional, Protocol, Sequence, Tuple

from ..audit.service import AuditTrail
from ..common.datetime_utils import iter_weekdays, now_local
from ..common.logging_config import get_logger
from ..common.validators import require_date_range
from ..core.constants import (
    APPROVED_FIELD,
    DEFAULT_LIST_LIMIT,
    DEFAULT_RECOMMENDATION_MAX_WORKERS,
    DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS,
    PRELIMINARY_ENTRY_FIELD,
    STANDARD_DAY_HOURS,
)
from ..core.context import ActorContext
from ..core.enums import (
    ApprovalStage,
    AssignmentStatus,
    LeaveStatus,
    Role,
    TimeCardKind,
    TimeCardStatus,
)
from ..core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..employees.model import Employee
from ..employees.repository import EmployeeDirectory
from ..recommendations.ranker import NullSubstituteRanker, SubstituteRanker
from ..timecards.model import NewTimeCard, TimeCard
from ..timecards.repository import TimeCardRepository
from ..workflow.approval import ApprovalStateMachine
from ..workflow.tenant import require_same_district
from .model import (
    LeaveRequest,
    LeaveRequestCreated,
    LeaveRequestDecision,
    LeaveType,
    NewLeaveRequest,
    SubstituteAssignment,
)
from .repository import LeaveRequestRepository, LeaveTypeRepository, SubstituteAssignmentRepository

logger = get_logger("leave")


class TransactionManager(Protocol):
    def transaction(self) -> ContextManager[None]:
        raise NotImplementedError


class LeaveRequestLifecycleManager:
    """pending -> approved | rejected, with the time cards that follow the leave.

    Creation writes one preliminary draft card per weekday; approval reconciles
    them into submitted cards; rejection deletes the ones nobody touched.
    """

    def __init__(
        self,
        leave_requests: LeaveRequestRepository,
        leave_types: LeaveTypeRepository,
        assignments: SubstituteAssignmentRepository,
        time_cards: TimeCardRepository,
        employees: EmployeeDirectory,
        approvals: ApprovalStateMachine,
        audit: AuditTrail,
        transactions: TransactionManager,
        *,
        ranker: Optional[SubstituteRanker] = None,
        executor: Optional[Executor] = None,
        recommendation_timeout: float = DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS,
        standard_day_hours: Decimal = STANDARD_DAY_HOURS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._leave_requests = leave_requests
        self._leave_types = leave_types
        self._assignments = assignments
        self._time_cards = time_cards
        self._employees = employees
        self._approvals = approvals
        self._audit = audit
        self._transactions = transactions
        self._ranker = ranker or NullSubstituteRanker()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=DEFAULT_RECOMMENDATION_MAX_WORKERS, thread_name_prefix="substitute-ranking"
        )
        self._recommendation_timeout = float(recommendation_timeout)
        self._standard_day_hours = Decimal(standard_day_hours)
        self._clock = clock

    # -------- Guards --------
    def _require_acting_for(self, ctx: ActorContext, employee_id: int) -> Employee:
        if not ctx.has_role(Role.ADMIN, Role.HR):
            me = self._employees.get_employee_by_user(ctx, ctx.actor_id)
            if me is None or me.employee_id != int(employee_id):
                raise AuthorizationError("You can only request leave for yourself")

        employee = self._employees.get_employee(ctx, int(employee_id))
        if employee is None:
            raise NotFoundError("employee", employee_id)
        return require_same_district(ctx, employee)

    def _require_leave_type(self, ctx: ActorContext, leave_type_id: int) -> LeaveType:
        leave_type = self._leave_types.get_leave_type(district_id=ctx.district_id, leave_type_id=int(leave_type_id))
        if leave_type is None:
            raise ValidationError(f"Unknown leave type {leave_type_id}", leave_type_id=leave_type_id)
        return require_same_district(ctx, leave_type)

    def _require_leave_request(self, ctx: ActorContext, leave_request_id: int) -> LeaveRequest:
        leave = self._leave_requests.get_leave_request(
            district_id=ctx.district_id, leave_request_id=int(leave_request_id)
        )
        if leave is None:
            raise NotFoundError("leave request", leave_request_id)
        return require_same_district(ctx, leave)

    # -------- Create --------
    def create_leave_request(
        self,
        ctx: ActorContext,
        *,
        employee_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
        substitute_required: bool = False,
    ) -> LeaveRequestCreated:
        employee = self._require_acting_for(ctx, employee_id)
        leave_type = self._require_leave_type(ctx, leave_type_id)
        require_date_range(start_date, end_date)

        with self._transactions.transaction():
            leave_request_id = self._leave_requests.create_leave_request(
                district_id=ctx.district_id,
                request=NewLeaveRequest(
                    employee_id=employee.employee_id,
                    leave_type_id=leave_type.leave_type_id,
                    start_date=start_date,
                    end_date=end_date,
                    reason=(reason or "").strip() or None,
                    substitute_required=bool(substitute_required),
                ),
            )
            for day in iter_weekdays(start_date, end_date):
                self._time_cards.create(
                    district_id=ctx.district_id,
                    card=self._leave_card(employee, leave_type, leave_request_id, day, preliminary=True),
                )
            leave = self._require_leave_request(ctx, leave_request_id)
            cards = self._time_cards.list_for_leave_request(
                district_id=ctx.district_id, leave_request_id=leave_request_id
            )

        logger.info(
            "leave request created",
            extra={
                "district_id": ctx.district_id,
                "actor_id": ctx.actor_id,
                "leave_request_id": leave.leave_request_id,
                "employee_id": employee.employee_id,
                "time_cards": len(cards),
            },
        )

        assignment: Optional[SubstituteAssignment] = None
        notes: List[str] = []
        if leave.substitute_required:
            assignment, notes = self._assign_substitute(ctx, leave)

        self._audit.record(
            ctx,
            action="create_leave_request",
            entity_type="leave_request",
            entity_id=leave.leave_request_id,
            description=f"Created leave request for employee {employee.employee_id}",
        )
        return LeaveRequestCreated(
            leave_request=leave,
            time_cards=tuple(cards),
            substitute_assignment=assignment,
            notes=tuple(notes),
        )

    def _leave_card(
        self,
        employee: Employee,
        leave_type: LeaveType,
        leave_request_id: int,
        day: date,
        *,
        preliminary: bool,
        submitted_by: Optional[int] = None,
    ) -> NewTimeCard:
        if preliminary:
            return NewTimeCard(
                kind=TimeCardKind.REGULAR,
                worker_id=employee.employee_id,
                work_date=day,
                total_hours=self._standard_day_hours,
                leave_request_id=int(leave_request_id),
                leave_type=leave_type.name,
                is_paid_leave=bool(leave_type.is_paid),
                custom_fields={PRELIMINARY_ENTRY_FIELD: True},
                notes=f"Leave: {leave_type.name}",
            )
        return NewTimeCard(
            kind=TimeCardKind.REGULAR,
            worker_id=employee.employee_id,
            work_date=day,
            total_hours=self._standard_day_hours,
            leave_request_id=int(leave_request_id),
            leave_type=leave_type.name,
            is_paid_leave=bool(leave_type.is_paid),
            custom_fields={PRELIMINARY_ENTRY_FIELD: False, APPROVED_FIELD: True},
            notes=f"Leave: {leave_type.name}",
            status=TimeCardStatus.SECRETARY_SUBMITTED,
            current_approval_stage=ApprovalStage.EMPLOYEE,
            submitted_by=submitted_by,
            submitted_at=self._clock(),
        )

    def _substitute_pool(self, ctx: ActorContext) -> List[Employee]:
        return [
            c
            for c in self._employees.list_available_substitutes(ctx)
            if c.district_id == ctx.district_id and c.is_active
        ]

    def _assign_substitute(
        self, ctx: ActorContext, leave: LeaveRequest
    ) -> Tuple[Optional[SubstituteAssignment], List[str]]:
        """Best effort: every failure becomes a note, nothing is raised."""
        try:
            candidates = self._substitute_pool(ctx)
        except Exception:
            logger.warning(
                "substitute pool lookup failed",
                exc_info=True,
                extra={"district_id": ctx.district_id, "leave_request_id": leave.leave_request_id},
            )
            return None, ["Substitute pool could not be loaded; assign a substitute manually"]

        if not candidates:
            return None, ["No substitutes are available in this district"]

        future = self._executor.submit(self._ranker.rank, leave, candidates)
        try:
            recommendations = list(future.result(timeout=self._recommendation_timeout))
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "substitute ranking timed out",
                extra={
                    "district_id": ctx.district_id,
                    "leave_request_id": leave.leave_request_id,
                    "timeout_seconds": self._recommendation_timeout,
                },
            )
            return None, [f"Substitute recommendation timed out after {self._recommendation_timeout:g}s"]
        except Exception as exc:
            logger.warning(
                "substitute ranking failed",
                exc_info=True,
                extra={"district_id": ctx.district_id, "leave_request_id": leave.leave_request_id},
            )
            return None, [f"Substitute recommendation unavailable: {exc}"]

        if not recommendations:
            return None, ["No substitute recommendation was returned"]

        best = recommendations[0]
        pool = {c.employee_id for c in candidates}
        if best.substitute_id not in pool:
            logger.warning(
                "recommended substitute outside candidate pool",
                extra={
                    "district_id": ctx.district_id,
                    "leave_request_id": leave.leave_request_id,
                    "substitute_id": best.substitute_id,
                },
            )
            return None, [f"Recommended substitute {best.substitute_id} is not available"]

        try:
            assignment_id = self._assignments.create_assignment(
                district_id=ctx.district_id,
                leave_request_id=leave.leave_request_id,
                substitute_employee_id=best.substitute_id,
                assigned_date=self._clock(),
                status=AssignmentStatus.ASSIGNED,
                notes=f"Auto-assigned based on substitute recommendation ({best.match_score:g} match score)",
            )
        except Exception:
            logger.warning(
                "substitute assignment failed",
                exc_info=True,
                extra={"district_id": ctx.district_id, "leave_request_id": leave.leave_request_id},
            )
            return None, ["Substitute assignment could not be saved; assign a substitute manually"]

        assignment = next(
            (
                a
                for a in self._assignments.list_assignments(
                    district_id=ctx.district_id, leave_request_id=leave.leave_request_id
                )
                if a.assignment_id == assignment_id
            ),
            None,
        )
        self._audit.record(
            ctx,
            action="create_substitute_assignment",
            entity_type="substitute_assignment",
            entity_id=assignment_id,
            description=(
                f"Assigned substitute {best.substitute_id} to leave request {leave.leave_request_id}"
            ),
        )
        return assignment, []

    # -------- Decide --------
    def _decide(self, ctx: ActorContext, leave_request_id: int, status: LeaveStatus, approver_id: int) -> LeaveRequest:
        leave = self._require_leave_request(ctx, leave_request_id)
        if leave.status != LeaveStatus.PENDING:
            raise InvalidStateError(
                f"leave request {leave.leave_request_id} is already {leave.status.value}",
                expected=LeaveStatus.PENDING.value,
                current=leave.status.value,
            )
        decided = self._leave_requests.decide_leave_request(
            district_id=ctx.district_id,
            leave_request_id=leave.leave_request_id,
            status=status,
            decided_by=int(approver_id),
            at=self._clock(),
        )
        if not decided:
            current = self._require_leave_request(ctx, leave_request_id)
            raise InvalidStateError(
                f"leave request {leave.leave_request_id} is already {current.status.value}",
                expected=LeaveStatus.PENDING.value,
                current=current.status.value,
            )
        return self._require_leave_request(ctx, leave_request_id)

    def approve_leave_request(
        self, ctx: ActorContext, *, leave_request_id: int, approver_id: int
    ) -> LeaveRequestDecision:
        with self._transactions.transaction():
            leave = self._decide(ctx, leave_request_id, LeaveStatus.APPROVED, approver_id)
            cards = self._reconcile_time_cards(ctx, leave, actor_id=int(approver_id))

        logger.info(
            "leave request approved",
            extra={
                "district_id": ctx.district_id,
                "actor_id": int(approver_id),
                "leave_request_id": leave.leave_request_id,
                "time_cards": len(cards),
            },
        )
        self._audit.record(
            ctx,
            action="approve_leave_request",
            entity_type="leave_request",
            entity_id=leave.leave_request_id,
            description=f"Approved leave request {leave.leave_request_id} ({len(cards)} time cards)",
        )
        return LeaveRequestDecision(leave_request=leave, time_cards=tuple(cards), count=len(cards))

    def reject_leave_request(
        self, ctx: ActorContext, *, leave_request_id: int, approver_id: int
    ) -> LeaveRequestDecision:
        with self._transactions.transaction():
            leave = self._decide(ctx, leave_request_id, LeaveStatus.REJECTED, approver_id)
            removed = self._time_cards.delete_preliminary_drafts(
                district_id=ctx.district_id, leave_request_id=leave.leave_request_id
            )

        logger.info(
            "leave request rejected",
            extra={
                "district_id": ctx.district_id,
                "actor_id": int(approver_id),
                "leave_request_id": leave.leave_request_id,
                "removed_time_cards": removed,
            },
        )
        self._audit.record(
            ctx,
            action="reject_leave_request",
            entity_type="leave_request",
            entity_id=leave.leave_request_id,
            description=f"Rejected leave request {leave.leave_request_id} ({removed} preliminary time cards removed)",
        )
        return LeaveRequestDecision(leave_request=leave, removed_count=removed)

    # -------- Reconcile --------
    def ensure_time_cards_for_leave_request(
        self, ctx: ActorContext, *, leave_request_id: int, actor_id: Optional[int] = None
    ) -> LeaveRequestDecision:
        """Idempotent: safe to re-run on an approved leave request."""
        with self._transactions.transaction():
            leave = self._require_leave_request(ctx, leave_request_id)
            if leave.status != LeaveStatus.APPROVED:
                raise InvalidStateError(
                    f"time cards are only reconciled for approved leave; "
                    f"leave request {leave.leave_request_id} is {leave.status.value}",
                    expected=LeaveStatus.APPROVED.value,
                    current=leave.status.value,
                )
            cards = self._reconcile_time_cards(
                ctx, leave, actor_id=int(actor_id) if actor_id is not None else ctx.actor_id
            )
        return LeaveRequestDecision(leave_request=leave, time_cards=tuple(cards), count=len(cards))

    def _reconcile_time_cards(self, ctx: ActorContext, leave: LeaveRequest, *, actor_id: int) -> Sequence[TimeCard]:
        """Advance every unlocked draft of the leave, then fill weekdays that have no card.

        Returns only the cards this call advanced or created.
        """
        existing = self._time_cards.list_for_leave_request(
            district_id=ctx.district_id, leave_request_id=leave.leave_request_id
        )
        affected: set[int] = set()

        for card in existing:
            if card.status != TimeCardStatus.DRAFT:
                continue
            if card.locked:
                logger.warning(
                    "locked draft leave card left as-is",
                    extra={
                        "district_id": ctx.district_id,
                        "leave_request_id": leave.leave_request_id,
                        "time_card_id": card.time_card_id,
                        "locked_by": card.locked_by,
                    },
                )
                continue
            self._approvals.submit_for_approval(
                ctx,
                kind=TimeCardKind.REGULAR,
                time_card_id=card.time_card_id,
                submitted_by=actor_id,
                notes=f"Leave request {leave.leave_request_id} approved",
            )
            self._time_cards.mark_reconciled(district_id=ctx.district_id, time_card_id=card.time_card_id)
            affected.add(card.time_card_id)

        covered = {c.work_date for c in existing}
        missing = [day for day in iter_weekdays(leave.start_date, leave.end_date) if day not in covered]
        if missing:
            employee = self._employees.get_employee(ctx, leave.employee_id)
            if employee is None:
                raise NotFoundError("employee", leave.employee_id)
            leave_type = self._require_leave_type(ctx, leave.leave_type_id)
            for day in missing:
                card_id = self._time_cards.create(
                    district_id=ctx.district_id,
                    card=self._leave_card(
                        employee, leave_type, leave.leave_request_id, day, preliminary=False, submitted_by=actor_id
                    ),
                )
                affected.add(int(card_id))

        if not affected:
            return []
        return [
            c
            for c in self._time_cards.list_for_leave_request(
                district_id=ctx.district_id, leave_request_id=leave.leave_request_id
            )
            if c.time_card_id in affected
        ]

    # -------- Reads --------
    def get_leave_request(self, ctx: ActorContext, *, leave_request_id: int) -> LeaveRequest:
        return self._require_leave_request(ctx, leave_request_id)

    def list_leave_requests(
        self,
        ctx: ActorContext,
        *,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[LeaveRequest]:
        return self._leave_requests.list_leave_requests(
            district_id=ctx.district_id,
            status=status,
            employee_id=int(employee_id) if employee_id is not None else None,
            limit=limit,
        )

    def list_pending(self, ctx: ActorContext, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[LeaveRequest]:
        return self.list_leave_requests(ctx, status=LeaveStatus.PENDING, limit=limit)

    def list_leave_types(self, ctx: ActorContext) -> Sequence[LeaveType]:
        return self._leave_types.get_leave_types(district_id=ctx.district_id)

    def list_assignments_for_leave_request(
        self, ctx: ActorContext, *, leave_request_id: int
    ) -> Sequence[SubstituteAssignment]:
        leave = self._require_leave_request(ctx, leave_request_id)
        return self._assignments.list_assignments(
            district_id=ctx.district_id, leave_request_id=leave.leave_request_id
        )

    def list_available_substitutes(self, ctx: ActorContext) -> Sequence[Employee]:
        return self._substitute_pool(ctx)

    def list_substitute_assignments(
        self, ctx: ActorContext, *, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[SubstituteAssignment]:
        return self._assignments.list_recent_assignments(district_id=ctx.district_id, limit=limit)
