from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..audit.service import AuditTrail
from ..common.logging_config import get_logger
from ..common.validators import require_date_range
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.context import ActorContext
from ..core.enums import ApprovalStage, EmployeeType, TimeCardKind
from ..core.exceptions import NotFoundError, ValidationError
from ..employees.repository import EmployeeDirectory
from ..workflow.tenant import require_same_district, require_time_card
from .calculator.base import HoursCalculator
from .calculator.standard_calculator import StandardHoursCalculator
from .model import NewTimeCard, TimeCard
from .repository import TimeCardRepository

logger = get_logger("timecards")


class TimeCardService:
    """Manual time-card entry and district-scoped reads for both card kinds."""

    def __init__(
        self,
        time_cards: TimeCardRepository,
        employees: EmployeeDirectory,
        audit: AuditTrail,
        *,
        calculator: Optional[HoursCalculator] = None,
    ):
        self._time_cards = time_cards
        self._employees = employees
        self._audit = audit
        self._calculator = calculator or StandardHoursCalculator()

    def _require_worker(self, ctx: ActorContext, kind: TimeCardKind, worker_id: int) -> None:
        worker = self._employees.get_employee(ctx, int(worker_id))
        if worker is None:
            raise NotFoundError("employee", worker_id)
        require_same_district(ctx, worker)
        if kind is TimeCardKind.SUBSTITUTE and worker.employee_type != EmployeeType.SUBSTITUTE:
            raise ValidationError(f"Employee {worker_id} is not a substitute")

    @staticmethod
    def _check_clock_times(
        clock_in: Optional[datetime],
        clock_out: Optional[datetime],
        break_start: Optional[datetime],
        break_end: Optional[datetime],
    ) -> None:
        if clock_out and not clock_in:
            raise ValidationError("Clock-out given without clock-in")
        if clock_in and clock_out and clock_out < clock_in:
            raise ValidationError("Clock-out cannot be earlier than clock-in")
        if bool(break_start) != bool(break_end):
            raise ValidationError("Break needs both a start and an end")
        if break_start and break_end:
            if break_end < break_start:
                raise ValidationError("Break end cannot be earlier than break start")
            if (clock_in and break_start < clock_in) or (clock_out and break_end > clock_out):
                raise ValidationError("Break must fall inside the worked period")

    def create_time_card(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        worker_id: int,
        work_date: date,
        clock_in: Optional[datetime] = None,
        clock_out: Optional[datetime] = None,
        break_start: Optional[datetime] = None,
        break_end: Optional[datetime] = None,
        total_hours: Optional[Decimal] = None,
        overtime_hours: Optional[Decimal] = None,
        assignment_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> TimeCard:
        self._require_worker(ctx, kind, worker_id)
        self._check_clock_times(clock_in, clock_out, break_start, break_end)

        if total_hours is None and clock_in and clock_out:
            total_hours = self._calculator.worked_hours(
                clock_in=clock_in, clock_out=clock_out, break_start=break_start, break_end=break_end
            )
        if overtime_hours is None:
            overtime_hours = self._calculator.overtime_hours(total_hours) if total_hours is not None else Decimal("0")

        card_id = self._time_cards.create(
            district_id=ctx.district_id,
            card=NewTimeCard(
                kind=kind,
                worker_id=int(worker_id),
                work_date=work_date,
                clock_in=clock_in,
                clock_out=clock_out,
                break_start=break_start,
                break_end=break_end,
                total_hours=total_hours,
                overtime_hours=overtime_hours,
                assignment_id=assignment_id if kind is TimeCardKind.SUBSTITUTE else None,
                notes=(notes or "").strip() or None,
            ),
        )
        card = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=card_id)
        logger.info(
            "time card created",
            extra={"district_id": ctx.district_id, "kind": kind.value, "time_card_id": card_id, "worker_id": int(worker_id)},
        )
        self._audit.record(
            ctx,
            action=f"create_{kind.value}_time_card",
            entity_type=f"{kind.value}_time_card",
            entity_id=card_id,
            description=f"Created {kind.label} for worker {worker_id} on {work_date.isoformat()}",
        )
        return card

    def get_by_id(self, ctx: ActorContext, *, kind: TimeCardKind, time_card_id: int) -> TimeCard:
        return require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)

    def list_by_employee(
        self, ctx: ActorContext, *, kind: TimeCardKind, worker_id: int, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[TimeCard]:
        return self._time_cards.list_for_worker(
            district_id=ctx.district_id, kind=kind, worker_id=int(worker_id), limit=limit
        )

    def list_by_date_range(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        start_date: date,
        end_date: date,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[TimeCard]:
        require_date_range(start_date, end_date)
        return self._time_cards.list_by_date_range(
            district_id=ctx.district_id, kind=kind, start_date=start_date, end_date=end_date, limit=limit
        )

    def list_by_stage(
        self, ctx: ActorContext, *, kind: TimeCardKind, stage: ApprovalStage, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[TimeCard]:
        return self._time_cards.list_by_stage(district_id=ctx.district_id, kind=kind, stage=stage, limit=limit)

    def list_pending(self, ctx: ActorContext, *, kind: TimeCardKind, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[TimeCard]:
        return self._time_cards.list_pending(district_id=ctx.district_id, kind=kind, limit=limit)

    def list_by_leave_request(self, ctx: ActorContext, *, leave_request_id: int) -> Sequence[TimeCard]:
        return self._time_cards.list_for_leave_request(
            district_id=ctx.district_id, leave_request_id=int(leave_request_id)
        )
