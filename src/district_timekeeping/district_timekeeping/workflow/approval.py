from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..audit.service import AuditTrail
from ..common.datetime_utils import now_local
from ..common.logging_config import get_logger
from ..core.context import ActorContext
from ..core.enums import TimeCardKind
from ..core.exceptions import InvalidStateError, LockedError
from ..timecards.model import TimeCard
from ..timecards.repository import TimeCardRepository
from .stages import Transition, TransitionRule, rule_for
from .tenant import require_time_card

logger = get_logger("workflow.approval")


def check_transition(card: TimeCard, rule: TransitionRule) -> None:
    """Raise if ``rule`` cannot fire on ``card``. Lock is checked before stage."""
    what = f"{card.kind.label} {card.time_card_id}"
    if card.locked:
        raise LockedError(
            f"cannot {rule.verb} {what}: record is locked"
            + (f" ({card.lock_reason})" if card.lock_reason else ""),
            locked_by=card.locked_by,
            lock_reason=card.lock_reason,
        )
    if card.status.is_terminal:
        raise InvalidStateError(
            f"cannot {rule.verb} {what}: status is {card.status.value}, which is final",
            expected=[s.value for s in rule.from_statuses],
            current=card.status.value,
        )
    if rule.expected_stage is not None and card.current_approval_stage != rule.expected_stage:
        raise InvalidStateError(
            f"cannot {rule.verb} {what}: current stage is {card.current_approval_stage.value}, "
            f"expected {rule.expected_stage.value}",
            expected=rule.expected_stage.value,
            current=card.current_approval_stage.value,
        )
    if card.status not in rule.from_statuses:
        raise InvalidStateError(
            f"cannot {rule.verb} {what}: current status is {card.status.value}, "
            f"expected {' or '.join(s.value for s in rule.from_statuses)}",
            expected=[s.value for s in rule.from_statuses],
            current=card.status.value,
        )


class ApprovalStateMachine:
    """Moves regular and substitute time cards through the approval pipeline,
    one stage at a time, never while locked."""

    def __init__(
        self,
        time_cards: TimeCardRepository,
        audit: AuditTrail,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._time_cards = time_cards
        self._audit = audit
        self._clock = clock

    def submit_for_approval(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        submitted_by: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        return self.apply(
            ctx, kind=kind, time_card_id=time_card_id, transition=Transition.SUBMIT, actor_id=submitted_by, notes=notes
        )

    def approve_by_employee(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        employee_id: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        return self.apply(
            ctx,
            kind=kind,
            time_card_id=time_card_id,
            transition=Transition.APPROVE_BY_EMPLOYEE,
            actor_id=employee_id,
            notes=notes,
        )

    def approve_by_admin(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        admin_id: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        return self.apply(
            ctx,
            kind=kind,
            time_card_id=time_card_id,
            transition=Transition.APPROVE_BY_ADMIN,
            actor_id=admin_id,
            notes=notes,
        )

    def process_by_payroll(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        payroll_id: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        return self.apply(
            ctx,
            kind=kind,
            time_card_id=time_card_id,
            transition=Transition.PROCESS_BY_PAYROLL,
            actor_id=payroll_id,
            notes=notes,
        )

    def reject(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        rejected_by: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        return self.apply(
            ctx, kind=kind, time_card_id=time_card_id, transition=Transition.REJECT, actor_id=rejected_by, notes=notes
        )

    def apply(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        transition: Transition,
        actor_id: int,
        notes: Optional[str] = None,
    ) -> TimeCard:
        rule = rule_for(transition)
        card = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        check_transition(card, rule)

        swapped = self._time_cards.apply_transition(
            district_id=ctx.district_id,
            kind=kind,
            time_card_id=card.time_card_id,
            rule=rule,
            expected_status=card.status,
            expected_stage=card.current_approval_stage,
            actor_id=int(actor_id),
            notes=notes,
            at=self._clock(),
        )
        if not swapped:
            # Lost a race: report against what is stored now.
            current = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
            check_transition(current, rule)
            raise InvalidStateError(
                f"cannot {rule.verb} {kind.label} {time_card_id}: record changed concurrently",
                expected=card.status.value,
                current=current.status.value,
            )

        updated = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        logger.info(
            "time card transition",
            extra={
                "district_id": ctx.district_id,
                "actor_id": int(actor_id),
                "kind": kind.value,
                "time_card_id": updated.time_card_id,
                "transition": rule.transition.value,
                "from_status": card.status.value,
                "to_status": updated.status.value,
                "stage": updated.current_approval_stage.value,
            },
        )
        self._audit.record(
            ctx,
            action=f"{rule.transition.value}_{kind.value}_time_card",
            entity_type=f"{kind.value}_time_card",
            entity_id=updated.time_card_id,
            description=(
                f"{rule.verb} {kind.label} {updated.time_card_id}: "
                f"{card.status.value} -> {updated.status.value}"
            ),
        )
        return updated
