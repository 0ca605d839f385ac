from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import ApprovalStage, TimeCardKind, TimeCardStatus
from ..workflow.stages import TransitionRule
from .model import NewTimeCard, TimeCard


class TimeCardRepository(Protocol):
    """District-scoped storage for regular and substitute time cards.

    Every method takes ``district_id``; a card of another district is invisible.
    """

    def create(self, *, district_id: int, card: NewTimeCard) -> int:
        raise NotImplementedError

    def get(self, *, district_id: int, kind: TimeCardKind, time_card_id: int) -> Optional[TimeCard]:
        raise NotImplementedError

    def list_for_worker(
        self, *, district_id: int, kind: TimeCardKind, worker_id: int, limit: int = 200
    ) -> Sequence[TimeCard]:
        raise NotImplementedError

    def list_by_date_range(
        self, *, district_id: int, kind: TimeCardKind, start_date: date, end_date: date, limit: int = 200
    ) -> Sequence[TimeCard]:
        raise NotImplementedError

    def list_by_stage(
        self, *, district_id: int, kind: TimeCardKind, stage: ApprovalStage, limit: int = 200
    ) -> Sequence[TimeCard]:
        raise NotImplementedError

    def list_pending(self, *, district_id: int, kind: TimeCardKind, limit: int = 200) -> Sequence[TimeCard]:
        """Cards that have left draft (original 'pending' view)."""

        raise NotImplementedError

    def list_for_leave_request(self, *, district_id: int, leave_request_id: int) -> Sequence[TimeCard]:
        raise NotImplementedError

    def apply_transition(
        self,
        *,
        district_id: int,
        kind: TimeCardKind,
        time_card_id: int,
        rule: TransitionRule,
        expected_status: TimeCardStatus,
        expected_stage: ApprovalStage,
        actor_id: int,
        notes: Optional[str],
        at: datetime,
    ) -> bool:
        """Compare-and-swap: update only if the stored status/stage still equal
        the expected values and the card is unlocked. Returns False otherwise."""

        raise NotImplementedError

    def set_lock(
        self,
        *,
        district_id: int,
        kind: TimeCardKind,
        time_card_id: int,
        locked_by: int,
        reason: Optional[str],
        at: datetime,
    ) -> bool:
        raise NotImplementedError

    def clear_lock(self, *, district_id: int, kind: TimeCardKind, time_card_id: int) -> bool:
        raise NotImplementedError

    def mark_reconciled(self, *, district_id: int, time_card_id: int) -> bool:
        """Flip custom fields preliminaryEntry=false, approved=true on a leave card."""

        raise NotImplementedError

    def delete_preliminary_drafts(self, *, district_id: int, leave_request_id: int) -> int:
        """Delete unlocked draft cards flagged preliminaryEntry=true. Returns count."""

        raise NotImplementedError
