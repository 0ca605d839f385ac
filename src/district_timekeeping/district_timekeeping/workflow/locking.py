from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..audit.service import AuditTrail
from ..common.datetime_utils import now_local
from ..common.logging_config import get_logger
from ..core.context import ActorContext
from ..core.enums import TimeCardKind
from ..timecards.model import TimeCard
from ..timecards.repository import TimeCardRepository
from .tenant import require_time_card

logger = get_logger("workflow.locking")


class LockOverlay:
    """Administrator-controlled immutability flag, independent of stage/status.

    No expiry: a card stays locked until ``unlock`` is called.
    """

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

    def lock(
        self,
        ctx: ActorContext,
        *,
        kind: TimeCardKind,
        time_card_id: int,
        locked_by: int,
        reason: Optional[str] = None,
    ) -> TimeCard:
        card = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        reason = (reason or "").strip() or None
        if card.locked and card.locked_by == int(locked_by) and card.lock_reason == reason:
            return card

        self._time_cards.set_lock(
            district_id=ctx.district_id,
            kind=kind,
            time_card_id=card.time_card_id,
            locked_by=int(locked_by),
            reason=reason,
            at=self._clock(),
        )
        updated = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        logger.info(
            "time card locked",
            extra={"district_id": ctx.district_id, "kind": kind.value, "time_card_id": card.time_card_id, "locked_by": int(locked_by)},
        )
        self._audit.record(
            ctx,
            action=f"lock_{kind.value}_time_card",
            entity_type=f"{kind.value}_time_card",
            entity_id=card.time_card_id,
            description=f"Locked {kind.label} {card.time_card_id}" + (f": {reason}" if reason else ""),
        )
        return updated

    def unlock(self, ctx: ActorContext, *, kind: TimeCardKind, time_card_id: int) -> TimeCard:
        card = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        if not card.locked:
            return card

        self._time_cards.clear_lock(district_id=ctx.district_id, kind=kind, time_card_id=card.time_card_id)
        updated = require_time_card(self._time_cards, ctx, kind=kind, time_card_id=time_card_id)
        logger.info(
            "time card unlocked",
            extra={"district_id": ctx.district_id, "kind": kind.value, "time_card_id": card.time_card_id},
        )
        self._audit.record(
            ctx,
            action=f"unlock_{kind.value}_time_card",
            entity_type=f"{kind.value}_time_card",
            entity_id=card.time_card_id,
            description=f"Unlocked {kind.label} {card.time_card_id}",
        )
        return updated
