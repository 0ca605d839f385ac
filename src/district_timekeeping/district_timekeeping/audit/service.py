from __future__ import annotations

from typing import Optional, Sequence

from ..common.logging_config import get_logger
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.context import ActorContext
from .model import ActivityLog
from .repository import AuditSink

logger = get_logger("audit")


class AuditTrail:
    """Writes activity entries after successful state changes.

    A failing sink must not undo the change it describes, so errors are logged
    and dropped here.
    """

    def __init__(self, sink: AuditSink):
        self._sink = sink

    def record(
        self,
        ctx: ActorContext,
        *,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
    ) -> bool:
        try:
            self._sink.record(
                district_id=ctx.district_id,
                actor_id=ctx.actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
            )
            return True
        except Exception:
            logger.warning(
                "audit record failed",
                exc_info=True,
                extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
            )
            return False

    def history(
        self, ctx: ActorContext, *, entity_type: str, entity_id: int, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[ActivityLog]:
        """Newest first, scoped to the caller's district."""
        return self._sink.list_for_entity(
            district_id=ctx.district_id, entity_type=entity_type, entity_id=int(entity_id), limit=int(limit)
        )
