from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import ActivityLog


class AuditSink(Protocol):
    def record(
        self,
        *,
        district_id: int,
        actor_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
    ) -> None:
        raise NotImplementedError

    def list_for_entity(
        self, *, district_id: int, entity_type: str, entity_id: int, limit: int = 200
    ) -> Sequence[ActivityLog]:
        raise NotImplementedError
