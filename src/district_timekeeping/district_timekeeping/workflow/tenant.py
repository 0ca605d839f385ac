"""District (tenant) guard.

Repositories filter every query by district, so a foreign record simply does
not exist for the caller (NotFoundError). The checks below cover the other
paths: a district named explicitly by the caller, and records handed over by
collaborators that are not district-scoped themselves.
"""

from __future__ import annotations

from typing import Any

from ..core.context import ActorContext
from ..core.enums import TimeCardKind
from ..core.exceptions import NotFoundError, TenantMismatchError, ValidationError
from ..timecards.model import TimeCard
from ..timecards.repository import TimeCardRepository


def require_district(ctx: ActorContext, district_id: Any) -> None:
    if district_id is None:
        return
    try:
        named = int(district_id)
    except (TypeError, ValueError):
        raise ValidationError("district_id must be an integer", district_id=str(district_id))
    if named != int(ctx.district_id):
        raise TenantMismatchError(
            f"district {named} does not match the caller's district",
            district_id=named,
        )


def require_same_district(ctx: ActorContext, record: Any) -> Any:
    record_district = getattr(record, "district_id", None)
    if record_district is None or int(record_district) != int(ctx.district_id):
        raise TenantMismatchError(f"{type(record).__name__} belongs to another district")
    return record


def require_time_card(
    repo: TimeCardRepository, ctx: ActorContext, *, kind: TimeCardKind, time_card_id: int
) -> TimeCard:
    card = repo.get(district_id=ctx.district_id, kind=kind, time_card_id=int(time_card_id))
    if card is None:
        raise NotFoundError(kind.label, time_card_id)
    return require_same_district(ctx, card)
