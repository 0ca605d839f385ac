from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Recommendation:
    substitute_id: int
    match_score: float
    reasons: tuple[str, ...] = field(default_factory=tuple)
