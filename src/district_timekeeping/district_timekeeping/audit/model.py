from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ActivityLog:
    activity_log_id: int
    district_id: int
    user_id: int
    action: str
    entity_type: str
    entity_id: Optional[int]
    description: str
    created_at: datetime
