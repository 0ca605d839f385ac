from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import ActivityLog
from .repository import AuditSink


class MySQLActivityLogRepository(AuditSink):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO activity_logs(district_id, user_id, action, entity_type, entity_id, description)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(district_id), int(actor_id), action, entity_type, entity_id, description),
            )

    def list_for_entity(
        self, *, district_id: int, entity_type: str, entity_id: int, limit: int = 200
    ) -> Sequence[ActivityLog]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT activity_log_id, district_id, user_id, action, entity_type, entity_id, description, created_at
                FROM activity_logs
                WHERE district_id=%s AND entity_type=%s AND entity_id=%s
                ORDER BY created_at DESC, activity_log_id DESC
                LIMIT %s
                """,
                (int(district_id), entity_type, int(entity_id), int(limit)),
            )
            return [
                ActivityLog(
                    activity_log_id=int(r["activity_log_id"]),
                    district_id=int(r["district_id"]),
                    user_id=int(r["user_id"]),
                    action=r["action"],
                    entity_type=r["entity_type"],
                    entity_id=r.get("entity_id"),
                    description=r["description"],
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
