from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..core.constants import APPROVED_FIELD, DEFAULT_LIST_LIMIT, PRELIMINARY_ENTRY_FIELD
from ..core.enums import ApprovalStage, TimeCardKind, TimeCardStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, dump_json_object, fetchall, fetchone, load_json_object
from ..workflow.stages import TransitionRule
from .model import NewTimeCard, TimeCard
from .repository import TimeCardRepository

# kind -> (table, worker column)
_TABLES = {
    TimeCardKind.REGULAR: ("time_cards", "employee_id"),
    TimeCardKind.SUBSTITUTE: ("substitute_time_cards", "substitute_id"),
}

_COMMON_COLUMNS = (
    "time_card_id", "district_id", "work_date",
    "clock_in", "clock_out", "break_start", "break_end",
    "total_hours", "overtime_hours", "status", "current_approval_stage",
    "leave_request_id", "leave_type", "is_paid_leave", "custom_fields",
    "locked", "locked_by", "lock_reason", "locked_at",
    "submitted_by", "submitted_at", "secretary_notes",
    "employee_approved_by", "employee_approved_at", "employee_notes",
    "admin_approved_by", "admin_approved_at", "admin_notes",
    "payroll_processed_by", "payroll_processed_at", "payroll_notes",
    "rejected_by", "rejected_at", "notes", "created_at", "updated_at",
)

# Columns a transition may stamp; anything else coming from a rule is a bug.
_STAMPABLE = frozenset({
    "submitted_by", "submitted_at", "secretary_notes",
    "employee_approved_by", "employee_approved_at", "employee_notes",
    "admin_approved_by", "admin_approved_at", "admin_notes",
    "payroll_processed_by", "payroll_processed_at", "payroll_notes",
    "rejected_by", "rejected_at", "notes",
})


def _select_list(kind: TimeCardKind) -> str:
    _, worker_col = _TABLES[kind]
    cols = list(_COMMON_COLUMNS) + [f"{worker_col} AS worker_id"]
    if kind is TimeCardKind.SUBSTITUTE:
        cols.append("assignment_id")
    return ", ".join(cols)


def _row_to_card(kind: TimeCardKind, r: dict) -> TimeCard:
    return TimeCard(
        time_card_id=int(r["time_card_id"]),
        district_id=int(r["district_id"]),
        kind=kind,
        worker_id=int(r["worker_id"]),
        work_date=r["work_date"],
        status=TimeCardStatus(r["status"]),
        current_approval_stage=ApprovalStage(r["current_approval_stage"]),
        clock_in=r.get("clock_in"),
        clock_out=r.get("clock_out"),
        break_start=r.get("break_start"),
        break_end=r.get("break_end"),
        total_hours=as_decimal(r.get("total_hours")),
        overtime_hours=as_decimal(r.get("overtime_hours")) or Decimal("0"),
        leave_request_id=r.get("leave_request_id"),
        leave_type=r.get("leave_type"),
        is_paid_leave=bool(r.get("is_paid_leave")),
        assignment_id=r.get("assignment_id"),
        custom_fields=load_json_object(r.get("custom_fields")),
        locked=bool(r.get("locked")),
        locked_by=r.get("locked_by"),
        lock_reason=r.get("lock_reason"),
        locked_at=r.get("locked_at"),
        submitted_by=r.get("submitted_by"),
        submitted_at=r.get("submitted_at"),
        secretary_notes=r.get("secretary_notes"),
        employee_approved_by=r.get("employee_approved_by"),
        employee_approved_at=r.get("employee_approved_at"),
        employee_notes=r.get("employee_notes"),
        admin_approved_by=r.get("admin_approved_by"),
        admin_approved_at=r.get("admin_approved_at"),
        admin_notes=r.get("admin_notes"),
        payroll_processed_by=r.get("payroll_processed_by"),
        payroll_processed_at=r.get("payroll_processed_at"),
        payroll_notes=r.get("payroll_notes"),
        rejected_by=r.get("rejected_by"),
        rejected_at=r.get("rejected_at"),
        notes=r.get("notes"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLTimeCardRepository(TimeCardRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, *, district_id: int, card: NewTimeCard) -> int:
        table, worker_col = _TABLES[card.kind]
        columns = [
            "district_id", worker_col, "work_date",
            "clock_in", "clock_out", "break_start", "break_end",
            "total_hours", "overtime_hours", "status", "current_approval_stage",
            "leave_request_id", "leave_type", "is_paid_leave", "custom_fields",
            "submitted_by", "submitted_at", "notes",
        ]
        values: list[object] = [
            int(district_id), int(card.worker_id), card.work_date,
            card.clock_in, card.clock_out, card.break_start, card.break_end,
            card.total_hours, card.overtime_hours, card.status.value, card.current_approval_stage.value,
            card.leave_request_id, card.leave_type, int(card.is_paid_leave), dump_json_object(card.custom_fields),
            card.submitted_by, card.submitted_at, card.notes,
        ]
        if card.kind is TimeCardKind.SUBSTITUTE:
            columns.append("assignment_id")
            values.append(card.assignment_id)

        placeholders = ",".join(["%s"] * len(columns))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO {table}({', '.join(columns)}) VALUES({placeholders})",
                tuple(values),
            )
            return int(cur.lastrowid)

    def get(self, *, district_id: int, kind: TimeCardKind, time_card_id: int) -> Optional[TimeCard]:
        table, _ = _TABLES[kind]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_select_list(kind)} FROM {table} WHERE time_card_id=%s AND district_id=%s",
                (int(time_card_id), int(district_id)),
            )
            r = fetchone(cur)
            return _row_to_card(kind, r) if r else None

    def _list(self, kind: TimeCardKind, where: str, params: Sequence[object], limit: int) -> list[TimeCard]:
        table, _ = _TABLES[kind]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_select_list(kind)}
                FROM {table}
                WHERE {where}
                ORDER BY work_date DESC, time_card_id DESC
                LIMIT %s
                """,
                tuple(list(params) + [int(limit)]),
            )
            return [_row_to_card(kind, r) for r in fetchall(cur)]

    def list_for_worker(
        self, *, district_id: int, kind: TimeCardKind, worker_id: int, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[TimeCard]:
        _, worker_col = _TABLES[kind]
        return self._list(kind, f"district_id=%s AND {worker_col}=%s", (int(district_id), int(worker_id)), limit)

    def list_by_date_range(
        self,
        *,
        district_id: int,
        kind: TimeCardKind,
        start_date: date,
        end_date: date,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[TimeCard]:
        return self._list(
            kind,
            "district_id=%s AND work_date BETWEEN %s AND %s",
            (int(district_id), start_date, end_date),
            limit,
        )

    def list_by_stage(
        self, *, district_id: int, kind: TimeCardKind, stage: ApprovalStage, limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[TimeCard]:
        return self._list(
            kind,
            "district_id=%s AND current_approval_stage=%s",
            (int(district_id), stage.value),
            limit,
        )

    def list_pending(self, *, district_id: int, kind: TimeCardKind, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[TimeCard]:
        return self._list(kind, "district_id=%s AND status<>%s", (int(district_id), TimeCardStatus.DRAFT.value), limit)

    def list_for_leave_request(self, *, district_id: int, leave_request_id: int) -> Sequence[TimeCard]:
        kind = TimeCardKind.REGULAR
        table, _ = _TABLES[kind]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_select_list(kind)}
                FROM {table}
                WHERE district_id=%s AND leave_request_id=%s
                ORDER BY work_date, time_card_id
                """,
                (int(district_id), int(leave_request_id)),
            )
            return [_row_to_card(kind, r) for r in fetchall(cur)]

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
        table, _ = _TABLES[kind]
        stamped = (rule.actor_column, rule.timestamp_column, rule.notes_column)
        if not _STAMPABLE.issuperset(stamped):
            raise ValueError(f"Transition {rule.transition} stamps unknown columns {stamped}")

        assignments = ["status=%s", f"{rule.actor_column}=%s", f"{rule.timestamp_column}=%s"]
        params: list[object] = [rule.to_status.value, int(actor_id), at]
        if rule.to_stage is not None:
            assignments.append("current_approval_stage=%s")
            params.append(rule.to_stage.value)
        if notes is not None:
            assignments.append(f"{rule.notes_column}=%s")
            params.append(notes)

        # The WHERE clause is the compare-and-swap: a concurrent writer that got
        # there first leaves rowcount at 0.
        params.extend([int(time_card_id), int(district_id), expected_status.value, expected_stage.value])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE {table}
                SET {', '.join(assignments)}
                WHERE time_card_id=%s AND district_id=%s
                  AND status=%s AND current_approval_stage=%s AND locked=0
                """,
                tuple(params),
            )
            return cur.rowcount > 0

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
        table, _ = _TABLES[kind]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE {table}
                SET locked=1, locked_by=%s, lock_reason=%s, locked_at=%s
                WHERE time_card_id=%s AND district_id=%s
                """,
                (int(locked_by), reason, at, int(time_card_id), int(district_id)),
            )
            return cur.rowcount > 0

    def clear_lock(self, *, district_id: int, kind: TimeCardKind, time_card_id: int) -> bool:
        table, _ = _TABLES[kind]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE {table}
                SET locked=0, locked_by=NULL, lock_reason=NULL, locked_at=NULL
                WHERE time_card_id=%s AND district_id=%s
                """,
                (int(time_card_id), int(district_id)),
            )
            return cur.rowcount > 0

    def mark_reconciled(self, *, district_id: int, time_card_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE time_cards
                SET custom_fields = JSON_SET(
                    COALESCE(custom_fields, JSON_OBJECT()),
                    '$.{PRELIMINARY_ENTRY_FIELD}', CAST('false' AS JSON),
                    '$.{APPROVED_FIELD}', CAST('true' AS JSON)
                )
                WHERE time_card_id=%s AND district_id=%s
                """,
                (int(time_card_id), int(district_id)),
            )
            return cur.rowcount > 0

    def delete_preliminary_drafts(self, *, district_id: int, leave_request_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT time_card_id, custom_fields
                FROM time_cards
                WHERE district_id=%s AND leave_request_id=%s AND status=%s AND locked=0
                FOR UPDATE
                """,
                (int(district_id), int(leave_request_id), TimeCardStatus.DRAFT.value),
            )
            ids = [
                int(r["time_card_id"])
                for r in fetchall(cur)
                if load_json_object(r.get("custom_fields")).get(PRELIMINARY_ENTRY_FIELD) is True
            ]
            if not ids:
                return 0
            placeholders = ",".join(["%s"] * len(ids))
            cur.execute(
                f"""
                DELETE FROM time_cards
                WHERE district_id=%s AND status=%s AND locked=0 AND time_card_id IN ({placeholders})
                """,
                tuple([int(district_id), TimeCardStatus.DRAFT.value] + ids),
            )
            return int(cur.rowcount)
