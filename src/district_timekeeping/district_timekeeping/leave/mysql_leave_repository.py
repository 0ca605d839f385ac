from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AssignmentStatus, LeaveStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import LeaveRequest, LeaveType, NewLeaveRequest, SubstituteAssignment
from .repository import LeaveRequestRepository, LeaveTypeRepository, SubstituteAssignmentRepository

_REQUEST_COLUMNS = (
    "leave_request_id, district_id, employee_id, leave_type_id, start_date, end_date, "
    "reason, substitute_required, status, approved_by, approved_at, created_at"
)
_TYPE_COLUMNS = "leave_type_id, district_id, name, is_paid, description, max_days_per_year"
_ASSIGNMENT_COLUMNS = (
    "assignment_id, district_id, leave_request_id, substitute_employee_id, assigned_date, status, notes"
)


def _row_to_request(r: dict) -> LeaveRequest:
    return LeaveRequest(
        leave_request_id=int(r["leave_request_id"]),
        district_id=int(r["district_id"]),
        employee_id=int(r["employee_id"]),
        leave_type_id=int(r["leave_type_id"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        reason=r.get("reason"),
        substitute_required=bool(r.get("substitute_required")),
        status=LeaveStatus(r["status"]),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        created_at=r.get("created_at"),
    )


def _row_to_type(r: dict) -> LeaveType:
    return LeaveType(
        leave_type_id=int(r["leave_type_id"]),
        district_id=int(r["district_id"]),
        name=r["name"],
        is_paid=bool(r.get("is_paid")),
        description=r.get("description"),
        max_days_per_year=r.get("max_days_per_year"),
    )


def _row_to_assignment(r: dict) -> SubstituteAssignment:
    return SubstituteAssignment(
        assignment_id=int(r["assignment_id"]),
        district_id=int(r["district_id"]),
        leave_request_id=int(r["leave_request_id"]),
        substitute_employee_id=int(r["substitute_employee_id"]),
        assigned_date=r["assigned_date"],
        status=AssignmentStatus(r["status"]),
        notes=r.get("notes"),
    )


class MySQLLeaveRepository(LeaveRequestRepository, LeaveTypeRepository, SubstituteAssignmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Leave requests --------
    def create_leave_request(self, *, district_id: int, request: NewLeaveRequest) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO leave_requests(
                    district_id, employee_id, leave_type_id, start_date, end_date,
                    reason, substitute_required, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(district_id),
                    int(request.employee_id),
                    int(request.leave_type_id),
                    request.start_date,
                    request.end_date,
                    request.reason,
                    int(request.substitute_required),
                    LeaveStatus.PENDING.value,
                ),
            )
            return int(cur.lastrowid)

    def get_leave_request(self, *, district_id: int, leave_request_id: int) -> Optional[LeaveRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM leave_requests WHERE leave_request_id=%s AND district_id=%s",
                (int(leave_request_id), int(district_id)),
            )
            r = fetchone(cur)
            return _row_to_request(r) if r else None

    def list_leave_requests(
        self,
        *,
        district_id: int,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[LeaveRequest]:
        where = ["district_id=%s"]
        params: list[object] = [int(district_id)]
        if status is not None:
            where.append("status=%s")
            params.append(status.value)
        if employee_id is not None:
            where.append("employee_id=%s")
            params.append(int(employee_id))
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_REQUEST_COLUMNS}
                FROM leave_requests
                WHERE {' AND '.join(where)}
                ORDER BY created_at DESC, leave_request_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def decide_leave_request(
        self,
        *,
        district_id: int,
        leave_request_id: int,
        status: LeaveStatus,
        decided_by: int,
        at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE leave_requests
                SET status=%s, approved_by=%s, approved_at=%s
                WHERE leave_request_id=%s AND district_id=%s AND status=%s
                """,
                (
                    status.value,
                    int(decided_by),
                    at,
                    int(leave_request_id),
                    int(district_id),
                    LeaveStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    # -------- Leave types --------
    def get_leave_types(self, *, district_id: int) -> Sequence[LeaveType]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TYPE_COLUMNS} FROM leave_types WHERE district_id=%s ORDER BY name",
                (int(district_id),),
            )
            return [_row_to_type(r) for r in fetchall(cur)]

    def get_leave_type(self, *, district_id: int, leave_type_id: int) -> Optional[LeaveType]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TYPE_COLUMNS} FROM leave_types WHERE leave_type_id=%s AND district_id=%s",
                (int(leave_type_id), int(district_id)),
            )
            r = fetchone(cur)
            return _row_to_type(r) if r else None

    # -------- Substitute assignments --------
    def create_assignment(
        self,
        *,
        district_id: int,
        leave_request_id: int,
        substitute_employee_id: int,
        assigned_date: datetime,
        status: AssignmentStatus,
        notes: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO substitute_assignments(
                    district_id, leave_request_id, substitute_employee_id, assigned_date, status, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(district_id),
                    int(leave_request_id),
                    int(substitute_employee_id),
                    assigned_date,
                    status.value,
                    notes,
                ),
            )
            return int(cur.lastrowid)

    def list_assignments(self, *, district_id: int, leave_request_id: int) -> Sequence[SubstituteAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ASSIGNMENT_COLUMNS}
                FROM substitute_assignments
                WHERE district_id=%s AND leave_request_id=%s
                ORDER BY assignment_id
                """,
                (int(district_id), int(leave_request_id)),
            )
            return [_row_to_assignment(r) for r in fetchall(cur)]

    def list_recent_assignments(self, *, district_id: int, limit: int = 200) -> Sequence[SubstituteAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_ASSIGNMENT_COLUMNS}
                FROM substitute_assignments
                WHERE district_id=%s
                ORDER BY assigned_date DESC, assignment_id DESC
                LIMIT %s
                """,
                (int(district_id), int(limit)),
            )
            return [_row_to_assignment(r) for r in fetchall(cur)]
