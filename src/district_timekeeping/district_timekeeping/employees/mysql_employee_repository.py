from __future__ import annotations

from typing import Optional, Sequence

from ..core.context import ActorContext
from ..core.enums import EmployeeType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Employee
from .repository import EmployeeDirectory

_COLUMNS = "employee_id, district_id, user_id, first_name, last_name, employee_type, status"


def _row_to_employee(r: dict) -> Employee:
    return Employee(
        employee_id=int(r["employee_id"]),
        district_id=int(r["district_id"]),
        first_name=r["first_name"],
        last_name=r["last_name"],
        employee_type=EmployeeType(r["employee_type"]),
        status=r.get("status") or "active",
        user_id=r.get("user_id"),
    )


class MySQLEmployeeDirectory(EmployeeDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_employee(self, ctx: ActorContext, employee_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM employees WHERE employee_id=%s AND district_id=%s",
                (int(employee_id), int(ctx.district_id)),
            )
            r = fetchone(cur)
            return _row_to_employee(r) if r else None

    def get_employee_by_user(self, ctx: ActorContext, user_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM employees WHERE user_id=%s AND district_id=%s",
                (int(user_id), int(ctx.district_id)),
            )
            r = fetchone(cur)
            return _row_to_employee(r) if r else None

    def list_available_substitutes(self, ctx: ActorContext) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM employees
                WHERE district_id=%s AND employee_type=%s AND status='active'
                ORDER BY last_name, first_name
                """,
                (int(ctx.district_id), EmployeeType.SUBSTITUTE.value),
            )
            return [_row_to_employee(r) for r in fetchall(cur)]
