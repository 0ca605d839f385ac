from __future__ import annotations

import json
from contextlib import contextmanager
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from .connection import DatabaseConnection

# Connection of the transaction open in the current thread/context, if any.
_active_connection: ContextVar[Optional[Any]] = ContextVar("district_timekeeping_tx", default=None)


@contextmanager
def transaction(conn_factory: DatabaseConnection) -> Iterator[None]:
    """Run every ``db_cursor`` inside the block on one connection, committed once.

    Nested calls join the outer transaction.
    """
    if _active_connection.get() is not None:
        yield
        return

    conn = conn_factory.connect()
    token = _active_connection.set(conn)
    try:
        yield
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        _active_connection.reset(token)
        conn.close()


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    joined = _active_connection.get()
    if joined is not None:
        cur = joined.cursor(dictionary=dictionary)
        try:
            yield joined, cur
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class MySQLTransactionManager:
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def transaction(self):
        return transaction(self._conn_factory)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def load_json_object(value: Any) -> dict:
    """Normalize a MySQL JSON column.

    mysql-connector can return JSON as str, bytes/bytearray or (already decoded) dict.
    """

    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return dict(json.loads(value) or {}) if value.strip() else {}
    raise TypeError(f"Unsupported MySQL JSON value type: {type(value)!r}")


def dump_json_object(value: Any) -> str:
    return json.dumps(dict(value or {}), default=str)


def as_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))
