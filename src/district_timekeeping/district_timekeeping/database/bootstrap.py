from __future__ import annotations

import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from .connection import DatabaseConnection, DBConfig

# Leave types every new district starts with: (name, description, is_paid)
DEFAULT_LEAVE_TYPES: tuple[tuple[str, str, bool], ...] = (
    ("Sick Leave", "Personal illness or medical appointments", True),
    ("Vacation", "Personal time off", True),
    ("Personal Leave", "Personal business", True),
    ("Bereavement", "Family emergency or bereavement", True),
    ("Unpaid Leave", "Approved absence without pay", False),
)


def _strip_create_db_and_use(sql: str) -> str:
    # schema.sql must work regardless of the configured DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside of quotes and ``--`` line comments."""
    buf: list[str] = []
    quote: str | None = None
    escape = False
    lines = (line for line in sql.splitlines(keepends=True) if not line.lstrip().startswith("--"))

    for ch in "".join(lines):
        if escape:
            buf.append(ch)
            escape = False
            continue
        if ch == "\\" and quote:
            buf.append(ch)
            escape = True
            continue
        if ch in ("'", '"'):
            if quote is None:
                quote = ch
            elif quote == ch:
                quote = None
        if ch == ";" and quote is None:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue
        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


@contextmanager
def _cursor(db_config: dict, *, with_database: bool = True, dictionary: bool = False) -> Iterator:
    conn = DatabaseConnection(DBConfig.from_mapping(db_config)).connect(with_database=with_database)
    try:
        cur = conn.cursor(dictionary=dictionary)
        yield cur
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    name = DBConfig.from_mapping(db_config).database
    with _cursor(db_config, with_database=False) as cur:
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )


def apply_schema(db_config: dict, *, schema_path: str | Path) -> int:
    """Apply schema.sql (idempotent: CREATE TABLE IF NOT EXISTS). Returns statements run."""
    ensure_database_exists(db_config)
    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))
    count = 0
    with _cursor(db_config) as cur:
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
    return count


def seed_default_leave_types(db_config: dict, *, district_id: int) -> int:
    """Insert the default leave types a district is missing. Returns rows inserted."""
    inserted = 0
    with _cursor(db_config, dictionary=True) as cur:
        cur.execute("SELECT name FROM leave_types WHERE district_id=%s", (int(district_id),))
        existing = {row["name"] for row in cur.fetchall()}
        for name, description, is_paid in DEFAULT_LEAVE_TYPES:
            if name in existing:
                continue
            cur.execute(
                """
                INSERT INTO leave_types(district_id, name, description, is_paid)
                VALUES(%s,%s,%s,%s)
                """,
                (int(district_id), name, description, int(is_paid)),
            )
            inserted += 1
    return inserted


def list_tables(db_config: dict) -> list[str]:
    with _cursor(db_config) as cur:
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
