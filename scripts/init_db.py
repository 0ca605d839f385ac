from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PACKAGE_ROOT = REPO_ROOT / "src" / "district_timekeeping"
for path in (REPO_ROOT, PACKAGE_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from config import load_settings

from district_timekeeping.database.bootstrap import apply_schema, list_tables


def main() -> None:
    db_config = dict(load_settings()["DB_CONFIG"])

    schema_path = REPO_ROOT / "database" / "schema.sql"
    statements = apply_schema(db_config, schema_path=schema_path)
    tables = list_tables(db_config)
    print(
        "OK: Applied schema.sql -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')} "
        f"(statements={statements}, tables={len(tables)})"
    )


if __name__ == "__main__":
    main()
