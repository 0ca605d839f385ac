from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PACKAGE_ROOT = REPO_ROOT / "src" / "district_timekeeping"
for path in (REPO_ROOT, PACKAGE_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from config import load_settings

from district_timekeeping.database.bootstrap import seed_default_leave_types


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the default leave types for a district.")
    parser.add_argument("--district", type=int, required=True, help="district id to seed")
    args = parser.parse_args()

    db_config = dict(load_settings()["DB_CONFIG"])

    inserted = seed_default_leave_types(db_config, district_id=args.district)
    print(
        "OK: Seeded leave types -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')} "
        f"(district={args.district}, inserted={inserted})"
    )


if __name__ == "__main__":
    main()
