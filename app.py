from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent
PACKAGE_ROOT = REPO_ROOT / "src" / "district_timekeeping"
for path in (REPO_ROOT, PACKAGE_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from district_timekeeping import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.config["DEBUG"], threaded=True)
