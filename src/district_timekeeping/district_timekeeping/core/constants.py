"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

STANDARD_DAY_HOURS = Decimal("8.00")
DEFAULT_LIST_LIMIT = 200

# date.weekday(): Monday=0 ... Sunday=6
WEEKEND_DAYS = frozenset({5, 6})

# Custom field keys written on leave-generated time cards
PRELIMINARY_ENTRY_FIELD = "preliminaryEntry"
APPROVED_FIELD = "approved"

DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS = 10.0
DEFAULT_RECOMMENDATION_MAX_WORKERS = 4
