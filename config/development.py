import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "district_timekeeping"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Empty URL -> no substitute recommendations (leave requests still succeed)
RECOMMENDATION_URL = os.getenv("RECOMMENDATION_URL", "")
RECOMMENDATION_TIMEOUT_SECONDS = float(os.getenv("RECOMMENDATION_TIMEOUT_SECONDS", "10"))
RECOMMENDATION_MAX_WORKERS = int(os.getenv("RECOMMENDATION_MAX_WORKERS", "4"))

STANDARD_DAY_HOURS = os.getenv("STANDARD_DAY_HOURS", "8.00")
