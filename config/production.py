import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "district_timekeeping"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

RECOMMENDATION_URL = os.getenv("RECOMMENDATION_URL", "")
RECOMMENDATION_TIMEOUT_SECONDS = float(os.getenv("RECOMMENDATION_TIMEOUT_SECONDS", "10"))
RECOMMENDATION_MAX_WORKERS = int(os.getenv("RECOMMENDATION_MAX_WORKERS", "4"))

STANDARD_DAY_HOURS = os.getenv("STANDARD_DAY_HOURS", "8.00")
