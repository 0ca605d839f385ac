"""Settings selection for the timekeeping service.

``APP_ENV`` names one of the modules in this package; ``load_settings`` reads
the known setting names off it so the app factory and the maintenance
scripts see the same values.
"""
import importlib
import os
from typing import Any, Mapping, Optional

DEFAULT_ENV = "development"

ENV_MODULES = {
    "dev": "config.development",
    "development": "config.development",
    "prod": "config.production",
    "production": "config.production",
    "test": "config.testing",
    "testing": "config.testing",
}

SETTING_NAMES = (
    "SECRET_KEY",
    "DB_CONFIG",
    "DEBUG",
    "TESTING",
    "LOG_LEVEL",
    "AUTO_INIT_DB",
    "RECOMMENDATION_URL",
    "RECOMMENDATION_TIMEOUT_SECONDS",
    "RECOMMENDATION_MAX_WORKERS",
    "STANDARD_DAY_HOURS",
)


def get_settings_module(env: Optional[str] = None) -> str:
    # unknown names fall back to development
    name = (env if env is not None else os.getenv("APP_ENV", DEFAULT_ENV)).strip().lower()
    return ENV_MODULES.get(name, ENV_MODULES[DEFAULT_ENV])


def load_settings(settings_override: Optional[Mapping[str, Any]] = None, env: Optional[str] = None) -> dict:
    settings_module = get_settings_module(env)
    module = importlib.import_module(settings_module)
    settings = {name: getattr(module, name) for name in SETTING_NAMES if hasattr(module, name)}
    settings["SETTINGS_MODULE"] = settings_module
    settings.update(settings_override or {})
    return settings
