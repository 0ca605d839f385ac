"""District timekeeping package.

Time and leave approval workflow for school districts, organized by feature
module (timecards, leave, workflow, ...) with a thin Flask JSON controller
layer over service/repository layers.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask

from config import load_settings

from .common.http import register_error_handlers
from .common.logging_config import configure_logging, get_logger
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .leave.controller import register as register_leave
from .timecards.controller import register as register_timecards


def create_app(
    settings_override: Optional[Mapping[str, Any]] = None,
    container: Optional[Container] = None,
) -> Flask:
    load_dotenv(override=False)
    settings = load_settings(settings_override)

    configure_logging(settings.get("LOG_LEVEL", "INFO"))
    logger = get_logger("app")

    app = Flask(__name__)
    app.secret_key = settings["SECRET_KEY"]
    app.config["DEBUG"] = bool(settings.get("DEBUG", False))
    app.config["TESTING"] = bool(settings.get("TESTING", False))

    if container is None:
        db_config = dict(settings["DB_CONFIG"])
        logger.info(
            "starting",
            extra={
                "settings": settings["SETTINGS_MODULE"],
                "db": f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}",
            },
        )
        if settings.get("AUTO_INIT_DB"):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready", extra={"tables": len(list_tables(db_config))})
        container = build_container(db_config=db_config, settings=settings)

    app.extensions["district_timekeeping"] = container

    register_error_handlers(app)
    register_timecards(app, container)
    register_leave(app, container)

    return app
