"""Request-layer helpers shared by the JSON controllers."""

from __future__ import annotations

from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.context import ActorContext
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, DomainError, ValidationError
from .logging_config import get_logger
from .serialization import to_json

logger = get_logger("http")


def current_actor() -> ActorContext:
    """Actor context from the session populated by the authentication layer."""
    try:
        user_id = session["user_id"]
        role = session["role"]
        district_id = session["district_id"]
    except KeyError:
        raise AuthenticationError("Login required")
    try:
        return ActorContext(actor_id=int(user_id), role=Role(role), district_id=int(district_id))
    except (TypeError, ValueError):
        raise AuthenticationError("Session does not carry a usable actor context")


def roles_required(*roles: Role):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            ctx = current_actor()
            if not ctx.has_role(*roles):
                raise AuthorizationError(
                    f"Role {ctx.role.value} may not perform this action",
                    allowed_roles=[r.value for r in roles],
                )
            return view(*args, **kwargs)

        return wrapper

    return decorator


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def optional_int(payload: dict, key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


def optional_str(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def respond(value: Any, status: int = 200):
    return jsonify(to_json(value)), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        if exc.http_status >= 500:
            logger.warning("collaborator failure", exc_info=True, extra={"path": request.path})
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": "http_error", "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.error("unhandled error", exc_info=True, extra={"path": request.path, "method": request.method})
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
