from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    ``code`` is stable and machine-readable; ``details`` carries the structured
    fields rendered next to the message in API responses.
    """

    code = "domain_error"
    http_status = 400

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": str(self)}
        for key, value in self.details.items():
            payload[key] = getattr(value, "value", value)
        return payload


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "validation_error"


class AuthenticationError(DomainError):
    """Raised when the request carries no usable actor context."""

    code = "authentication_error"
    http_status = 401


class AuthorizationError(DomainError):
    """Raised when an actor lacks permission for an action."""

    code = "authorization_error"
    http_status = 403


class NotFoundError(DomainError):
    """Unknown id, or an id that belongs to another district."""

    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


class InvalidStateError(DomainError):
    """The requested transition does not match the current status/stage."""

    code = "invalid_state"
    http_status = 409

    def __init__(self, message: str, *, expected: Any = None, current: Any = None):
        super().__init__(message, expected=expected, current=current)


class LockedError(DomainError):
    code = "locked"
    http_status = 423

    def __init__(self, message: str, *, locked_by: Optional[int] = None, lock_reason: Optional[str] = None):
        super().__init__(message, locked_by=locked_by, lock_reason=lock_reason)


class TenantMismatchError(DomainError):
    """Caller's district does not match the record or the named district."""

    code = "tenant_mismatch"
    http_status = 403


class ExternalServiceError(DomainError):
    """A collaborator (e.g. substitute ranking) failed.

    Never escapes the leave-request lifecycle; it becomes an informational note.
    """

    code = "external_service_error"
    http_status = 502
