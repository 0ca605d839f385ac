from __future__ import annotations

import threading
from typing import Any, Callable, Protocol, Sequence

import requests

from ..common.serialization import to_json
from ..core.exceptions import ExternalServiceError
from ..employees.model import Employee
from ..leave.model import LeaveRequest
from .model import Recommendation


class SubstituteRanker(Protocol):
    def rank(self, leave_request: LeaveRequest, candidates: Sequence[Employee]) -> Sequence[Recommendation]:
        """Best match first. May raise or hang; callers bound and absorb both."""

        raise NotImplementedError


class NullSubstituteRanker(SubstituteRanker):
    """Used when no ranking service is configured: never recommends anyone."""

    def rank(self, leave_request: LeaveRequest, candidates: Sequence[Employee]) -> Sequence[Recommendation]:
        return []


def parse_recommendations(payload: Any) -> list[Recommendation]:
    """Accepts ``{"recommendations": [{"substituteId", "matchScore", "reasons"}]}``."""
    if not isinstance(payload, dict) or not isinstance(payload.get("recommendations"), list):
        raise ExternalServiceError("substitute ranking returned an unexpected payload")

    out: list[Recommendation] = []
    for item in payload["recommendations"]:
        try:
            out.append(
                Recommendation(
                    substitute_id=int(item["substituteId"]),
                    match_score=float(item.get("matchScore", 0.0)),
                    reasons=tuple(str(r) for r in item.get("reasons") or ()),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            raise ExternalServiceError(f"substitute ranking returned a malformed entry: {item!r}")
    return out


class HttpSubstituteRanker(SubstituteRanker):
    """Calls an external ranking service over HTTP (JSON in, JSON out).

    ``rank`` runs on the recommendation worker pool, so each worker thread
    gets its own session from ``session_factory``.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self._url = url
        self._timeout = float(timeout)
        self._session_factory = session_factory
        self._local = threading.local()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session

    def rank(self, leave_request: LeaveRequest, candidates: Sequence[Employee]) -> Sequence[Recommendation]:
        body = {
            "leaveRequest": to_json(leave_request),
            "candidates": [
                {
                    "substituteId": c.employee_id,
                    "name": c.full_name,
                    "employeeType": c.employee_type.value,
                }
                for c in candidates
            ],
        }
        try:
            resp = self._session().post(self._url, json=body, timeout=self._timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise ExternalServiceError(f"substitute ranking request failed: {exc}") from exc
        except ValueError as exc:
            raise ExternalServiceError("substitute ranking returned non-JSON") from exc
        return parse_recommendations(payload)
