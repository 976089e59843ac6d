"""Error taxonomy for game operations.

Every error carries an HTTP status and a stable code so the API layer can
render it without knowing which game raised it.
"""

from __future__ import annotations

from typing import Any


class GameError(Exception):
    """Base class for rejected game operations."""

    status_code = 400
    code = "game_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message}


class ValidationError(GameError):
    """Malformed or missing input, rejected before any mutation."""

    status_code = 400
    code = "validation_error"


class IllegalTransitionError(GameError):
    """Operation not valid for the session's current status."""

    status_code = 409
    code = "illegal_transition"

    def __init__(self, message: str, status: str | None = None) -> None:
        self.status = status
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.status is not None:
            payload["status"] = self.status
        return payload


class NotFoundError(GameError):
    status_code = 404
    code = "not_found"


class QuotaExceededError(GameError):
    """Admission denied by the subscription plan.

    ``current`` and ``limit`` are surfaced so clients can render an upgrade
    prompt.
    """

    status_code = 403
    code = "quota_exceeded"

    def __init__(self, message: str, current: int, limit: float, plan: str) -> None:
        self.current = current
        self.limit = limit
        self.plan = plan
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "limitReached": True,
                "current": self.current,
                "limit": self.limit if self.limit != float("inf") else None,
                "plan": self.plan,
            }
        )
        return payload


class ExternalDependencyError(GameError):
    """A collaborator (media host, ledger database) failed."""

    status_code = 502
    code = "external_dependency"
