"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from flask import jsonify

from subscalc.backend.app.errors import (
    BoundViolation,
    FallbackConfirmationRequired,
    NoValidPeriodsError,
    SubscriptionError,
)

if TYPE_CHECKING:  # pragma: no cover - only for static type checkers
    from subscalc.backend.app.localization import Translator


# Errors not listed here are reported as 400 responses.
_STATUS_BY_ERROR: tuple[tuple[type[SubscriptionError], int], ...] = (
    (FallbackConfirmationRequired, 409),
    (BoundViolation, 422),
    (NoValidPeriodsError, 422),
)


@dataclass(frozen=True)
class ProblemResponse:
    """Lightweight representation of an RFC 7807-style error payload."""

    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the serialisable payload for this problem response."""

        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        """Convert the problem payload into a Flask response tuple."""

        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    """Convenience factory mirroring Flask's ``jsonify`` interface."""

    additional: Mapping[str, Any] | None = extra or None
    return ProblemResponse(error=error, status=status, message=message, extra=additional)


def status_for(error: SubscriptionError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 400


def subscription_problem(
    error: SubscriptionError, translator: Translator | None = None
) -> ProblemResponse:
    """Build the problem payload of a domain error in the caller's locale."""

    payload = error.as_dict(translator)
    extra: dict[str, Any] = {}
    if "details" in payload:
        extra["details"] = payload["details"]
    if isinstance(error, FallbackConfirmationRequired):
        extra["period_ids"] = list(error.period_ids)
    return problem_response(
        error.code, status=status_for(error), message=payload["message"], **extra
    )


__all__ = ["ProblemResponse", "problem_response", "status_for", "subscription_problem"]
