"""Domain errors raised while validating periods and computing contributions.

Every error carries a stable ``code`` used in API payloads and a translation
``message_key``; the keyword ``params`` fill the localized template so that
errors attached to period results read naturally in every catalogue.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from subscalc.backend.months import format_month

if TYPE_CHECKING:  # pragma: no cover - only for static type checkers
    from subscalc.backend.app.localization import Translator


def _serialise(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_serialise(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


class SubscriptionError(ValueError):
    """Base class for contribution engine errors."""

    code = "subscription_error"
    message_key = "errors.subscription"

    def __init__(self, message: str, **params: Any) -> None:
        super().__init__(message)
        self.message = message
        self.params: Mapping[str, Any] = params

    def describe(self, translator: Translator | None = None) -> str:
        """Return the localized message, or the plain message without a catalogue."""

        if translator is None:
            return self.message
        localized = translator(self.message_key, **self._template_params())
        return localized if localized != self.message_key else self.message

    def _template_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for key, value in self.params.items():
            if isinstance(value, date):
                params[key] = format_month(value)
            else:
                params[key] = _serialise(value)
        return params

    def as_dict(self, translator: Translator | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.describe(translator)}
        details = {key: _serialise(value) for key, value in self.params.items()}
        if details:
            payload["details"] = details
        return payload


class ValidationError(SubscriptionError):
    """Missing or malformed fields, ordering violations and anchor mismatches."""

    code = "validation_error"
    message_key = "errors.validation"

    def __init__(self, message: str, *, reason: str | None = None, **params: Any) -> None:
        super().__init__(message, **params)
        self.reason = reason
        if reason is not None:
            self.message_key = f"errors.validation.{reason}"


class BoundViolation(SubscriptionError):
    """A wage amount falls outside a statutory minimum or maximum."""

    code = "bound_violation"

    def __init__(
        self,
        *,
        amount: float,
        bound: float,
        bound_type: str,
        overlap_start: date,
        overlap_end: date,
        wage_kind: Any = None,
    ) -> None:
        relation = "below the minimum" if bound_type == "minimum" else "above the maximum"
        message = (
            f"Amount {amount:g} is {relation} of {bound:g} for "
            f"{format_month(overlap_start)} to {format_month(overlap_end)}"
        )
        super().__init__(
            message,
            amount=amount,
            bound=bound,
            bound_type=bound_type,
            overlap_start=overlap_start,
            overlap_end=overlap_end,
            wage_kind=wage_kind,
        )
        self.amount = amount
        self.bound = bound
        self.bound_type = bound_type
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        self.wage_kind = wage_kind
        self.message_key = f"errors.bound_violation.{bound_type}"


class RegimeCrossingError(SubscriptionError):
    """A restricted category period spans the regime cutover."""

    code = "regime_crossing"
    message_key = "errors.regime_crossing"

    def __init__(self, *, cutover: date) -> None:
        super().__init__(
            (
                f"The period cannot cross {cutover.isoformat()}; split it into a period "
                "ending before the cutover and one starting on it"
            ),
            cutover=cutover,
        )
        self.cutover = cutover


class LookupMissError(SubscriptionError):
    """No rate row, boundary range or grouped table row matches a month."""

    code = "lookup_miss"
    message_key = "errors.lookup_miss"

    def __init__(self, message: str, *, reason: str | None = None, **params: Any) -> None:
        super().__init__(message, **params)
        if reason is not None:
            self.message_key = f"errors.lookup_miss.{reason}"


class FallbackConfirmationRequired(SubscriptionError):
    """Mandatory wages are missing and statutory minimums need confirmation."""

    code = "confirmation_required"
    message_key = "errors.confirmation_required"

    def __init__(self, period_ids: Iterable[str]) -> None:
        ids = [str(period_id) for period_id in period_ids]
        super().__init__(
            (
                "Periods without mandatory wages will be calculated at the statutory "
                f"minimum; confirm to proceed ({', '.join(ids)})"
            ),
            period_ids=ids,
        )
        self.period_ids = tuple(ids)


class NoValidPeriodsError(SubscriptionError):
    """Every submitted period failed validation or lookup."""

    code = "no_valid_periods"
    message_key = "errors.no_valid_periods"

    def __init__(self, failures: Mapping[str, str] | None = None) -> None:
        super().__init__(
            "No valid periods were found to calculate; review the submitted data",
        )
        self.failures = dict(failures or {})


__all__ = [
    "BoundViolation",
    "FallbackConfirmationRequired",
    "LookupMissError",
    "NoValidPeriodsError",
    "RegimeCrossingError",
    "SubscriptionError",
    "ValidationError",
]
