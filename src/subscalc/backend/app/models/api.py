"""Pydantic models describing the public API surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .periods import SubscriptionPeriod, WageSubPeriod

__all__ = [
    "CalculationRequest",
    "WageAdditionRequest",
    "WageRemovalRequest",
    "format_validation_error",
]


class CalculationRequest(BaseModel):
    """Periods submitted for calculation along with session options."""

    model_config = ConfigDict(extra="forbid")

    periods: list[SubscriptionPeriod] = Field(default_factory=list)
    confirm_fallback: bool = False
    locale: str | None = None

    @field_validator("confirm_fallback", mode="before")
    @classmethod
    def _coerce_confirmation(cls, value: Any) -> bool:
        if value is None:
            return False
        return bool(value)

    @field_validator("periods")
    @classmethod
    def _unique_ids(cls, value: list[SubscriptionPeriod]) -> list[SubscriptionPeriod]:
        seen: set[str] = set()
        for period in value:
            if period.id in seen:
                raise ValueError(f"duplicate period id '{period.id}'")
            seen.add(period.id)
        return value


class WageAdditionRequest(BaseModel):
    """A wage sub-period to validate and append to a period."""

    model_config = ConfigDict(extra="forbid")

    period: SubscriptionPeriod
    wage: WageSubPeriod
    locale: str | None = None


class WageRemovalRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    period: SubscriptionPeriod
    wage_id: str
    locale: str | None = None


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"
