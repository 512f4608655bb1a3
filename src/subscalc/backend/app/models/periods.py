"""Frozen input models for subscription periods and wage sub-periods."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from pydantic import Field, field_validator, model_validator

from subscalc.backend.config.schema import (
    ImmutableModel,
    InsuranceSelections,
    ReductionSelections,
    Regime,
    WageKind,
    WorkerCategory,
    coerce_category,
    coerce_grade,
)
from subscalc.backend.months import format_month, parse_month


def _optional_month(value: Any) -> date | None:
    return parse_month(value)


class WageSubPeriod(ImmutableModel):
    """A declared wage amount effective over part of a subscription period."""

    id: str | None = None
    kind: WageKind = Field(alias="type")
    start: date | None = None
    end: date | None = None
    amount: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_months(cls, value: Any) -> date | None:
        return _optional_month(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip()
            return float(text) if text else None
        return value

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "start": format_month(self.start) if self.start else None,
            "end": format_month(self.end) if self.end else None,
            "amount": self.amount,
        }


class SubscriptionPeriod(ImmutableModel):
    """An employment period submitted for contribution calculation.

    Ordering of ``start``/``end`` is deliberately not enforced here so that a
    malformed period surfaces as a per-period error instead of failing the
    whole request.
    """

    id: str
    sector_code: str | None = None
    worker_category: WorkerCategory | None = None
    start: date | None = None
    end: date | None = None
    variable_start: date | None = None
    variable_end: date | None = None
    grade: str | None = None
    wages: tuple[WageSubPeriod, ...] = ()
    insurance: InsuranceSelections = Field(default_factory=InsuranceSelections)
    reductions: ReductionSelections = Field(default_factory=ReductionSelections)

    @model_validator(mode="before")
    @classmethod
    def _default_sector_code(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        copied = dict(data)
        category = copied.get("worker_category")
        if not copied.get("sector_code") and category not in (None, ""):
            copied["sector_code"] = coerce_category(category).code
        return copied

    @field_validator("id", "sector_code", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("worker_category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> WorkerCategory | None:
        if value is None or value == "":
            return None
        return coerce_category(value)

    @field_validator("start", "end", "variable_start", "variable_end", mode="before")
    @classmethod
    def _parse_months(cls, value: Any) -> date | None:
        return _optional_month(value)

    @field_validator("grade", mode="before")
    @classmethod
    def _coerce_grade(cls, value: Any) -> str | None:
        return coerce_grade(value)

    @property
    def has_variable_window(self) -> bool:
        return self.variable_start is not None and self.variable_end is not None

    def regime(self, cutover: date) -> Regime:
        """Return the regime of the period, decided by its start month."""

        if self.start is None or self.start < cutover:
            return Regime.PRE
        return Regime.POST

    def wages_of(self, *kinds: WageKind) -> tuple[WageSubPeriod, ...]:
        """Return sub-periods of the given kinds sorted by start month."""

        selected = [wage for wage in self.wages if wage.kind in kinds]
        return tuple(sorted(selected, key=lambda wage: wage.start or date.min))

    def with_wages(self, wages: tuple[WageSubPeriod, ...]) -> SubscriptionPeriod:
        return self.model_copy(update={"wages": wages})

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sector_code": self.sector_code,
            "worker_category": self.worker_category.value if self.worker_category else None,
            "start": format_month(self.start) if self.start else None,
            "end": format_month(self.end) if self.end else None,
            "variable_start": format_month(self.variable_start) if self.variable_start else None,
            "variable_end": format_month(self.variable_end) if self.variable_end else None,
            "grade": self.grade,
            "wages": [wage.as_dict() for wage in self.wages],
            "insurance": self.insurance.model_dump(),
            "reductions": self.reductions.model_dump(),
        }


__all__ = ["SubscriptionPeriod", "WageSubPeriod"]
