"""Result structures produced by the contribution engine and aggregation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from subscalc.backend.app.errors import SubscriptionError
from subscalc.backend.config.schema import InsuranceType, Regime, WageKind, WorkerCategory
from subscalc.backend.months import format_month


class DisplayMode(str, Enum):
    DETAILED = "detailed"
    GROUPED = "grouped"
    DETAILED_GROUPED = "detailed-grouped"


@dataclass(slots=True)
class BreakdownRow:
    """A run of contiguous months sharing the same wage and rates."""

    start: date
    end: date
    months: int
    monthly_wage: float
    total_wage: float
    total_amount: float
    label: str
    insurance_type: InsuranceType | None = None
    wage_kind: WageKind | None = None
    employee_rate: float | None = None
    employer_rate: float | None = None
    employee_amount: float | None = None
    employer_amount: float | None = None
    monthly_contribution: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "start": format_month(self.start),
            "end": format_month(self.end),
            "months": self.months,
            "label": self.label,
            "insurance_type": self.insurance_type.value if self.insurance_type else None,
            "wage_kind": self.wage_kind.value if self.wage_kind else None,
            "monthly_wage": self.monthly_wage,
            "total_wage": self.total_wage,
            "employee_rate": self.employee_rate,
            "employer_rate": self.employer_rate,
            "employee_amount": self.employee_amount,
            "employer_amount": self.employer_amount,
            "monthly_contribution": self.monthly_contribution,
            "total_amount": self.total_amount,
        }


@dataclass(slots=True)
class PeriodResult:
    """Outcome of one period: breakdown rows or the error that stopped it."""

    period_id: str
    display_mode: DisplayMode
    sector_code: str | None = None
    worker_category: WorkerCategory | None = None
    regime: Regime | None = None
    rows: list[BreakdownRow] = field(default_factory=list)
    total: float = 0.0
    error: SubscriptionError | None = None
    error_message: str | None = None
    fallback_applied: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.period_id,
            "sector_code": self.sector_code,
            "worker_category": self.worker_category.value if self.worker_category else None,
            "regime": self.regime.value if self.regime else None,
            "display_mode": self.display_mode.value,
            "rows": [row.as_dict() for row in self.rows],
            "total": self.total,
            "fallback_applied": self.fallback_applied,
        }
        if self.error is not None:
            error_payload = self.error.as_dict()
            error_payload["message"] = self.error_message or error_payload["message"]
            payload["error"] = error_payload
        return payload


@dataclass(slots=True)
class AggregationBucket:
    """Months, wage and contribution accumulated for one regime/wage bucket."""

    months: int = 0
    total_wage: float = 0.0
    total_contribution: float = 0.0

    def add(self, months: int = 0, total_wage: float = 0.0, contribution: float = 0.0) -> None:
        self.months += months
        self.total_wage += total_wage
        self.total_contribution += contribution

    def merge(self, other: AggregationBucket) -> None:
        self.add(other.months, other.total_wage, other.total_contribution)

    def as_dict(self) -> dict[str, Any]:
        return {
            "months": self.months,
            "total_wage": round(self.total_wage, 2),
            "total_contribution": round(self.total_contribution, 2),
        }


@dataclass(slots=True)
class AggregationRow:
    sector_code: str
    label: str
    pre_basic: AggregationBucket = field(default_factory=AggregationBucket)
    pre_variable: AggregationBucket = field(default_factory=AggregationBucket)
    post: AggregationBucket = field(default_factory=AggregationBucket)

    @property
    def total_contribution(self) -> float:
        return (
            self.pre_basic.total_contribution
            + self.pre_variable.total_contribution
            + self.post.total_contribution
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "sector_code": self.sector_code,
            "label": self.label,
            "pre_basic": self.pre_basic.as_dict(),
            "pre_variable": self.pre_variable.as_dict(),
            "post": self.post.as_dict(),
            "total_contribution": round(self.total_contribution, 2),
        }


@dataclass(slots=True)
class AggregationMatrix:
    """Category by regime summary with per-bucket totals and a grand total."""

    rows: list[AggregationRow] = field(default_factory=list)
    totals: dict[str, AggregationBucket] = field(default_factory=dict)
    grand_total: float = 0.0

    def row_for(self, sector_code: str) -> AggregationRow | None:
        for row in self.rows:
            if row.sector_code == sector_code:
                return row
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "rows": [row.as_dict() for row in self.rows],
            "totals": {key: bucket.as_dict() for key, bucket in self.totals.items()},
            "grand_total": round(self.grand_total, 2),
        }


@dataclass(slots=True)
class CalculationResult:
    periods: list[PeriodResult]
    grand_total: float
    aggregation: AggregationMatrix
    error: SubscriptionError | None = None
    error_message: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "periods": [result.as_dict() for result in self.periods],
            "grand_total": self.grand_total,
            "aggregation": self.aggregation.as_dict(),
        }
        if self.error is not None:
            error_payload = self.error.as_dict()
            error_payload["message"] = self.error_message or error_payload["message"]
            payload["error"] = error_payload
        return payload


__all__ = [
    "AggregationBucket",
    "AggregationMatrix",
    "AggregationRow",
    "BreakdownRow",
    "CalculationResult",
    "DisplayMode",
    "PeriodResult",
]
