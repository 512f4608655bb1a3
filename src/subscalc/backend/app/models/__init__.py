"""Typed period models and result structures shared across the services.

Inputs are frozen Pydantic models so that validation and normalisation (month
parsing, category codes, grade labels) happen once at the boundary; derived
results are lightweight slotted dataclasses that the response builder
serialises.
"""

from __future__ import annotations

from .api import (
    CalculationRequest,
    WageAdditionRequest,
    WageRemovalRequest,
    format_validation_error,
)
from .periods import SubscriptionPeriod, WageSubPeriod
from .results import (
    AggregationBucket,
    AggregationMatrix,
    AggregationRow,
    BreakdownRow,
    CalculationResult,
    DisplayMode,
    PeriodResult,
)

__all__ = [
    "AggregationBucket",
    "AggregationMatrix",
    "AggregationRow",
    "BreakdownRow",
    "CalculationRequest",
    "CalculationResult",
    "DisplayMode",
    "PeriodResult",
    "SubscriptionPeriod",
    "WageAdditionRequest",
    "WageRemovalRequest",
    "WageSubPeriod",
    "format_validation_error",
]
