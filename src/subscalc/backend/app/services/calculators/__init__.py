"""Domain-specific contribution helpers."""

from .aggregation import aggregate
from .contributions import calculate_period, pending_confirmations, run_calculation
from .detailed import apply_reductions, calculate_detailed
from .grouped import calculate_grouped
from .utils import format_percentage, round_currency, round_rate
from .wages import build_wage_schedule, needs_fallback, wage_for_month

__all__ = [
    "aggregate",
    "apply_reductions",
    "build_wage_schedule",
    "calculate_detailed",
    "calculate_grouped",
    "calculate_period",
    "format_percentage",
    "needs_fallback",
    "pending_confirmations",
    "round_currency",
    "round_rate",
    "run_calculation",
    "wage_for_month",
]
