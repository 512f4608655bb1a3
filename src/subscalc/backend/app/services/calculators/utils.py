"""Utility helpers for calculator modules."""

from __future__ import annotations

from datetime import date

from subscalc.backend.app.errors import ValidationError
from subscalc.backend.app.models import SubscriptionPeriod
from subscalc.backend.config.schema import WorkerCategory


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for a rate given in percent."""

    if float(int(value)) == value:
        return f"{int(value)}%"
    return f"{value:.2f}%"


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)


def clip_window(
    start: date, end: date, floor: date | None = None
) -> tuple[date, date] | None:
    """Clip ``[start, end]`` so it begins no earlier than ``floor``.

    Returns ``None`` when the window ends before the floor or is empty.
    """

    if floor is not None:
        if end < floor:
            return None
        if start < floor:
            start = floor
    if start > end:
        return None
    return start, end


def require_window(period: SubscriptionPeriod) -> tuple[date, date]:
    """Return the start and end months of ``period`` or raise ``missing_dates``."""

    if period.start is None or period.end is None:
        raise ValidationError(
            "The period start and end months are required", reason="missing_dates"
        )
    return period.start, period.end


def require_category(period: SubscriptionPeriod) -> WorkerCategory:
    if period.worker_category is None:
        raise ValidationError("The worker category is required", reason="missing_category")
    return period.worker_category
