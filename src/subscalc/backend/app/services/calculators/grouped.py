"""Grouped-table lookups for transport, construction and irregular workers."""

from __future__ import annotations

from datetime import date

from subscalc.backend.app.errors import LookupMissError
from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import BreakdownRow, SubscriptionPeriod
from subscalc.backend.config.schema import (
    EngineSettings,
    GradeRate,
    Regime,
    TableSet,
    WorkerCategory,
)
from subscalc.backend.months import format_month, iter_months

from .utils import require_category, require_window, round_currency


def _lookup(
    period: SubscriptionPeriod,
    category: WorkerCategory,
    month: date,
    tables: TableSet,
    settings: EngineSettings,
) -> tuple[GradeRate, Regime]:
    regime = settings.regime_for(month)
    row = tables.grouped_table(category, regime).find(month)
    if row is None:
        raise LookupMissError(
            f"No table data is available for {format_month(month)}",
            reason="no_table_row",
            month=month,
        )
    rate = row.rate_for(period.grade)
    if rate is None:
        raise LookupMissError(
            f"Grade '{period.grade}' is not published for {format_month(month)}",
            reason="no_grade",
            grade=period.grade or "",
            month=month,
        )
    return rate, regime


def _row_label(
    period: SubscriptionPeriod, category: WorkerCategory, translator: Translator
) -> str:
    if period.grade:
        return translator(f"grade.{period.grade}")
    return translator(f"category.{category.value}")


def calculate_grouped(
    period: SubscriptionPeriod,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> list[BreakdownRow]:
    """Return rows of contiguous months sharing wage, contribution and regime.

    The first month without a table row (or without the period's grade)
    raises :class:`LookupMissError` and no partial rows are returned.
    """

    category = require_category(period)
    start, end = require_window(period)
    label = _row_label(period, category, translator)
    rows: list[BreakdownRow] = []

    current: tuple[float, float, Regime] | None = None
    first: date | None = None
    last: date | None = None
    months = 0

    def flush() -> None:
        if current is None or first is None or last is None:
            return
        wage, contribution, _ = current
        rows.append(
            BreakdownRow(
                start=first,
                end=last,
                months=months,
                monthly_wage=round_currency(wage),
                total_wage=round_currency(wage * months),
                total_amount=round_currency(contribution * months),
                label=label,
                monthly_contribution=round_currency(contribution),
            )
        )

    for month in iter_months(start, end):
        rate, regime = _lookup(period, category, month, tables, settings)
        key = (rate.wage, rate.contribution, regime)
        if key == current:
            last = month
            months += 1
            continue
        flush()
        current, first, last, months = key, month, month, 1

    flush()
    return rows


__all__ = ["calculate_grouped"]
