"""Detailed contribution breakdown for standard employees and self-payers.

For every wage kind of the period's regime and every selected insurance
branch, the engine resolves one effective rate pair for the whole calculation
window, walks the window month by month and merges contiguous months sharing
the same wage into a single breakdown row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator

from subscalc.backend.app.errors import LookupMissError
from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import BreakdownRow, SubscriptionPeriod
from subscalc.backend.config.schema import (
    EngineSettings,
    InsuranceRates,
    InsuranceType,
    RateTable,
    ReductionRow,
    Regime,
    TableSet,
    WageKind,
    WorkerCategory,
)
from subscalc.backend.months import iter_months, month_end

from .utils import (
    clip_window,
    require_category,
    require_window,
    round_currency,
    round_rate,
)
from .wages import WageSchedule


@dataclass(frozen=True, slots=True)
class EffectiveRates:
    """Employee and employer percentages after reductions."""

    employee: float
    employer: float

    @property
    def is_zero(self) -> bool:
        return self.employee == 0 and self.employer == 0


@dataclass(frozen=True, slots=True)
class WagePass:
    """One wage kind walked by the engine.

    ``rate_kind`` selects the rate row (``None`` after the cutover),
    ``wage_kind`` selects the sub-periods and ``label_kind`` names the kind in
    row labels.
    """

    rate_kind: WageKind | None
    wage_kind: WageKind
    label_kind: WageKind
    start: date
    end: date


def apply_reductions(rates: InsuranceRates, reductions: Iterable[ReductionRow]) -> EffectiveRates:
    """Subtract each reduction from the employer share first, then the employee share."""

    employer = rates.employer
    employee = rates.employee
    for reduction in reductions:
        from_employer = min(employer, reduction.percentage)
        employer -= from_employer
        remaining = reduction.percentage - from_employer
        employee -= min(employee, remaining)
    return EffectiveRates(
        employee=round_rate(max(0.0, employee)),
        employer=round_rate(max(0.0, employer)),
    )


def combine_self_payer(rates: EffectiveRates) -> EffectiveRates:
    """Report the combined percentage on the employer side."""

    return EffectiveRates(
        employee=0.0, employer=round_rate(rates.employee + rates.employer)
    )


def wage_passes(period: SubscriptionPeriod, settings: EngineSettings) -> list[WagePass]:
    """Return the wage kinds walked for ``period`` with their windows."""

    category = period.worker_category
    start, last_month = require_window(period)
    end = month_end(last_month)

    if period.regime(settings.cutover) is Regime.POST:
        kind = WageKind.INCOME if category and category.is_self_payer else WageKind.UNIFIED
        return [WagePass(None, kind, kind, start, end)]

    # Self-payers share the basic rate row and basic wages before the cutover.
    basic_label = WageKind.INCOME if category and category.is_self_payer else WageKind.BASIC
    passes = [WagePass(WageKind.BASIC, WageKind.BASIC, basic_label, start, end)]

    variable_start, variable_end = start, end
    if period.has_variable_window:
        variable_start = max(start, period.variable_start)
        variable_end = min(end, month_end(period.variable_end))
    passes.append(
        WagePass(
            WageKind.VARIABLE,
            WageKind.VARIABLE,
            WageKind.VARIABLE,
            variable_start,
            variable_end,
        )
    )
    return passes


def _legal_floor_applies(regime: Regime, wage_pass: WagePass, insurance: InsuranceType) -> bool:
    if regime is not Regime.PRE:
        return False
    if wage_pass.rate_kind is WageKind.VARIABLE:
        return True
    return insurance is InsuranceType.BONUS


def _row_label(
    translator: Translator, regime: Regime, insurance: InsuranceType, kind: WageKind
) -> str:
    insurance_label = translator(f"insurance.{insurance.value}")
    if regime is Regime.POST:
        return insurance_label
    return translator(
        "breakdown.label.with_kind",
        insurance=insurance_label,
        kind=translator(f"wage_kind.{kind.value}"),
    )


def _runs(
    schedule: WageSchedule, kind: WageKind, start: date, end: date
) -> Iterator[tuple[date, date, int, float]]:
    """Yield ``(first, last, months, wage)`` runs of identical positive wages."""

    run_start: date | None = None
    run_end: date | None = None
    run_wage = 0.0
    count = 0

    for month in iter_months(start, end):
        wage = schedule.wage_for_month(month, kind)
        if wage is not None and wage > 0:
            if run_start is not None and wage == run_wage:
                run_end = month
                count += 1
                continue
            if run_start is not None:
                yield run_start, run_end, count, run_wage
            run_start, run_end, run_wage, count = month, month, wage, 1
        elif run_start is not None:
            yield run_start, run_end, count, run_wage
            run_start, run_end, count = None, None, 0

    if run_start is not None:
        yield run_start, run_end, count, run_wage


def _build_row(
    first: date,
    last: date,
    months: int,
    wage: float,
    rates: EffectiveRates,
    *,
    label: str,
    insurance: InsuranceType,
    kind: WageKind,
) -> BreakdownRow:
    total_wage = wage * months
    employee_amount = round_currency(total_wage * rates.employee / 100)
    employer_amount = round_currency(total_wage * rates.employer / 100)
    return BreakdownRow(
        start=first,
        end=last,
        months=months,
        monthly_wage=round_currency(wage),
        total_wage=round_currency(total_wage),
        total_amount=round_currency(employee_amount + employer_amount),
        label=label,
        insurance_type=insurance,
        wage_kind=kind,
        employee_rate=rates.employee,
        employer_rate=rates.employer,
        employee_amount=employee_amount,
        employer_amount=employer_amount,
    )


def _rate_table_for(
    tables: TableSet, regime: Regime, category: WorkerCategory
) -> RateTable:
    rate_table = tables.rates_for(regime)
    if not rate_table.has_category(category):
        raise LookupMissError(
            f"No contribution rates are published for '{category.value}'",
            reason="no_rates",
            category=category,
            regime=regime,
        )
    return rate_table


def calculate_detailed(
    period: SubscriptionPeriod,
    schedule: WageSchedule,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> list[BreakdownRow]:
    """Return breakdown rows for a standard-employment or self-payer period."""

    category = require_category(period)
    regime = period.regime(settings.cutover)
    rate_table = _rate_table_for(tables, regime, category)
    reduction_table = tables.reductions_for(regime)
    selected_reductions = period.reductions.selected if category.is_standard else ()

    rows: list[BreakdownRow] = []
    for wage_pass in wage_passes(period, settings):
        rate_row = rate_table.row_for(category, wage_pass.rate_kind)
        if rate_row is None:
            continue

        for insurance in InsuranceType:
            if not period.insurance.enabled(insurance):
                continue

            floor = settings.legal_floor if _legal_floor_applies(regime, wage_pass, insurance) else None
            window = clip_window(wage_pass.start, wage_pass.end, floor)
            if window is None:
                continue

            base_rates = rate_row.rates_for(insurance)
            if base_rates.is_zero:
                continue

            rates = apply_reductions(
                base_rates, reduction_table.applicable(insurance, selected_reductions)
            )
            if category.is_self_payer:
                rates = combine_self_payer(rates)

            label = _row_label(translator, regime, insurance, wage_pass.label_kind)
            for first, last, months, wage in _runs(
                schedule, wage_pass.wage_kind, window[0], window[1]
            ):
                rows.append(
                    _build_row(
                        first,
                        last,
                        months,
                        wage,
                        rates,
                        label=label,
                        insurance=insurance,
                        kind=wage_pass.label_kind,
                    )
                )

    return rows


__all__ = [
    "EffectiveRates",
    "WagePass",
    "apply_reductions",
    "calculate_detailed",
    "combine_self_payer",
    "wage_passes",
]
