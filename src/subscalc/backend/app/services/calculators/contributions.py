"""Per-period dispatch and whole-request orchestration of the engine."""

from __future__ import annotations

import logging
from typing import Sequence

from subscalc.backend.app.errors import (
    FallbackConfirmationRequired,
    LookupMissError,
    NoValidPeriodsError,
    SubscriptionError,
    ValidationError,
)
from subscalc.backend.app.localization import Translator, get_translator
from subscalc.backend.app.models import (
    CalculationResult,
    DisplayMode,
    PeriodResult,
    SubscriptionPeriod,
)
from subscalc.backend.app.services.period_service import validate_period_for_calculation
from subscalc.backend.config.schema import EngineSettings, TableSet

from .aggregation import aggregate
from .detailed import calculate_detailed
from .grouped import calculate_grouped
from .utils import round_currency
from .wages import build_wage_schedule, needs_fallback

_LOGGER = logging.getLogger(__name__)

# Validation failures that still belong to a specific calculation path.
_DETAILED_REASONS = frozenset({"missing_variable_wages", "variable_outside_period"})
_GROUPED_REASONS = frozenset({"missing_grade"})


def _success_mode(period: SubscriptionPeriod) -> DisplayMode:
    category = period.worker_category
    if category is not None and category.is_grouped:
        return DisplayMode.DETAILED_GROUPED
    return DisplayMode.DETAILED


def _failure_mode(error: SubscriptionError) -> DisplayMode:
    reason = getattr(error, "reason", None)
    if reason in _DETAILED_REASONS:
        return DisplayMode.DETAILED
    if reason in _GROUPED_REASONS:
        return DisplayMode.DETAILED_GROUPED
    return DisplayMode.GROUPED


def _failed(
    period: SubscriptionPeriod,
    error: SubscriptionError,
    mode: DisplayMode,
    settings: EngineSettings,
    translator: Translator,
) -> PeriodResult:
    message = error.describe(translator)
    _LOGGER.warning("Period %s could not be calculated: %s", period.id, error.message)
    return PeriodResult(
        period_id=period.id,
        display_mode=mode,
        sector_code=period.sector_code,
        worker_category=period.worker_category,
        regime=period.regime(settings.cutover) if period.start else None,
        error=error,
        error_message=message,
    )


def calculate_period(
    period: SubscriptionPeriod,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
    *,
    confirm_fallback: bool = False,
) -> PeriodResult:
    """Return the breakdown of ``period`` or the error that stopped it.

    Validation and lookup failures are attached to the result. Only an
    unconfirmed statutory minimum fallback propagates to the caller.
    """

    errors = validate_period_for_calculation(period, settings)
    if errors:
        return _failed(period, errors[0], _failure_mode(errors[0]), settings, translator)

    mode = _success_mode(period)
    fallback_applied = False
    try:
        if mode is DisplayMode.DETAILED_GROUPED:
            rows = calculate_grouped(period, tables, settings, translator)
        else:
            schedule = build_wage_schedule(
                period, tables, settings, confirm_fallback=confirm_fallback
            )
            fallback_applied = schedule.fallback_applied
            rows = calculate_detailed(period, schedule, tables, settings, translator)
    except (LookupMissError, ValidationError) as error:
        return _failed(period, error, mode, settings, translator)

    return PeriodResult(
        period_id=period.id,
        display_mode=mode,
        sector_code=period.sector_code,
        worker_category=period.worker_category,
        regime=period.regime(settings.cutover),
        rows=rows,
        total=round_currency(sum(row.total_amount for row in rows)),
        fallback_applied=fallback_applied,
    )


def pending_confirmations(
    periods: Sequence[SubscriptionPeriod], settings: EngineSettings
) -> list[str]:
    """Return ids of otherwise valid periods that would need a fallback."""

    pending: list[str] = []
    for period in periods:
        if validate_period_for_calculation(period, settings):
            continue
        if _success_mode(period) is DisplayMode.DETAILED_GROUPED:
            continue
        if needs_fallback(period, settings):
            pending.append(period.id)
    return pending


def run_calculation(
    periods: Sequence[SubscriptionPeriod],
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator | None = None,
    *,
    confirm_fallback: bool = False,
) -> CalculationResult:
    """Calculate every period, then the grand total and the aggregation matrix.

    Raises :class:`FallbackConfirmationRequired` before any calculation when
    at least one period needs the statutory minimum and ``confirm_fallback``
    is not set.
    """

    translator = translator or get_translator()

    if not confirm_fallback:
        pending = pending_confirmations(periods, settings)
        if pending:
            raise FallbackConfirmationRequired(pending)

    results = [
        calculate_period(
            period, tables, settings, translator, confirm_fallback=confirm_fallback
        )
        for period in periods
    ]

    grand_total = round_currency(
        sum(result.total for result in results if result.succeeded)
    )
    aggregation = aggregate(results, settings, translator)

    calculation = CalculationResult(
        periods=results, grand_total=grand_total, aggregation=aggregation
    )
    if not any(result.succeeded and result.rows for result in results):
        error = NoValidPeriodsError(
            {
                result.period_id: result.error_message or ""
                for result in results
                if not result.succeeded
            }
        )
        calculation.error = error
        calculation.error_message = error.describe(translator)
    return calculation


__all__ = [
    "calculate_period",
    "pending_confirmations",
    "run_calculation",
]
