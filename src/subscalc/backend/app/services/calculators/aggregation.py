"""Roll period results up into a category by regime summary matrix."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import (
    AggregationBucket,
    AggregationMatrix,
    AggregationRow,
    BreakdownRow,
    DisplayMode,
    PeriodResult,
)
from subscalc.backend.config.schema import (
    EngineSettings,
    InsuranceType,
    Regime,
    WageKind,
    WorkerCategory,
)

from .utils import round_currency

_LOGGER = logging.getLogger(__name__)

BUCKETS: tuple[str, ...] = ("pre_basic", "pre_variable", "post")


def _category_label(code: str, translator: Translator | None) -> str:
    try:
        category = WorkerCategory.from_code(code)
    except KeyError:
        return code
    if translator is None:
        return category.value
    return translator(f"category.{category.value}")


def _add_detailed(bucket: AggregationBucket, rows: Sequence[BreakdownRow]) -> None:
    # Every insurance branch shares the pension window, so pension rows carry
    # the months and wage; contributions come from all rows.
    pension_rows = [row for row in rows if row.insurance_type is InsuranceType.PENSION]
    bucket.add(
        months=sum(row.months for row in pension_rows),
        total_wage=sum(row.total_wage for row in pension_rows),
        contribution=sum(row.total_amount for row in rows),
    )


def _add_grouped(target: AggregationRow, rows: Iterable[BreakdownRow], settings: EngineSettings) -> None:
    for row in rows:
        bucket = target.pre_basic if row.start < settings.cutover else target.post
        bucket.add(
            months=row.months, total_wage=row.total_wage, contribution=row.total_amount
        )


def aggregate(
    results: Iterable[PeriodResult],
    settings: EngineSettings,
    translator: Translator | None = None,
) -> AggregationMatrix:
    """Bucket successful results by sector code in the configured order."""

    rows = {
        code: AggregationRow(sector_code=code, label=_category_label(code, translator))
        for code in settings.aggregation_order
    }

    for result in results:
        if not result.succeeded:
            continue
        target = rows.get(result.sector_code or "")
        if target is None:
            _LOGGER.debug(
                "Sector %s of period %s is not aggregated", result.sector_code, result.period_id
            )
            continue

        if result.display_mode is not DisplayMode.DETAILED:
            _add_grouped(target, result.rows, settings)
        elif result.regime is Regime.POST:
            _add_detailed(target.post, result.rows)
        else:
            _add_detailed(
                target.pre_basic,
                [row for row in result.rows if row.wage_kind is not WageKind.VARIABLE],
            )
            _add_detailed(
                target.pre_variable,
                [row for row in result.rows if row.wage_kind is WageKind.VARIABLE],
            )

    totals = {name: AggregationBucket() for name in BUCKETS}
    for row in rows.values():
        for name in BUCKETS:
            totals[name].merge(getattr(row, name))

    grand_total = round_currency(
        sum(bucket.total_contribution for bucket in totals.values())
    )
    return AggregationMatrix(rows=list(rows.values()), totals=totals, grand_total=grand_total)


__all__ = ["BUCKETS", "aggregate"]
