"""Resolve the active monthly wage of a period for any month and wage kind.

Declared sub-periods are turned into inclusive day intervals once per kind.
An open-ended sub-period runs until the day before the next sub-period of the
same kind starts, otherwise to the end of the variable window (variable kind)
or of the period. Lookups return the first interval containing the month.

When a category mandates a wage kind that the caller did not declare, the
statutory minimum from the kind's boundary table can be synthesised instead,
but only once the caller has confirmed the fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Sequence

from subscalc.backend.app.errors import FallbackConfirmationRequired, LookupMissError
from subscalc.backend.app.models import SubscriptionPeriod, WageSubPeriod
from subscalc.backend.config.schema import (
    EngineSettings,
    RangeTable,
    Regime,
    TableSet,
    WageKind,
)
from subscalc.backend.months import (
    FAR_FUTURE,
    month_end,
    month_start,
    previous_day,
)


@dataclass(frozen=True, slots=True)
class WageInterval:
    start: date
    end: date
    amount: float
    sub_period_id: str | None = None

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def _default_end(period: SubscriptionPeriod, kind: WageKind) -> date:
    if kind is WageKind.VARIABLE and period.variable_end is not None:
        return month_end(period.variable_end)
    if period.end is not None:
        return month_end(period.end)
    return FAR_FUTURE


def wage_intervals(
    period: SubscriptionPeriod,
    kind: WageKind,
    sub_periods: Sequence[WageSubPeriod] | None = None,
) -> tuple[WageInterval, ...]:
    """Return the derived intervals of every usable sub-period of ``kind``."""

    candidates = period.wages if sub_periods is None else sub_periods
    usable = sorted(
        (
            wage
            for wage in candidates
            if wage.kind is kind and wage.start is not None and wage.amount is not None
        ),
        key=lambda wage: wage.start,
    )

    intervals: list[WageInterval] = []
    for index, wage in enumerate(usable):
        if wage.end is not None:
            end = month_end(wage.end)
        elif index + 1 < len(usable):
            end = previous_day(usable[index + 1].start)
        else:
            end = _default_end(period, kind)
        intervals.append(
            WageInterval(
                start=wage.start,
                end=end,
                amount=float(wage.amount),
                sub_period_id=wage.id,
            )
        )
    return tuple(intervals)


def _first_match(intervals: Iterable[WageInterval], month: date) -> float | None:
    for interval in intervals:
        if interval.contains(month):
            return interval.amount
    return None


def wage_for_month(
    period: SubscriptionPeriod,
    month: date,
    kind: WageKind,
    sub_periods: Sequence[WageSubPeriod] | None = None,
) -> float | None:
    """Return the wage of ``kind`` active in ``month``, or ``None``."""

    return _first_match(wage_intervals(period, kind, sub_periods), month_start(month))


def mandatory_kind(period: SubscriptionPeriod, settings: EngineSettings) -> WageKind | None:
    """Return the wage kind the period's sector must declare, if any."""

    if period.start is None or period.worker_category is None:
        return None
    code = period.sector_code or period.worker_category.code
    if period.regime(settings.cutover) is Regime.PRE:
        return WageKind.BASIC if code in settings.pre_fallback_sectors else None
    if code not in settings.post_fallback_sectors:
        return None
    return WageKind.INCOME if period.worker_category.is_self_payer else WageKind.UNIFIED


def needs_fallback(period: SubscriptionPeriod, settings: EngineSettings) -> bool:
    """Return ``True`` when mandatory wages are missing and must be synthesised."""

    kind = mandatory_kind(period, settings)
    if kind is None:
        return False
    if kind is WageKind.BASIC:
        return not period.wages_of(WageKind.BASIC)
    return not period.wages_of(WageKind.UNIFIED, WageKind.INCOME)


def synthesize_fallback(
    period: SubscriptionPeriod, kind: WageKind, ranges: RangeTable
) -> list[WageSubPeriod]:
    """Create one sub-period per boundary segment overlapping the period.

    Each synthetic sub-period carries the segment minimum, or zero when the
    segment has no minimum.
    """

    if period.start is None or period.end is None:
        return []

    period_end = month_end(period.end)
    synthesized: list[WageSubPeriod] = []
    for index, segment in enumerate(ranges.overlapping(period.start, period_end), start=1):
        overlap_start = max(period.start, segment.start)
        overlap_end = min(period_end, segment.end)
        if overlap_start > overlap_end:
            continue
        synthesized.append(
            WageSubPeriod(
                id=f"auto-{period.id}-{index}",
                kind=kind,
                start=month_start(overlap_start),
                end=month_start(overlap_end),
                amount=segment.minimum or 0.0,
            )
        )
    return synthesized


@dataclass(frozen=True)
class WageSchedule:
    """Pre-computed wage intervals of one period, keyed by wage kind."""

    period: SubscriptionPeriod
    intervals: Mapping[WageKind, tuple[WageInterval, ...]]
    synthesized: tuple[WageSubPeriod, ...] = field(default_factory=tuple)

    @property
    def fallback_applied(self) -> bool:
        return bool(self.synthesized)

    def wage_for_month(self, month: date, kind: WageKind) -> float | None:
        return _first_match(self.intervals.get(kind, ()), month_start(month))


def build_wage_schedule(
    period: SubscriptionPeriod,
    tables: TableSet,
    settings: EngineSettings,
    *,
    confirm_fallback: bool = False,
) -> WageSchedule:
    """Resolve declared and, when confirmed, synthesised wages of ``period``."""

    wages: list[WageSubPeriod] = list(period.wages)
    synthesized: list[WageSubPeriod] = []

    kind = mandatory_kind(period, settings)
    if kind is not None and needs_fallback(period, settings):
        if not confirm_fallback:
            raise FallbackConfirmationRequired([period.id])
        synthesized = synthesize_fallback(period, kind, tables.fallback_table_for(kind))
        if not synthesized:
            raise LookupMissError(
                "No statutory minimum wage range covers the period",
                reason="no_fallback_range",
                wage_kind=kind,
            )
        wages.extend(synthesized)

    intervals = {entry: wage_intervals(period, entry, wages) for entry in WageKind}
    return WageSchedule(period=period, intervals=intervals, synthesized=tuple(synthesized))


__all__ = [
    "WageInterval",
    "WageSchedule",
    "build_wage_schedule",
    "mandatory_kind",
    "needs_fallback",
    "synthesize_fallback",
    "wage_for_month",
    "wage_intervals",
]
