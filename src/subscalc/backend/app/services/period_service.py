"""Validate-then-apply commands for periods and their wage sub-periods.

Every command returns a new immutable period; callers serialise edits and
recalculate afterwards. Sub-period checks run in a fixed order and the first
failure is raised:

1. start and amount are present (and the amount is not negative);
2. the first sub-period of a kind starts on the kind's anchor month;
3. the sub-period lies within the parent period and starts before it ends;
4. no other sub-period of the same kind starts in the same month;
5. the amount respects every overlapping statutory minimum and maximum;
6. variable wages do not start before the 1984 legal floor.
"""

from __future__ import annotations

import logging
from datetime import date

from subscalc.backend.app.errors import (
    BoundViolation,
    RegimeCrossingError,
    SubscriptionError,
    ValidationError,
)
from subscalc.backend.app.models import SubscriptionPeriod, WageSubPeriod
from subscalc.backend.config.schema import (
    EngineSettings,
    Regime,
    TableSet,
    WageKind,
    WorkerCategory,
)
from subscalc.backend.months import format_month, month_end

_LOGGER = logging.getLogger(__name__)


def _anchor_for(period: SubscriptionPeriod, kind: WageKind) -> date | None:
    if kind is WageKind.VARIABLE and period.variable_start is not None:
        return period.variable_start
    return period.start


def _siblings(period: SubscriptionPeriod, candidate: WageSubPeriod) -> list[WageSubPeriod]:
    """Return same-kind sub-periods other than the one being edited."""

    return [
        wage
        for wage in period.wages_of(candidate.kind)
        if candidate.id is None or wage.id != candidate.id
    ]


def _check_bounds(
    candidate: WageSubPeriod, amount: float, start: date, end: date, tables: TableSet
) -> None:
    last_day = month_end(end)

    for table in tables.limit_tables_for(candidate.kind):
        for segment in table.overlapping(start, last_day):
            overlap_start = max(start, segment.start)
            overlap_end = min(last_day, segment.end)
            if segment.minimum is not None and amount < segment.minimum:
                raise BoundViolation(
                    amount=amount,
                    bound=segment.minimum,
                    bound_type="minimum",
                    overlap_start=overlap_start,
                    overlap_end=overlap_end,
                    wage_kind=candidate.kind,
                )
            if segment.maximum is not None and amount > segment.maximum:
                raise BoundViolation(
                    amount=amount,
                    bound=segment.maximum,
                    bound_type="maximum",
                    overlap_start=overlap_start,
                    overlap_end=overlap_end,
                    wage_kind=candidate.kind,
                )


def validate_sub_period_addition(
    period: SubscriptionPeriod,
    candidate: WageSubPeriod,
    tables: TableSet,
    settings: EngineSettings | None = None,
) -> None:
    """Raise the first validation failure for adding or editing ``candidate``."""

    settings = settings or EngineSettings()

    if candidate.start is None:
        raise ValidationError("The wage start month is required", reason="missing_start")
    if candidate.amount is None:
        raise ValidationError("The wage amount is required", reason="missing_amount")
    if candidate.amount < 0:
        raise ValidationError("The wage amount cannot be negative", reason="invalid_amount")
    if period.start is None or period.end is None:
        raise ValidationError(
            "The period start and end months are required", reason="missing_dates"
        )

    siblings = _siblings(period, candidate)
    if not siblings:
        anchor = _anchor_for(period, candidate.kind)
        if candidate.start != anchor:
            raise ValidationError(
                (
                    f"The first {candidate.kind.value} wage must start on "
                    f"{format_month(anchor)}"
                ),
                reason="anchor_mismatch",
                anchor=anchor,
                wage_kind=candidate.kind,
            )

    end = candidate.end or period.end
    if candidate.end is not None and candidate.start > candidate.end:
        raise ValidationError(
            "The wage start month must not be after its end month",
            reason="start_after_end",
        )
    if candidate.start < period.start or max(candidate.start, end) > period.end:
        raise ValidationError(
            (
                f"The wage must fall within the period {format_month(period.start)} "
                f"to {format_month(period.end)}"
            ),
            reason="outside_period",
            period_start=period.start,
            period_end=period.end,
        )

    if any(wage.start == candidate.start for wage in siblings):
        raise ValidationError(
            f"A {candidate.kind.value} wage already starts on {format_month(candidate.start)}",
            reason="duplicate_start",
            start=candidate.start,
        )

    _check_bounds(candidate, candidate.amount, candidate.start, end, tables)

    if candidate.kind is WageKind.VARIABLE and candidate.start < settings.legal_floor:
        raise ValidationError(
            (
                "Variable wages are not accepted before "
                f"{settings.legal_floor.isoformat()}"
            ),
            reason="variable_before_floor",
            floor=settings.legal_floor,
        )


def _next_sub_period_id(period: SubscriptionPeriod) -> str:
    taken = {wage.id for wage in period.wages}
    index = len(period.wages) + 1
    while f"{period.id}-w{index}" in taken:
        index += 1
    return f"{period.id}-w{index}"


def add_sub_period(
    period: SubscriptionPeriod,
    candidate: WageSubPeriod,
    tables: TableSet,
    settings: EngineSettings | None = None,
) -> SubscriptionPeriod:
    """Validate ``candidate`` and return a new period including it.

    A candidate whose id matches an existing sub-period replaces it.
    """

    validate_sub_period_addition(period, candidate, tables, settings)

    if candidate.id is None:
        candidate = candidate.model_copy(update={"id": _next_sub_period_id(period)})

    replaced = False
    wages: list[WageSubPeriod] = []
    for wage in period.wages:
        if wage.id == candidate.id:
            wages.append(candidate)
            replaced = True
        else:
            wages.append(wage)
    if not replaced:
        wages.append(candidate)

    _LOGGER.debug(
        "%s %s wage %s on period %s",
        "Updated" if replaced else "Added",
        candidate.kind.value,
        candidate.id,
        period.id,
    )
    return period.with_wages(tuple(wages))


def remove_sub_period(period: SubscriptionPeriod, sub_period_id: str) -> SubscriptionPeriod:
    """Return a new period without the sub-period identified by ``sub_period_id``."""

    remaining = tuple(wage for wage in period.wages if wage.id != sub_period_id)
    if len(remaining) == len(period.wages):
        raise ValidationError(
            f"Wage '{sub_period_id}' does not exist on period '{period.id}'",
            reason="unknown_sub_period",
            sub_period_id=sub_period_id,
        )
    return period.with_wages(remaining)


def validate_period_for_calculation(
    period: SubscriptionPeriod, settings: EngineSettings
) -> list[SubscriptionError]:
    """Return the reasons ``period`` cannot be calculated (empty when ready)."""

    if period.worker_category is None:
        return [
            ValidationError("The worker category is required", reason="missing_category")
        ]
    if period.start is None or period.end is None:
        return [
            ValidationError(
                "The period start and end months are required", reason="missing_dates"
            )
        ]
    if period.start > period.end:
        return [
            ValidationError(
                "The period start month must be before its end month",
                reason="start_after_end",
            )
        ]

    errors: list[SubscriptionError] = []
    code = period.sector_code or period.worker_category.code
    if (
        code in settings.restricted_sectors
        and period.start < settings.cutover <= period.end
    ):
        errors.append(RegimeCrossingError(cutover=settings.cutover))

    if period.has_variable_window and not (
        period.start <= period.variable_start <= period.variable_end <= period.end
    ):
        errors.append(
            ValidationError(
                (
                    "The variable wage window must start before it ends and fall "
                    f"within the period {format_month(period.start)} to "
                    f"{format_month(period.end)}"
                ),
                reason="variable_outside_period",
                period_start=period.start,
                period_end=period.end,
            )
        )

    category = period.worker_category
    if category in (WorkerCategory.TRANSPORT, WorkerCategory.CONSTRUCTION) and not period.grade:
        errors.append(
            ValidationError("A worker grade is required for this category", reason="missing_grade")
        )

    if (
        category.is_standard
        and period.regime(settings.cutover) is Regime.PRE
        and period.has_variable_window
        and not period.wages_of(WageKind.VARIABLE)
    ):
        errors.append(
            ValidationError(
                (
                    "A variable wage window was declared, so variable wages must be "
                    "entered within the statutory maximums"
                ),
                reason="missing_variable_wages",
            )
        )

    return errors


__all__ = [
    "add_sub_period",
    "remove_sub_period",
    "validate_period_for_calculation",
    "validate_sub_period_addition",
]
