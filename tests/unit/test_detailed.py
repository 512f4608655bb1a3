"""Unit tests for the detailed contribution engine."""

from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from subscalc.backend.app.errors import ValidationError
from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import BreakdownRow, SubscriptionPeriod
from subscalc.backend.app.services.calculators.detailed import (
    apply_reductions,
    calculate_detailed,
    wage_passes,
)
from subscalc.backend.app.services.calculators.wages import build_wage_schedule
from subscalc.backend.config.schema import (
    EngineSettings,
    InsuranceRates,
    InsuranceType,
    ReductionKind,
    ReductionRow,
    TableSet,
    WageKind,
)

PeriodFactory = Callable[..., SubscriptionPeriod]


@pytest.fixture()
def calculate(
    tables: TableSet, settings: EngineSettings, translator: Translator
) -> Callable[[SubscriptionPeriod], list[BreakdownRow]]:
    def runner(period: SubscriptionPeriod) -> list[BreakdownRow]:
        schedule = build_wage_schedule(period, tables, settings, confirm_fallback=True)
        return calculate_detailed(period, schedule, tables, settings, translator)

    return runner


def _rows_for(
    rows: list[BreakdownRow], insurance: InsuranceType, kind: WageKind | None = None
) -> list[BreakdownRow]:
    return [
        row
        for row in rows
        if row.insurance_type is insurance and (kind is None or row.wage_kind is kind)
    ]


def test_private_sector_pension_row(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2019-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
    )

    rows = calculate(period)

    (pension,) = _rows_for(rows, InsuranceType.PENSION)
    assert pension.months == 24
    assert pension.total_wage == 24000.00
    assert pension.employee_rate == 11
    assert pension.employer_rate == 15
    assert pension.employee_amount == 2640.00
    assert pension.employer_amount == 3600.00
    assert pension.total_amount == 6240.00
    assert pension.label == "Old age (basic)"
    assert sum(row.total_amount for row in rows) == pytest.approx(9120.00)


def test_rows_follow_insurance_order_and_skip_zero_rates(
    make_period: PeriodFactory, calculate
) -> None:
    period = make_period(
        worker_category="gov",
        start="2010-01",
        end="2010-12",
        wages=[{"type": "basic", "start": "2010-01", "amount": 500}],
    )

    rows = calculate(period)

    assert [row.insurance_type for row in rows] == [
        InsuranceType.PENSION,
        InsuranceType.BONUS,
        InsuranceType.ILLNESS,
        InsuranceType.INJURY,
    ]


def test_disabled_insurance_is_not_billed(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
        insurance={"bonus": False, "unemployment": False},
    )

    insurance_types = {row.insurance_type for row in calculate(period)}

    assert InsuranceType.BONUS not in insurance_types
    assert InsuranceType.UNEMPLOYMENT not in insurance_types
    assert InsuranceType.PENSION in insurance_types


def test_reductions_come_off_the_employer_share_first(
    make_period: PeriodFactory, calculate
) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
        reductions={"illness_care": True, "illness_comp": True, "injury_care": True},
    )

    rows = calculate(period)

    (illness,) = _rows_for(rows, InsuranceType.ILLNESS)
    assert illness.employer_rate == 0
    assert illness.employee_rate == 1
    assert illness.total_amount == 120.00
    (injury,) = _rows_for(rows, InsuranceType.INJURY)
    assert injury.employer_rate == 1
    assert injury.total_amount == 120.00


def test_apply_reductions_spills_into_the_employee_share() -> None:
    rates = InsuranceRates(employer=2, employee=1)
    reductions = [
        ReductionRow(
            kind=ReductionKind.INJURY_CARE,
            insurance_type=InsuranceType.INJURY,
            percentage=2.5,
        )
    ]

    effective = apply_reductions(rates, reductions)

    assert effective.employer == 0
    assert effective.employee == 0.5


def test_apply_reductions_never_goes_negative() -> None:
    rates = InsuranceRates(employer=1, employee=0)
    reductions = [
        ReductionRow(
            kind=ReductionKind.ILLNESS_CARE,
            insurance_type=InsuranceType.ILLNESS,
            percentage=3,
        )
    ]

    effective = apply_reductions(rates, reductions)

    assert effective.is_zero


def test_pre_cutover_self_payer_uses_the_combined_basic_rate(
    make_period: PeriodFactory, calculate
) -> None:
    period = make_period(
        worker_category="business_owner",
        start="2010-01",
        end="2010-12",
        wages=[{"type": "basic", "start": "2010-01", "amount": 500}],
        reductions={"illness_care": True},
    )

    rows = calculate(period)

    (pension,) = rows
    assert pension.wage_kind is WageKind.INCOME
    assert pension.label == "Old age (income)"
    assert pension.employee_rate == 0
    assert pension.employer_rate == 15
    assert pension.employer_amount == 900.00
    assert pension.total_amount == 900.00


def test_post_cutover_self_payer_row(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="abroad",
        start="2021-01",
        end="2021-12",
        wages=[{"type": "income", "start": "2021-01", "amount": 2000}],
    )

    (pension,) = calculate(period)

    assert pension.label == "Old age"
    assert pension.employer_rate == 21
    assert pension.total_amount == 5040.00


def test_post_cutover_unified_wages(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="gov",
        start="2021-01",
        end="2021-12",
        wages=[{"type": "unified", "start": "2021-01", "amount": 1500}],
    )

    rows = calculate(period)

    assert [row.insurance_type for row in rows] == [InsuranceType.PENSION, InsuranceType.INJURY]
    assert rows[0].employer_amount == 2160.00
    assert rows[0].employee_amount == 1620.00
    assert rows[1].total_amount == 180.00
    assert all(row.wage_kind is WageKind.UNIFIED for row in rows)


def test_gaps_split_rows_and_identical_wages_merge(
    make_period: PeriodFactory, calculate
) -> None:
    gapped = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        wages=[
            {"type": "basic", "start": "2018-01", "end": "2018-03", "amount": 1000},
            {"type": "basic", "start": "2018-07", "amount": 1100},
        ],
    )
    merged = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        wages=[
            {"type": "basic", "start": "2018-01", "amount": 1000},
            {"type": "basic", "start": "2018-07", "amount": 1000},
        ],
    )

    gapped_rows = _rows_for(calculate(gapped), InsuranceType.PENSION)
    merged_rows = _rows_for(calculate(merged), InsuranceType.PENSION)

    assert [(row.start, row.end, row.months) for row in gapped_rows] == [
        (date(2018, 1, 1), date(2018, 3, 1), 3),
        (date(2018, 7, 1), date(2018, 12, 1), 6),
    ]
    assert [(row.months, row.monthly_wage) for row in merged_rows] == [(12, 1000)]


def test_period_straddling_april_1984(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="3",
        start="1984-01",
        end="1984-12",
        wages=[
            {"type": "basic", "start": "1984-01", "amount": 100},
            {"type": "variable", "start": "1984-01", "amount": 50},
        ],
    )

    rows = calculate(period)

    (pension,) = _rows_for(rows, InsuranceType.PENSION, WageKind.BASIC)
    assert pension.months == 12
    (bonus,) = _rows_for(rows, InsuranceType.BONUS)
    assert (bonus.start, bonus.months, bonus.total_amount) == (date(1984, 4, 1), 9, 27.00)
    (variable,) = _rows_for(rows, InsuranceType.PENSION, WageKind.VARIABLE)
    assert (variable.start, variable.months) == (date(1984, 4, 1), 9)
    assert variable.total_amount == 117.00
    assert variable.label == "Old age (variable)"


def test_period_ending_before_april_1984_has_no_bonus_or_variable_rows(
    make_period: PeriodFactory, calculate
) -> None:
    period = make_period(
        worker_category="3",
        start="1983-01",
        end="1984-03",
        wages=[
            {"type": "basic", "start": "1983-01", "amount": 100},
            {"type": "variable", "start": "1983-01", "amount": 50},
        ],
    )

    rows = calculate(period)

    assert _rows_for(rows, InsuranceType.BONUS) == []
    assert _rows_for(rows, InsuranceType.PENSION, WageKind.VARIABLE) == []
    (pension,) = _rows_for(rows, InsuranceType.PENSION, WageKind.BASIC)
    assert pension.months == 15


def test_period_starting_on_april_1984_bills_every_bonus_month(
    make_period: PeriodFactory, calculate
) -> None:
    period = make_period(
        worker_category="3",
        start="1984-04",
        end="1985-03",
        wages=[{"type": "basic", "start": "1984-04", "amount": 100}],
    )

    (bonus,) = _rows_for(calculate(period), InsuranceType.BONUS)

    assert (bonus.start, bonus.months) == (date(1984, 4, 1), 12)


def test_variable_window_limits_variable_rows(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        variable_start="2018-03",
        variable_end="2018-05",
        wages=[
            {"type": "basic", "start": "2018-01", "amount": 1000},
            {"type": "variable", "start": "2018-03", "amount": 200},
        ],
    )

    (variable,) = _rows_for(calculate(period), InsuranceType.PENSION, WageKind.VARIABLE)

    assert (variable.start, variable.end, variable.months) == (
        date(2018, 3, 1),
        date(2018, 5, 1),
        3,
    )


def test_month_sums_match_months_with_a_wage(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="public",
        start="2016-01",
        end="2017-12",
        wages=[
            {"type": "basic", "start": "2016-01", "amount": 900},
            {"type": "basic", "start": "2016-09", "amount": 950},
            {"type": "basic", "start": "2017-05", "amount": 900},
        ],
    )

    for insurance in (InsuranceType.PENSION, InsuranceType.ILLNESS):
        assert sum(row.months for row in _rows_for(calculate(period), insurance)) == 24


def test_calculation_is_idempotent(make_period: PeriodFactory, calculate) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2019-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
    )

    assert [row.as_dict() for row in calculate(period)] == [
        row.as_dict() for row in calculate(period)
    ]


def test_variable_pass_is_clipped_to_the_period(
    make_period: PeriodFactory, settings: EngineSettings
) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2019-12",
        variable_start="2017-06",
        variable_end="2021-12",
    )

    basic, variable = wage_passes(period, settings)

    assert (basic.start, basic.end) == (date(2018, 1, 1), date(2019, 12, 31))
    assert (variable.start, variable.end) == (date(2018, 1, 1), date(2019, 12, 31))


def test_unvalidated_periods_raise_validation_errors(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    with pytest.raises(ValidationError) as captured:
        wage_passes(make_period(worker_category="3", start="2018-01"), settings)
    assert captured.value.reason == "missing_dates"

    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2018-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
    )
    schedule = build_wage_schedule(period, tables, settings)
    with pytest.raises(ValidationError) as captured:
        calculate_detailed(
            period.model_copy(update={"worker_category": None}),
            schedule,
            tables,
            settings,
            translator,
        )
    assert captured.value.reason == "missing_category"
