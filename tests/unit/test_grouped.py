"""Unit tests for grouped-table categories."""

from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from subscalc.backend.app.errors import LookupMissError, ValidationError
from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import SubscriptionPeriod
from subscalc.backend.app.services.calculators.grouped import calculate_grouped
from subscalc.backend.config.schema import EngineSettings, TableSet

PeriodFactory = Callable[..., SubscriptionPeriod]


def test_transport_rows_break_at_the_cutover(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="transport", grade="helper", start="2019-06", end="2020-06")

    rows = calculate_grouped(period, tables, settings, translator)

    assert [(row.start, row.end, row.months) for row in rows] == [
        (date(2019, 6, 1), date(2019, 12, 1), 7),
        (date(2020, 1, 1), date(2020, 6, 1), 6),
    ]
    assert rows[0].monthly_contribution == 63.00
    assert rows[0].total_amount == 441.00
    assert rows[0].total_wage == 2100.00
    assert rows[1].monthly_wage == 2000.00
    assert rows[1].total_amount == 2520.00
    assert all(row.label == "Helper" for row in rows)


def test_construction_grade_lookup(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(
        worker_category="construction", grade="عامل ماهر", start="2021-01", end="2021-12"
    )

    (row,) = calculate_grouped(period, tables, settings, translator)

    assert row.months == 12
    assert row.total_wage == 33600.00
    assert row.total_amount == 7056.00


def test_irregular_workers_use_year_rows(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="irregular", start="2019-11", end="2020-02")

    rows = calculate_grouped(period, tables, settings, translator)

    assert [(row.months, row.monthly_wage, row.total_amount) for row in rows] == [
        (2, 1000.00, 200.00),
        (2, 1000.00, 180.00),
    ]
    assert rows[0].label == "Irregular workers"


def test_missing_table_row_is_a_lookup_miss(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="irregular", start="2014-06", end="2015-02")

    with pytest.raises(LookupMissError) as captured:
        calculate_grouped(period, tables, settings, translator)

    assert captured.value.message_key == "errors.lookup_miss.no_table_row"
    assert captured.value.params["month"] == date(2014, 6, 1)


def test_unknown_grade_is_a_lookup_miss(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="construction", grade="first", start="2021-01", end="2021-03")

    with pytest.raises(LookupMissError) as captured:
        calculate_grouped(period, tables, settings, translator)

    assert captured.value.message_key == "errors.lookup_miss.no_grade"


@pytest.mark.parametrize(
    ("fields", "reason"),
    [
        ({"start": "2019-06", "end": "2020-06"}, "missing_category"),
        ({"worker_category": "transport", "grade": "helper", "start": "2019-06"}, "missing_dates"),
    ],
)
def test_unvalidated_periods_raise_validation_errors(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
    fields: dict,
    reason: str,
) -> None:
    with pytest.raises(ValidationError) as captured:
        calculate_grouped(make_period(**fields), tables, settings, translator)

    assert captured.value.reason == reason
