"""Unit tests for per-period dispatch and whole-request orchestration."""

from __future__ import annotations

import logging
from typing import Callable

import pytest

from subscalc.backend.app.errors import (
    FallbackConfirmationRequired,
    LookupMissError,
    NoValidPeriodsError,
    RegimeCrossingError,
    ValidationError,
)
from subscalc.backend.app.localization import Translator
from subscalc.backend.app.models import DisplayMode, SubscriptionPeriod
from subscalc.backend.app.services.calculators import (
    calculate_period,
    pending_confirmations,
    run_calculation,
)
from subscalc.backend.config.schema import EngineSettings, InsuranceType, Regime, TableSet

PeriodFactory = Callable[..., SubscriptionPeriod]


def test_successful_detailed_period(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(
        worker_category="3",
        start="2018-01",
        end="2019-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
    )

    result = calculate_period(period, tables, settings, translator)

    assert result.succeeded
    assert result.display_mode is DisplayMode.DETAILED
    assert result.regime is Regime.PRE
    assert result.sector_code == "3"
    assert result.total == 9120.00
    assert not result.fallback_applied


def test_grouped_period_uses_the_grouped_mode(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="transport", grade="helper", start="2019-06", end="2020-06")

    result = calculate_period(period, tables, settings, translator)

    assert result.display_mode is DisplayMode.DETAILED_GROUPED
    assert result.total == 2961.00


@pytest.mark.parametrize(
    ("fields", "mode", "error_type"),
    [
        ({"start": "2018-01", "end": "2018-12"}, DisplayMode.GROUPED, ValidationError),
        (
            {"worker_category": "transport", "start": "2018-01", "end": "2018-12"},
            DisplayMode.DETAILED_GROUPED,
            ValidationError,
        ),
        (
            {
                "worker_category": "private",
                "start": "2018-01",
                "end": "2018-12",
                "variable_start": "2018-01",
                "variable_end": "2018-06",
                "wages": [{"type": "basic", "start": "2018-01", "amount": 1000}],
            },
            DisplayMode.DETAILED,
            ValidationError,
        ),
        (
            {
                "worker_category": "3",
                "start": "2018-01",
                "end": "2019-12",
                "variable_start": "2019-01",
                "variable_end": "2021-12",
                "wages": [
                    {"type": "basic", "start": "2018-01", "amount": 1000},
                    {"type": "variable", "start": "2019-01", "amount": 200},
                ],
            },
            DisplayMode.DETAILED,
            ValidationError,
        ),
        (
            {"worker_category": "private", "start": "2019-06", "end": "2020-06"},
            DisplayMode.GROUPED,
            RegimeCrossingError,
        ),
        (
            {"worker_category": "irregular", "start": "2014-06", "end": "2015-02"},
            DisplayMode.DETAILED_GROUPED,
            LookupMissError,
        ),
    ],
)
def test_failed_periods_carry_their_error(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
    fields: dict,
    mode: DisplayMode,
    error_type: type,
) -> None:
    result = calculate_period(make_period(**fields), tables, settings, translator)

    assert not result.succeeded
    assert isinstance(result.error, error_type)
    assert result.display_mode is mode
    assert result.rows == []
    assert result.error_message


def test_failed_period_is_logged(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING):
        calculate_period(make_period(start="2018-01", end="2018-12"), tables, settings, translator)

    assert "Period p1 could not be calculated" in caplog.text


def test_unconfirmed_fallback_stops_the_calculation(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="gov", start="2021-01", end="2021-12")

    assert pending_confirmations([period], settings) == ["p1"]
    with pytest.raises(FallbackConfirmationRequired) as captured:
        run_calculation([period], tables, settings, translator)

    assert captured.value.period_ids == ("p1",)


def test_confirmed_fallback_uses_the_statutory_minimum(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(worker_category="gov", start="2021-01", end="2021-12")

    result = run_calculation([period], tables, settings, translator, confirm_fallback=True)

    (period_result,) = result.periods
    assert period_result.fallback_applied
    pension = next(
        row for row in period_result.rows if row.insurance_type is InsuranceType.PENSION
    )
    assert pension.monthly_wage == 1100.00
    assert pension.employer_amount == 1584.00
    assert pension.employee_amount == 1188.00
    assert period_result.total == 2904.00
    assert result.grand_total == 2904.00


def test_invalid_and_grouped_periods_never_need_confirmation(
    make_period: PeriodFactory, settings: EngineSettings
) -> None:
    periods = [
        make_period(id="invalid", start="2021-01", end="2021-12"),
        make_period(id="grouped", worker_category="transport", grade="helper", start="2021-01", end="2021-12"),
        make_period(id="self", worker_category="business_owner", start="2010-01", end="2010-12"),
    ]

    assert pending_confirmations(periods, settings) == []


def test_no_valid_periods_is_reported_on_the_result(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    period = make_period(start="2018-01", end="2018-12")

    result = run_calculation([period], tables, settings, translator)

    assert isinstance(result.error, NoValidPeriodsError)
    assert result.error.failures == {"p1": "The worker category is required."}
    assert result.grand_total == 0
    assert result.as_dict()["error"]["code"] == "no_valid_periods"


def test_failed_periods_do_not_block_valid_ones(
    make_period: PeriodFactory,
    tables: TableSet,
    settings: EngineSettings,
    translator: Translator,
) -> None:
    valid = make_period(
        worker_category="3",
        start="2018-01",
        end="2019-12",
        wages=[{"type": "basic", "start": "2018-01", "amount": 1000}],
    )
    invalid = make_period(id="p2", start="2018-01", end="2018-12")

    result = run_calculation([valid, invalid], tables, settings, translator)

    assert result.error is None
    assert result.grand_total == 9120.00
    assert [period.succeeded for period in result.periods] == [True, False]
