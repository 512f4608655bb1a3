"""Utilities for validating contribution tables and surfacing issues."""

from __future__ import annotations

import argparse
from datetime import timedelta
from pathlib import Path
from typing import Sequence

from .schema import (
    STANDARD_CATEGORIES,
    SELF_PAYER_CATEGORIES,
    ConfigurationError,
    EngineSettings,
    GroupedTable,
    InsuranceType,
    RangeTable,
    RateTable,
    ReductionTable,
    Regime,
    TableSet,
    WageKind,
)
from .table_config import load_engine_settings, load_table_set


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_rate_table(scope: str, table: RateTable) -> list[str]:
    errors: list[str] = []

    for row in table.rows:
        label = row.category.value
        if row.wage_kind is not None:
            label = f"{label}/{row.wage_kind.value}"
        for insurance in InsuranceType:
            rates = row.rates_for(insurance)
            for side, value in (("employer", rates.employer), ("employee", rates.employee)):
                if value > 100:
                    errors.append(
                        _format_scope(
                            scope,
                            f"{label} {insurance.value} {side} rate {value} exceeds 100%",
                        )
                    )

    expected = STANDARD_CATEGORIES | SELF_PAYER_CATEGORIES
    for category in sorted(expected, key=lambda entry: entry.code):
        if table.regime is Regime.PRE:
            if table.row_for(category, WageKind.BASIC) is None:
                errors.append(
                    _format_scope(scope, f"no basic rate row for '{category.value}'")
                )
        elif table.row_for(category) is None:
            errors.append(_format_scope(scope, f"no rate row for '{category.value}'"))

    return errors


def _validate_reduction_table(scope: str, table: ReductionTable) -> list[str]:
    errors: list[str] = []
    seen: set[tuple[str, str]] = set()

    for row in table.rows:
        key = (row.kind.value, row.insurance_type.value)
        if key in seen:
            errors.append(
                _format_scope(scope, f"duplicate reduction '{row.kind.value}' detected")
            )
        seen.add(key)
        if row.percentage > 100:
            errors.append(
                _format_scope(
                    scope,
                    f"reduction '{row.kind.value}' percentage {row.percentage} exceeds 100%",
                )
            )
        if row.insurance_type not in {InsuranceType.ILLNESS, InsuranceType.INJURY}:
            errors.append(
                _format_scope(
                    scope,
                    f"reduction '{row.kind.value}' targets '{row.insurance_type.value}'",
                )
            )

    return errors


def _validate_range_table(table: RangeTable) -> list[str]:
    errors: list[str] = []

    for previous, current in zip(table.ranges, table.ranges[1:]):
        if current.start - previous.end > timedelta(days=1):
            errors.append(
                _format_scope(
                    table.key,
                    (
                        f"gap between {previous.end.isoformat()} and "
                        f"{current.start.isoformat()}"
                    ),
                )
            )

    return errors


def _validate_grouped_table(table: GroupedTable) -> list[str]:
    errors: list[str] = []

    for row in table.rows:
        rates = list(row.grades.values()) or ([row.rate] if row.rate else [])
        for rate in rates:
            if rate.wage <= 0 or rate.contribution < 0:
                errors.append(
                    _format_scope(
                        table.key,
                        f"row starting {row.start.isoformat()} has a non-positive wage",
                    )
                )
                break
            if rate.contribution > rate.wage:
                errors.append(
                    _format_scope(
                        table.key,
                        (
                            f"row starting {row.start.isoformat()} charges more than "
                            "the monthly wage"
                        ),
                    )
                )
                break

    return errors


def validate_table_set(tables: TableSet, settings: EngineSettings | None = None) -> list[str]:
    """Return a list of validation issues for the provided tables."""

    settings = settings or EngineSettings()
    errors: list[str] = []

    errors.extend(_validate_rate_table("rates_before_148", tables.rates_before))
    errors.extend(_validate_rate_table("rates_after_148", tables.rates_after))
    errors.extend(_validate_reduction_table("reductions_before_148", tables.reductions_before))
    errors.extend(_validate_reduction_table("reductions_after_148", tables.reductions_after))

    for range_table in (
        tables.min_basic_wage,
        tables.max_basic_wage,
        tables.max_variable_wage,
        tables.unified_limits,
    ):
        errors.extend(_validate_range_table(range_table))

    for grouped_table in (
        tables.transport_79,
        tables.transport_148,
        tables.construction_79,
        tables.construction_148,
        tables.irregular,
    ):
        errors.extend(_validate_grouped_table(grouped_table))

    for range_entry in tables.unified_limits.ranges:
        if range_entry.start < settings.cutover:
            errors.append(
                _format_scope(
                    tables.unified_limits.key,
                    f"range starting {range_entry.start.isoformat()} precedes the cutover",
                )
            )

    return errors


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate contribution tables and report issues helpful to maintainers."
    )
    parser.add_argument(
        "directory",
        nargs="?",
        type=Path,
        help="Table directory to validate (defaults to the bundled tables)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    label = str(args.directory) if args.directory else "bundled"

    try:
        settings = load_engine_settings(args.directory)
        tables = load_table_set(args.directory)
    except (FileNotFoundError, ConfigurationError) as error:
        print(f"[{label}] failed to load tables: {error}")
        return 1

    issues = validate_table_set(tables, settings)
    if issues:
        print(f"[{label}] {len(issues)} issue(s) detected:")
        for issue in issues:
            print(f"  - {issue}")
        return 1

    print(f"[{label}] OK")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
