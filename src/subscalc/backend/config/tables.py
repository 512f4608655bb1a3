"""Normalise raw authority tables into typed, validated table models.

Authority tables are published as rectangular rows of string cells. Each table
key is bound to a column schema declared below; resolution sorts rows, derives
inclusive end dates and converts every cell exactly once so that the engine
only ever works with :class:`~subscalc.backend.config.schema.TableSet`.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Mapping, Sequence, TypeVar

from pydantic import ValidationError

from subscalc.backend.months import FAR_FUTURE, parse_table_date, previous_day

from .schema import (
    CONSTRUCTION_GRADES,
    TRANSPORT_GRADES,
    ConfigurationError,
    GradeRate,
    GroupedTable,
    GroupedTableRow,
    ImmutableModel,
    InsuranceRates,
    RangeTable,
    RateRow,
    RateTable,
    ReductionRow,
    ReductionTable,
    Regime,
    TableSet,
    WageLimitRange,
    coerce_category,
    coerce_insurance_type,
    coerce_reduction_kind,
    coerce_wage_kind,
)

_LOGGER = logging.getLogger(__name__)

RawRow = Sequence[Any]
RawTable = Sequence[RawRow]

_T = TypeVar("_T")


class RangeColumns(ImmutableModel):
    """Column positions of a wage limit table."""

    start: int
    end: int | None = None
    minimum: int | None = None
    maximum: int | None = None


class RateColumns(ImmutableModel):
    """Column positions of a contribution rate table.

    ``first_rate`` points at the pension employer share; the remaining seven
    rate columns follow in the order pension employee, bonus employer, bonus
    employee, illness employer, illness employee, unemployment employer and
    injury employer.
    """

    category: int = 0
    wage_kind: int | None = None
    first_rate: int


class GradedColumns(ImmutableModel):
    start: int = 0
    end: int = 1
    minimum_wage: int = 2
    first_grade: int = 3
    grades: tuple[str, ...]


RANGE_SCHEMAS: Mapping[str, RangeColumns] = {
    "min_basic_wage_79": RangeColumns(start=0, end=1, minimum=2),
    "max_basic_wage_79": RangeColumns(start=1, maximum=2),
    "max_variable_wage_79": RangeColumns(start=0, maximum=1),
    "unified_limits_148": RangeColumns(start=0, minimum=1, maximum=2),
}

RATE_SCHEMAS: Mapping[str, tuple[Regime, RateColumns]] = {
    "rates_before_148": (Regime.PRE, RateColumns(wage_kind=1, first_rate=2)),
    "rates_after_148": (Regime.POST, RateColumns(first_rate=1)),
}

REDUCTION_SCHEMAS: Mapping[str, Regime] = {
    "reductions_before_148": Regime.PRE,
    "reductions_after_148": Regime.POST,
}

GRADED_SCHEMAS: Mapping[str, GradedColumns] = {
    "transport_79": GradedColumns(grades=TRANSPORT_GRADES),
    "transport_148": GradedColumns(grades=TRANSPORT_GRADES),
    "construction_79": GradedColumns(grades=CONSTRUCTION_GRADES),
    "construction_148": GradedColumns(grades=CONSTRUCTION_GRADES),
}

IRREGULAR_TABLES: tuple[str, ...] = (
    "irregular_wages_pre_2020",
    "irregular_contrib_pre_2020",
    "irregular_148",
)

REQUIRED_TABLES: tuple[str, ...] = tuple(RATE_SCHEMAS)

TABLE_KEYS: tuple[str, ...] = (
    *RANGE_SCHEMAS,
    *RATE_SCHEMAS,
    *REDUCTION_SCHEMAS,
    *GRADED_SCHEMAS,
    *IRREGULAR_TABLES,
)


def _cell(row: RawRow, index: int | None) -> str | None:
    if index is None or index >= len(row):
        return None
    value = row[index]
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_blank(row: RawRow) -> bool:
    return all(_cell(row, index) is None for index in range(len(row)))


def _parse_number(value: str | None, *, table: str, row: int) -> float | None:
    if value is None:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError as exc:
        raise ConfigurationError(
            f"Table '{table}' row {row}: '{value}' is not a number"
        ) from exc


def _parse_date(value: str | None, *, table: str, row: int) -> date:
    if value is None:
        raise ConfigurationError(f"Table '{table}' row {row}: missing date")
    try:
        return parse_table_date(value)
    except ValueError as exc:
        raise ConfigurationError(f"Table '{table}' row {row}: {exc}") from exc


def _parse_cell(
    parser: Callable[[Any], _T], value: str | None, *, table: str, row: int
) -> _T:
    try:
        return parser(value)
    except ConfigurationError as exc:
        raise ConfigurationError(f"Table '{table}' row {row}: {exc}") from exc


def _rows(raw: RawTable | None) -> list[tuple[int, RawRow]]:
    if not raw:
        return []
    return [(index, row) for index, row in enumerate(raw) if not _is_blank(row)]


def resolve_range_table(key: str, raw: RawTable | None) -> RangeTable:
    """Convert a wage limit table into sorted inclusive date ranges."""

    columns = RANGE_SCHEMAS[key]
    parsed = [
        (_parse_date(_cell(row, columns.start), table=key, row=index), index, row)
        for index, row in _rows(raw)
    ]
    parsed.sort(key=lambda item: item[0])

    ranges: list[WageLimitRange] = []
    for position, (start, index, row) in enumerate(parsed):
        explicit_end = _cell(row, columns.end)
        if explicit_end is not None:
            end = _parse_date(explicit_end, table=key, row=index)
        elif position + 1 < len(parsed):
            end = previous_day(parsed[position + 1][0])
        else:
            end = FAR_FUTURE

        ranges.append(
            WageLimitRange(
                start=start,
                end=end,
                minimum=_parse_number(_cell(row, columns.minimum), table=key, row=index),
                maximum=_parse_number(_cell(row, columns.maximum), table=key, row=index),
            )
        )

    return RangeTable(key=key, ranges=tuple(ranges))


def _rate(row: RawRow, index: int | None, *, table: str, line: int) -> float:
    return _parse_number(_cell(row, index), table=table, row=line) or 0.0


def resolve_rate_table(key: str, raw: RawTable | None) -> RateTable:
    regime, columns = RATE_SCHEMAS[key]
    rows: list[RateRow] = []
    for index, row in _rows(raw):
        base = columns.first_rate

        def employer_employee(offset: int, *, employee: bool = True) -> InsuranceRates:
            return InsuranceRates(
                employer=_rate(row, base + offset, table=key, line=index),
                employee=(
                    _rate(row, base + offset + 1, table=key, line=index)
                    if employee
                    else 0.0
                ),
            )

        wage_kind = None
        if columns.wage_kind is not None:
            wage_kind = _parse_cell(
                coerce_wage_kind, _cell(row, columns.wage_kind), table=key, row=index
            )

        rows.append(
            RateRow(
                category=_parse_cell(
                    coerce_category, _cell(row, columns.category), table=key, row=index
                ),
                wage_kind=wage_kind,
                pension=employer_employee(0),
                bonus=employer_employee(2),
                illness=employer_employee(4),
                unemployment=employer_employee(6, employee=False),
                injury=employer_employee(7, employee=False),
            )
        )
    return RateTable(regime=regime, rows=tuple(rows))


def resolve_reduction_table(key: str, raw: RawTable | None) -> ReductionTable:
    rows = [
        ReductionRow(
            kind=_parse_cell(coerce_reduction_kind, _cell(row, 0), table=key, row=index),
            insurance_type=_parse_cell(
                coerce_insurance_type, _cell(row, 1), table=key, row=index
            ),
            percentage=_parse_number(_cell(row, 2), table=key, row=index) or 0.0,
        )
        for index, row in _rows(raw)
    ]
    return ReductionTable(regime=REDUCTION_SCHEMAS[key], rows=tuple(rows))


def resolve_graded_table(key: str, raw: RawTable | None) -> GroupedTable:
    """Build transport or construction rows with one wage pair per grade."""

    columns = GRADED_SCHEMAS[key]
    rows: list[GroupedTableRow] = []
    for index, row in _rows(raw):
        grades: dict[str, GradeRate] = {}
        for position, grade in enumerate(columns.grades):
            wage_column = columns.first_grade + position * 2
            wage = _parse_number(_cell(row, wage_column), table=key, row=index)
            contribution = _parse_number(
                _cell(row, wage_column + 1), table=key, row=index
            )
            if wage is None or contribution is None:
                continue
            grades[grade] = GradeRate(wage=wage, contribution=contribution)

        rows.append(
            GroupedTableRow(
                start=_parse_date(_cell(row, columns.start), table=key, row=index),
                end=_parse_date(_cell(row, columns.end), table=key, row=index),
                minimum_wage=_parse_number(
                    _cell(row, columns.minimum_wage), table=key, row=index
                ),
                grades=grades,
            )
        )
    rows.sort(key=lambda entry: entry.start)
    return GroupedTable(key=key, rows=tuple(rows))


def resolve_irregular_table(
    wages_pre_2020: RawTable | None,
    contributions_pre_2020: RawTable | None,
    law_148: RawTable | None,
    *,
    cutover: date,
) -> GroupedTable:
    """Merge the three irregular worker tables into one grouped table.

    Pre-cutover contribution rows run until the day before the next row (the
    last one until the cutover) and take the wage published for their year.
    Law 148 rows run to the end of their year unless a later row starts sooner.
    """

    wages_by_year: dict[int, float] = {}
    for index, row in _rows(wages_pre_2020):
        year = _cell(row, 1)
        wage = _cell(row, 3) or _cell(row, 2)
        if year is None or wage is None:
            continue
        amount = _parse_number(wage, table="irregular_wages_pre_2020", row=index)
        year_number = _parse_number(year, table="irregular_wages_pre_2020", row=index)
        wages_by_year[int(year_number or 0)] = amount or 0.0

    rows: list[GroupedTableRow] = []

    pre_rows = sorted(
        (
            _parse_date(_cell(row, 0), table="irregular_contrib_pre_2020", row=index),
            _parse_number(_cell(row, 1), table="irregular_contrib_pre_2020", row=index)
            or 0.0,
        )
        for index, row in _rows(contributions_pre_2020)
    )
    for position, (start, contribution) in enumerate(pre_rows):
        if position + 1 < len(pre_rows):
            end = previous_day(pre_rows[position + 1][0])
        else:
            end = previous_day(cutover)
        rows.append(
            GroupedTableRow(
                start=start,
                end=end,
                rate=GradeRate(
                    wage=wages_by_year.get(start.year, 0.0), contribution=contribution
                ),
            )
        )

    post_rows = sorted(
        (
            _parse_date(_cell(row, 0), table="irregular_148", row=index),
            _parse_number(_cell(row, 1), table="irregular_148", row=index) or 0.0,
            _parse_number(_cell(row, 2), table="irregular_148", row=index) or 0.0,
        )
        for index, row in _rows(law_148)
    )
    for position, (start, wage, contribution) in enumerate(post_rows):
        end = date(start.year, 12, 31)
        if position + 1 < len(post_rows):
            end = min(end, previous_day(post_rows[position + 1][0]))
        rows.append(
            GroupedTableRow(
                start=start,
                end=end,
                rate=GradeRate(wage=wage, contribution=contribution),
            )
        )

    return GroupedTable(key="irregular", rows=tuple(rows))


def _wrap(key: str, factory: Callable[[], _T]) -> _T:
    try:
        return factory()
    except ValidationError as error:
        raise ConfigurationError(f"Table '{key}' failed validation: {error}") from error


def resolve_tables(
    raw_tables: Mapping[str, RawTable | None], *, cutover: date = date(2020, 1, 1)
) -> TableSet:
    """Resolve every known table key into a :class:`TableSet`.

    Both rate tables are mandatory; any other missing table resolves to an
    empty table and lookups against it mean "no bound" or "no row".
    """

    missing = [key for key in REQUIRED_TABLES if not raw_tables.get(key)]
    if missing:
        raise ConfigurationError(
            f"Required table(s) missing: {', '.join(sorted(missing))}"
        )

    unknown = sorted(set(raw_tables) - set(TABLE_KEYS))
    if unknown:
        _LOGGER.warning("Ignoring unknown table keys: %s", ", ".join(unknown))

    def range_table(key: str) -> RangeTable:
        return _wrap(key, lambda: resolve_range_table(key, raw_tables.get(key)))

    def graded_table(key: str) -> GroupedTable:
        return _wrap(key, lambda: resolve_graded_table(key, raw_tables.get(key)))

    return TableSet(
        rates_before=_wrap(
            "rates_before_148",
            lambda: resolve_rate_table("rates_before_148", raw_tables["rates_before_148"]),
        ),
        rates_after=_wrap(
            "rates_after_148",
            lambda: resolve_rate_table("rates_after_148", raw_tables["rates_after_148"]),
        ),
        reductions_before=_wrap(
            "reductions_before_148",
            lambda: resolve_reduction_table(
                "reductions_before_148", raw_tables.get("reductions_before_148")
            ),
        ),
        reductions_after=_wrap(
            "reductions_after_148",
            lambda: resolve_reduction_table(
                "reductions_after_148", raw_tables.get("reductions_after_148")
            ),
        ),
        min_basic_wage=range_table("min_basic_wage_79"),
        max_basic_wage=range_table("max_basic_wage_79"),
        max_variable_wage=range_table("max_variable_wage_79"),
        unified_limits=range_table("unified_limits_148"),
        transport_79=graded_table("transport_79"),
        transport_148=graded_table("transport_148"),
        construction_79=graded_table("construction_79"),
        construction_148=graded_table("construction_148"),
        irregular=_wrap(
            "irregular",
            lambda: resolve_irregular_table(
                raw_tables.get("irregular_wages_pre_2020"),
                raw_tables.get("irregular_contrib_pre_2020"),
                raw_tables.get("irregular_148"),
                cutover=cutover,
            ),
        ),
    )


def table_summary(tables: TableSet) -> dict[str, int]:
    """Return the number of normalised rows per table, keyed by table key."""

    return {
        "min_basic_wage_79": len(tables.min_basic_wage.ranges),
        "max_basic_wage_79": len(tables.max_basic_wage.ranges),
        "max_variable_wage_79": len(tables.max_variable_wage.ranges),
        "unified_limits_148": len(tables.unified_limits.ranges),
        "rates_before_148": len(tables.rates_before.rows),
        "rates_after_148": len(tables.rates_after.rows),
        "reductions_before_148": len(tables.reductions_before.rows),
        "reductions_after_148": len(tables.reductions_after.rows),
        "transport_79": len(tables.transport_79.rows),
        "transport_148": len(tables.transport_148.rows),
        "construction_79": len(tables.construction_79.rows),
        "construction_148": len(tables.construction_148.rows),
        "irregular": len(tables.irregular.rows),
    }


__all__ = [
    "GRADED_SCHEMAS",
    "GradedColumns",
    "IRREGULAR_TABLES",
    "RANGE_SCHEMAS",
    "RATE_SCHEMAS",
    "REDUCTION_SCHEMAS",
    "REQUIRED_TABLES",
    "RangeColumns",
    "RateColumns",
    "RawTable",
    "TABLE_KEYS",
    "resolve_graded_table",
    "resolve_irregular_table",
    "resolve_range_table",
    "resolve_rate_table",
    "resolve_reduction_table",
    "resolve_tables",
    "table_summary",
]
