"""Month arithmetic shared by table resolution, validation and the engine.

Subscription periods are declared at month granularity. Every month is carried
as a ``date`` pinned to the first day so that comparisons, sorting and
``bisect`` lookups behave consistently across the code base.
"""

from __future__ import annotations

import re
from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Any, Iterator

FAR_FUTURE = date(2099, 12, 31)

_MONTH_PATTERN = re.compile(r"^(\d{4})[-/](\d{1,2})(?:[-/](\d{1,2}))?$")
_DAY_FIRST_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YEAR_PATTERN = re.compile(r"^(\d{4})$")


def month_start(value: date) -> date:
    """Return the first day of the month containing ``value``."""

    return date(value.year, value.month, 1)


def month_end(value: date) -> date:
    """Return the last day of the month containing ``value``."""

    return date(value.year, value.month, monthrange(value.year, value.month)[1])


def add_months(value: date, count: int) -> date:
    """Shift ``value`` by ``count`` months, returning a month start."""

    index = value.year * 12 + (value.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def month_count(start: date, end: date) -> int:
    """Return the inclusive number of months between ``start`` and ``end``."""

    count = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return count if count > 0 else 0


def iter_months(start: date, end: date) -> Iterator[date]:
    """Yield month starts from ``start`` to ``end`` inclusive."""

    current = month_start(start)
    last = month_start(end)
    while current <= last:
        yield current
        current = add_months(current, 1)


def previous_day(value: date) -> date:
    return value - timedelta(days=1)


def format_month(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def parse_month(value: Any) -> date | None:
    """Coerce user supplied month values (``YYYY-MM``) into month starts."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return month_start(value.date())
    if isinstance(value, date):
        return month_start(value)
    if not isinstance(value, str):
        raise ValueError("Months must be provided as 'YYYY-MM' strings")

    text = value.strip()
    if not text:
        return None

    match = _MONTH_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Invalid month '{text}', expected 'YYYY-MM'")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{text}', expected 'YYYY-MM'")
    return date(year, month, 1)


def parse_table_date(value: Any) -> date:
    """Parse the date formats found in the authority tables.

    Accepted shapes are ``YYYY-MM-DD``, ``YYYY/MM/DD``, ``YYYY-MM``, ``YYYY``
    and the day-first ``DD/MM/YYYY`` used by the Law 148 irregular worker table.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int):
        return date(value, 1, 1)

    text = str(value or "").strip()
    match = _MONTH_PATTERN.match(text)
    if match is not None:
        day = int(match.group(3)) if match.group(3) else 1
        return date(int(match.group(1)), int(match.group(2)), day)

    match = _DAY_FIRST_PATTERN.match(text)
    if match is not None:
        return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    match = _YEAR_PATTERN.match(text)
    if match is not None:
        return date(int(match.group(1)), 1, 1)

    raise ValueError(f"Unrecognised table date '{text}'")


__all__ = [
    "FAR_FUTURE",
    "add_months",
    "format_month",
    "iter_months",
    "month_count",
    "month_end",
    "month_start",
    "parse_month",
    "parse_table_date",
    "previous_day",
]
