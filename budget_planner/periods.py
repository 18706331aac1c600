"""Calendar helpers that treat (year, month) pairs as ordered periods.

Dates are handled as timezone-agnostic calendar dates. Nothing in this module
reads the system clock; callers pass a ``reference_date`` wherever "now"
matters.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Tuple, Union

from .errors import InvalidPeriod

Period = Tuple[int, int]

PAST = 'past'
CURRENT = 'current'
FUTURE = 'future'

MONTHS_IN_YEAR = 12


def validate_period(year: int, month: int) -> Period:
    """Return ``(year, month)`` or raise :class:`InvalidPeriod`."""
    for value in (year, month):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidPeriod(year, month)
    if not 1 <= month <= MONTHS_IN_YEAR:
        raise InvalidPeriod(year, month)
    return year, month


def month_number(year: int, month: int) -> int:
    """Convert a period to a linear month index (``2024, 3 -> 24291``)."""
    validate_period(year, month)
    return year * MONTHS_IN_YEAR + month


def from_month_number(number: int) -> Period:
    """Inverse of :func:`month_number`."""
    year, month = divmod(number - 1, MONTHS_IN_YEAR)
    return year, month + 1


def compare_month(a: Period, b: Period) -> int:
    """Total order over periods: -1 if ``a`` is earlier, 0 if equal, 1 if later."""
    left = month_number(*a)
    right = month_number(*b)
    return (left > right) - (left < right)


def add_months(year: int, month: int, count: int) -> Period:
    """Shift a period by ``count`` months (negative values go backwards)."""
    return from_month_number(month_number(year, month) + count)


def previous_month(year: int, month: int) -> Period:
    return add_months(year, month, -1)


def next_month(year: int, month: int) -> Period:
    return add_months(year, month, 1)


def months_between(start: Period, end: Period) -> int:
    """Number of month steps from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return month_number(*end) - month_number(*start)


def parse_date(value: Union[date, datetime, str]) -> date:
    """Coerce ``date``/``datetime``/``YYYY-MM-DD`` values to a calendar date.

    Raises:
        ValueError: If a string is not an ISO calendar date
        TypeError: If the value has an unsupported type
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported date value: {value!r}")


def period_of(value: Union[date, datetime, str]) -> Period:
    """Return the ``(year, month)`` a date falls in."""
    parsed = parse_date(value)
    return parsed.year, parsed.month


def is_date_in_month(value: Union[date, datetime, str], year: int, month: int) -> bool:
    return period_of(value) == (year, month)


def add_months_to_date(value: Union[date, datetime, str], count: int) -> date:
    """Advance a date by ``count`` months, clamping the day to the target month.

    Example:
        >>> add_months_to_date(date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
    """
    parsed = parse_date(value)
    year, month = add_months(parsed.year, parsed.month, count)
    day = min(parsed.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def classify(year: int, month: int, reference_date: Union[date, datetime, str]) -> str:
    """Classify a period as ``past``, ``current`` or ``future`` relative to ``reference_date``."""
    order = compare_month((year, month), period_of(reference_date))
    if order < 0:
        return PAST
    if order > 0:
        return FUTURE
    return CURRENT


def is_future(year: int, month: int, reference_date: Union[date, datetime, str]) -> bool:
    return classify(year, month, reference_date) == FUTURE
