from datetime import date, datetime

import pytest

from budget_planner.errors import InvalidPeriod
from budget_planner.periods import (
    CURRENT,
    FUTURE,
    PAST,
    add_months,
    add_months_to_date,
    classify,
    compare_month,
    from_month_number,
    is_date_in_month,
    month_number,
    months_between,
    next_month,
    parse_date,
    previous_month,
)


@pytest.mark.parametrize("a, b, expected", [
    ((2024, 1), (2024, 2), -1),
    ((2024, 2), (2024, 2), 0),
    ((2025, 1), (2024, 12), 1),
    ((2023, 12), (2024, 1), -1),
])
def test_compare_month_orders_periods(a, b, expected):
    assert compare_month(a, b) == expected


def test_previous_and_next_month_roll_over_year_boundaries():
    assert previous_month(2024, 1) == (2023, 12)
    assert previous_month(2024, 3) == (2024, 2)
    assert next_month(2024, 12) == (2025, 1)
    assert next_month(2024, 6) == (2024, 7)


def test_month_number_round_trips_and_shifts():
    assert from_month_number(month_number(2024, 12)) == (2024, 12)
    assert from_month_number(month_number(2024, 1)) == (2024, 1)
    assert add_months(2024, 11, 3) == (2025, 2)
    assert add_months(2024, 2, -14) == (2022, 12)
    assert months_between((2024, 1), (2025, 3)) == 14


@pytest.mark.parametrize("year, month", [(2024, 0), (2024, 13), (2024, '3'), (2024, True), (2024.0, 3)])
def test_invalid_periods_raise(year, month):
    with pytest.raises(InvalidPeriod):
        compare_month((year, month), (2024, 1))


def test_invalid_period_is_a_value_error():
    with pytest.raises(ValueError):
        previous_month(2024, 13)


def test_classify_relative_to_reference_date():
    reference = date(2024, 6, 15)
    assert classify(2024, 5, reference) == PAST
    assert classify(2024, 6, reference) == CURRENT
    assert classify(2024, 7, reference) == FUTURE
    assert classify(2023, 12, "2024-06-01") == PAST


def test_parse_date_accepts_common_inputs():
    assert parse_date("2024-03-05") == date(2024, 3, 5)
    assert parse_date("2024-03-05T10:30:00") == date(2024, 3, 5)
    assert parse_date(datetime(2024, 3, 5, 23, 59)) == date(2024, 3, 5)
    with pytest.raises(TypeError):
        parse_date(20240305)


def test_add_months_to_date_clamps_day():
    assert add_months_to_date(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months_to_date(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months_to_date(date(2024, 1, 31), 2) == date(2024, 3, 31)
    assert add_months_to_date(date(2024, 12, 15), 1) == date(2025, 1, 15)


def test_is_date_in_month():
    assert is_date_in_month("2024-02-29", 2024, 2)
    assert not is_date_in_month("2024-03-01", 2024, 2)
