from datetime import date

import pytest

from budget_planner.errors import InvalidInstallmentCount
from budget_planner.installments import MAX_INSTALLMENTS, expand_installments
from budget_planner.models import Budget, INSTALLMENT, Transaction


def _purchase(**overrides):
    values = dict(type='expense', value=250.0, date=date(2024, 11, 30), group_id=3, payment_method='credit')
    values.update(overrides)
    return Transaction(**values)


def test_every_installment_keeps_the_literal_value():
    parts = expand_installments(_purchase(), 4)

    assert [p.value for p in parts] == [250.0] * 4
    assert [p.installment_number for p in parts] == [1, 2, 3, 4]
    assert {p.installments for p in parts} == {4}


def test_installment_dates_advance_one_month_each_with_clamped_day():
    parts = expand_installments(_purchase(), 4)

    assert [p.date for p in parts] == [
        date(2024, 11, 30),
        date(2024, 12, 30),
        date(2025, 1, 30),
        date(2025, 2, 28),
    ]


def test_total_value_and_start_date_override_the_draft():
    parts = expand_installments(_purchase(id=99), 3, start_date="2024-01-10", total_value=80)

    assert [p.value for p in parts] == [80.0, 80.0, 80.0]
    assert parts[0].date == date(2024, 1, 10)
    assert parts[2].date == date(2024, 3, 10)
    assert all(p.id is None for p in parts)
    assert all(p.payment_method == 'credit' and p.group_id == 3 for p in parts)


def test_budget_installments_get_periods_and_installment_mode():
    draft = Budget(year=2024, month=11, type='expense', amount=120.0, group_id=7)
    parts = expand_installments(draft, 3)

    assert [p.period for p in parts] == [(2024, 11), (2024, 12), (2025, 1)]
    assert all(p.mode == INSTALLMENT for p in parts)
    assert all(p.amount == 120.0 for p in parts)
    assert [p.installment_number for p in parts] == [1, 2, 3]


@pytest.mark.parametrize("count", [1, 0, -3, 2.0, "3", True, None])
def test_invalid_installment_counts_are_rejected(count):
    with pytest.raises(InvalidInstallmentCount):
        expand_installments(_purchase(), count)


def test_count_above_the_maximum_is_rejected():
    expand_installments(_purchase(), MAX_INSTALLMENTS)
    with pytest.raises(InvalidInstallmentCount):
        expand_installments(_purchase(), MAX_INSTALLMENTS + 1)


def test_non_positive_value_is_rejected():
    with pytest.raises(ValueError):
        expand_installments(_purchase(), 2, total_value=0)


def test_unknown_draft_type_is_rejected():
    with pytest.raises(TypeError):
        expand_installments({'value': 10}, 2)
