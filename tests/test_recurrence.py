"""Recurring and installment budget propagation against a temporary SQLite store."""

import logging
import threading

import pytest

from budget_planner.db import BudgetStore
from budget_planner.errors import DataIntegrityWarning, InvalidPeriod
from budget_planner.models import Budget, INSTALLMENT, RECURRING, UNIQUE
from budget_planner.recurrence import (
    ensure_recurring_budgets_for_year,
    propagate_budget,
    propagate_installment_budget,
    propagate_range,
    propagate_recurrent_budget,
    propagate_recurring,
)


@pytest.fixture
def store(tmp_path):
    return BudgetStore(tmp_path / "budget.db")


def _rent(**overrides):
    values = dict(year=2024, month=1, type='expense', amount=300.0, mode=RECURRING, group_id=5)
    values.update(overrides)
    return Budget(**values)


def test_january_recurring_budget_reaches_february_once(store):
    store.add_budget(_rent())

    created = propagate_recurring(2024, 2, store=store)

    assert len(created) == 1
    feb = created[0]
    assert (feb.year, feb.month, feb.type, feb.group_id, feb.amount, feb.mode) == (
        2024, 2, 'expense', 5, 300.0, RECURRING
    )
    assert feb.installments is None and feb.installment_number is None
    assert propagate_recurring(2024, 2, store=store) == []
    assert len(store.fetch_budgets(2024, 2)) == 1


def test_existing_target_record_is_never_overwritten(store):
    store.add_budget(_rent())
    store.add_budget(_rent(month=2, amount=450.0, mode=UNIQUE))

    assert propagate_recurring(2024, 2, store=store) == []
    assert store.fetch_budgets(2024, 2)[0].amount == 450.0


def test_only_recurring_definitions_propagate(store):
    store.add_budget(_rent(mode=UNIQUE))
    store.add_budget(Budget(2024, 1, 'income', 5000.0, mode=RECURRING, source_id=1, is_fixed_cost=True))

    created = propagate_recurring(2024, 2, store=store)

    assert [(b.type, b.source_id) for b in created] == [('income', 1)]
    assert created[0].is_fixed_cost is True


def test_propagation_rolls_over_the_year(store):
    store.add_budget(_rent(year=2023, month=12))
    created = propagate_recurring(2024, 1, store=store)
    assert [(b.year, b.month) for b in created] == [(2024, 1)]


def test_only_one_hop_per_call(store):
    store.add_budget(_rent())
    assert propagate_recurring(2024, 4, store=store) == []


def test_propagate_range_fills_every_intermediate_month(store):
    store.add_budget(_rent())

    created = propagate_range((2024, 2), (2024, 7), store=store)

    assert [(b.year, b.month) for b in created] == [(2024, m) for m in range(2, 8)]
    assert propagate_range((2024, 2), (2024, 7), store=store) == []


def test_malformed_definitions_are_skipped_with_a_warning(store, caplog):
    store.add_budget(Budget(2024, 1, 'expense', 50.0, mode=RECURRING))
    store.add_budget(_rent())

    with caplog.at_level(logging.WARNING, logger='budget_planner.recurrence'):
        with pytest.warns(DataIntegrityWarning):
            created = propagate_recurring(2024, 2, store=store)

    assert [b.group_id for b in created] == [5]
    assert "missing group_id" in caplog.text


def test_suppressed_month_is_not_recreated(store):
    store.add_budget(_rent())
    feb = propagate_recurring(2024, 2, store=store)[0]

    store.delete_budget(feb.id, suppress=True)

    assert propagate_recurring(2024, 2, store=store) == []
    # Without a February record the chain stops there
    assert propagate_recurring(2024, 3, store=store) == []


def test_unsuppressed_deletion_is_recreated(store):
    store.add_budget(_rent())
    feb = propagate_recurring(2024, 2, store=store)[0]

    store.delete_budget(feb.id)

    assert len(propagate_recurring(2024, 2, store=store)) == 1


def test_invalid_target_month_raises(store):
    with pytest.raises(InvalidPeriod):
        propagate_recurring(2024, 13, store=store)


def test_propagate_recurrent_budget_fills_forward_skipping_existing(store):
    saved = store.add_budget(_rent(month=11))
    store.add_budget(_rent(year=2025, month=3, amount=999.0))

    created = propagate_recurrent_budget(saved, years_ahead=1, store=store)

    periods = [(b.year, b.month) for b in created]
    assert periods[0] == (2024, 12)
    assert periods[-1] == (2025, 12)
    assert (2025, 3) not in periods
    assert len(created) == 12
    assert store.fetch_budgets(2025, 3)[0].amount == 999.0


def test_propagate_recurrent_budget_ignores_other_modes(store):
    assert propagate_recurrent_budget(_rent(mode=UNIQUE), store=store) == []


def test_propagate_installment_budget_creates_remaining_installments(store):
    first = store.add_budget(_rent(month=11, mode=INSTALLMENT, installments=4, installment_number=1, amount=75.0))

    created = propagate_installment_budget(first, store=store)

    assert [(b.year, b.month, b.installment_number) for b in created] == [
        (2024, 12, 2), (2025, 1, 3), (2025, 2, 4),
    ]
    assert all(b.amount == 75.0 and b.installments == 4 and b.mode == INSTALLMENT for b in created)
    assert propagate_installment_budget(first, store=store) == []


def test_propagate_budget_dispatches_on_mode(store):
    assert propagate_budget(_rent(mode=UNIQUE), store=store) == []
    installment = _rent(mode=INSTALLMENT, installments=2, installment_number=1)
    store.add_budget(installment)
    assert [(b.month, b.installment_number) for b in propagate_budget(installment, store=store)] == [(2, 2)]


def test_ensure_recurring_budgets_for_year_extends_from_latest_record(store):
    store.add_budget(_rent(year=2024, month=10))
    store.add_budget(_rent(year=2024, month=11, amount=320.0))
    store.add_budget(Budget(2026, 1, 'income', 10.0, mode=RECURRING, source_id=3))

    created = ensure_recurring_budgets_for_year(2025, store=store)

    assert [(b.year, b.month) for b in created][0] == (2024, 12)
    assert [(b.year, b.month) for b in created][-1] == (2025, 12)
    assert {b.amount for b in created} == {320.0}
    assert all(b.type == 'expense' for b in created)
    assert ensure_recurring_budgets_for_year(2025, store=store) == []


def test_concurrent_propagation_creates_a_single_row(store):
    store.add_budget(_rent())
    created, errors = [], []

    def worker():
        try:
            created.extend(propagate_recurring(2024, 2, store=store))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(created) == 1
    assert len(store.fetch_budgets(2024, 2)) == 1
