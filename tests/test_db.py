from datetime import date

import pytest

from budget_planner.db import BudgetStore
from budget_planner.errors import PersistenceFailure
from budget_planner.models import Budget, RECURRING, Transaction


@pytest.fixture
def store(tmp_path):
    return BudgetStore(tmp_path / "budget.db")


def test_round_trips_categories_sources_and_transactions(store):
    home = store.add_category("Home")
    rent = store.add_category("Rent", parent_id=home.id)
    salary = store.add_source("Salary")
    saved = store.add_transaction(Transaction('expense', 1200.0, date(2024, 3, 1), group_id=home.id,
                                              subgroup_id=rent.id, note="March rent"))
    store.add_transaction(Transaction('earning', 4000.0, date(2024, 4, 5), source_id=salary.id))

    assert saved.id is not None
    assert [c.name for c in store.fetch_categories()] == ["Home", "Rent"]
    assert store.fetch_categories()[1].parent_id == home.id
    assert store.fetch_sources()[0].name == "Salary"

    march = store.fetch_transactions(year=2024, month=3)
    assert len(march) == 1
    assert march[0].date == date(2024, 3, 1)
    assert march[0].note == "March rent"
    assert len(store.fetch_transactions(year=2024)) == 2


def test_fingerprint_is_unique_per_month_even_with_null_keys(store):
    budget = Budget(2024, 1, 'expense', 300.0, mode=RECURRING, group_id=5)
    store.add_budget(budget)

    with pytest.raises(PersistenceFailure):
        store.add_budget(Budget(2024, 1, 'expense', 999.0, group_id=5))

    # Same group with a subgroup is a different definition
    store.add_budget(Budget(2024, 1, 'expense', 50.0, group_id=5, subgroup_id=6))
    assert len(store.fetch_budgets(2024, 1)) == 2


def test_failed_batch_writes_nothing(store):
    with pytest.raises(PersistenceFailure):
        store.add_budgets([
            Budget(2024, 2, 'income', 100.0, source_id=1),
            Budget(2024, 2, 'income', 200.0, source_id=1),
        ])
    assert store.fetch_budgets(2024, 2) == []


def test_insert_if_absent_skips_existing_fingerprints(store):
    store.add_budget(Budget(2024, 2, 'expense', 410.0, mode=RECURRING, group_id=5))

    created = store.insert_budgets_if_absent([
        Budget(2024, 2, 'expense', 300.0, mode=RECURRING, group_id=5),
        Budget(2024, 2, 'income', 3000.0, mode=RECURRING, source_id=2),
    ])

    assert [b.type for b in created] == ['income']
    amounts = {b.type: b.amount for b in store.fetch_budgets(2024, 2)}
    assert amounts == {'expense': 410.0, 'income': 3000.0}


def test_delete_with_suppression_blocks_reinsertion(store):
    saved = store.add_budget(Budget(2024, 3, 'expense', 80.0, mode=RECURRING, group_id=9))

    assert store.delete_budget(saved.id, suppress=True)
    assert store.is_suppressed(2024, 3, saved.fingerprint)
    assert store.insert_budgets_if_absent([Budget(2024, 3, 'expense', 80.0, mode=RECURRING, group_id=9)]) == []

    assert store.clear_suppression(2024, 3, saved.fingerprint)
    assert len(store.insert_budgets_if_absent([Budget(2024, 3, 'expense', 80.0, mode=RECURRING, group_id=9)])) == 1


def test_delete_missing_budget_returns_false(store):
    assert store.delete_budget(12345) is False


def test_update_amount_and_frame(store):
    saved = store.add_budget(Budget(2024, 5, 'expense', 10.0, group_id=1, is_fixed_cost=True))
    assert store.update_budget_amount(saved.id, 25.0)

    fetched = store.get_budget(saved.id)
    assert fetched.amount == 25.0
    assert fetched.is_fixed_cost is True

    frame = store.budgets_frame(2024)
    assert list(frame['amount']) == [25.0]


def test_unopenable_database_raises_persistence_failure(tmp_path):
    with pytest.raises(PersistenceFailure):
        BudgetStore(tmp_path)


def test_frame_query_failures_raise_persistence_failure(store):
    with store.connect() as conn:
        conn.execute("DROP TABLE budgets")

    with pytest.raises(PersistenceFailure):
        store.budgets_frame()
