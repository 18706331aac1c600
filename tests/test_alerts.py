from datetime import date

from budget_planner.alerts import CREATE_BUDGET_ACTION, build_alerts
from budget_planner.models import Budget, Category, Transaction

CATEGORIES = [Category(1, 'Housing'), Category(2, 'Food'), Category(3, 'Fun')]


def _expense(value, group_id, day=date(2024, 5, 10)):
    return Transaction('expense', value, day, group_id=group_id)


def test_exceeded_and_near_limit_groups_warn_first():
    transactions = [
        _expense(1200.0, 1),
        _expense(450.0, 2),
        Transaction('earning', 6000.0, date(2024, 5, 1), source_id=1),
    ]
    budgets = [
        Budget(2024, 5, 'expense', 1000.0, group_id=1),
        Budget(2024, 5, 'expense', 500.0, group_id=2),
        Budget(2024, 5, 'income', 5000.0, source_id=1),
    ]

    alerts = build_alerts(transactions, budgets, CATEGORIES, 2024, 5, date(2024, 5, 20))

    types = [a.type for a in alerts]
    assert types[:2] == ['warning', 'warning']
    assert alerts[0].category == 'Housing'
    assert 'exceeded by 200.00' in alerts[0].message
    assert alerts[1].category == 'Food'
    assert '11 days left' in alerts[1].message
    assert any(a.type == 'success' and 'Income 1000.00 above plan' in a.message for a in alerts)
    assert types == sorted(types, key=['warning', 'info', 'success'].index)


def test_near_limit_is_silent_for_past_months():
    alerts = build_alerts(
        [_expense(450.0, 2)], [Budget(2024, 5, 'expense', 500.0, group_id=2)],
        CATEGORIES, 2024, 5, date(2024, 8, 1),
    )
    assert [a for a in alerts if a.type == 'warning'] == []


def test_low_usage_after_mid_month_is_praised():
    alerts = build_alerts(
        [_expense(100.0, 3)], [Budget(2024, 5, 'expense', 400.0, group_id=3)],
        CATEGORIES, 2024, 5, date(2024, 5, 16),
    )
    messages = [a.message for a in alerts if a.type == 'success']
    assert any(m.startswith('Fun: great control') for m in messages)
    assert 'Within budget in 1/3 categories' in messages


def test_transactions_without_budgets_get_an_info_alert():
    alerts = build_alerts([_expense(10.0, 1)], [], CATEGORIES, 2024, 5, date(2024, 6, 1))

    assert len(alerts) == 1
    assert alerts[0].type == 'info'
    assert alerts[0].action == CREATE_BUDGET_ACTION


def test_savings_above_plan_is_reported():
    transactions = [Transaction('earning', 3000.0, date(2024, 5, 1), source_id=1), _expense(1000.0, 1)]
    budgets = [Budget(2024, 5, 'income', 3000.0, source_id=1), Budget(2024, 5, 'expense', 2500.0, group_id=1)]

    alerts = build_alerts(transactions, budgets, CATEGORIES, 2024, 5, date(2024, 6, 1))

    assert any('Saving 1500.00 more than planned' in a.message for a in alerts)
