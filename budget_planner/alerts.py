"""Non-blocking budget alerts for a single month."""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Union

from .aggregation import compute_group_summaries, compute_month_summary
from .categorization import CategoryTree
from .models import Alert, Budget, Category, Transaction
from .periods import CURRENT, classify, parse_date, validate_period
from .variance import CRITICAL, EXCEEDED, WARNING, budget_status

SUCCESS = 'success'
INFO = 'info'

ALERT_ORDER = {WARNING: 0, INFO: 1, SUCCESS: 2}

CREATE_BUDGET_ACTION = 'create_budget'

# Share of the budget under which a group is praised after mid-month
LOW_USAGE_PERCENTAGE = 50
MID_MONTH_DAY = 15
# Overall expense percentage under which the month is reported as on track
ON_TRACK_PERCENTAGE = 90


def build_alerts(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    year: int,
    month: int,
    reference_date: Union[date, datetime, str],
) -> List[Alert]:
    """Collect warnings, hints and achievements for ``(year, month)``.

    Near-limit warnings and mid-month praise only apply while ``reference_date``
    falls in the month itself.

    Returns:
        Alerts ordered warnings first, then info, then success
    """
    validate_period(year, month)
    reference_date = parse_date(reference_date)
    transactions = list(transactions)
    budgets = list(budgets)
    categories = list(categories)

    is_current = classify(year, month, reference_date) == CURRENT
    days_remaining = calendar.monthrange(year, month)[1] - reference_date.day if is_current else 0

    alerts: List[Alert] = []
    groups = compute_group_summaries(transactions, budgets, categories, year, month)
    for group in groups:
        if group.budgeted <= 0:
            continue
        status = budget_status(group.actual, group.budgeted)
        if status == EXCEEDED and group.actual > group.budgeted:
            alerts.append(Alert(
                type=WARNING,
                message=(f"{group.group_name}: budget exceeded by {group.actual - group.budgeted:.2f} "
                         f"({group.percentage:.0f}%)"),
                category=group.group_name,
            ))
        elif status in (WARNING, CRITICAL, EXCEEDED) and days_remaining > 0:
            alerts.append(Alert(
                type=WARNING,
                message=(f"{group.group_name}: {group.percentage:.0f}% of budget used "
                         f"({days_remaining} days left)"),
                category=group.group_name,
            ))
        elif group.percentage < LOW_USAGE_PERCENTAGE and is_current and reference_date.day >= MID_MONTH_DAY:
            alerts.append(Alert(
                type=SUCCESS,
                message=f"{group.group_name}: great control, only {group.percentage:.0f}% of budget used",
                category=group.group_name,
            ))

    summary = compute_month_summary(transactions, budgets, year, month)

    if summary.budgeted_expense > 0 and summary.total_expense > 0:
        expense_percentage = summary.total_expense / summary.budgeted_expense * 100
        if expense_percentage < ON_TRACK_PERCENTAGE:
            under_budget = sum(1 for g in groups if g.budgeted > 0 and g.actual < g.budgeted)
            group_count = len(CategoryTree(categories).groups)
            alerts.append(Alert(
                type=SUCCESS,
                message=f"Within budget in {under_budget}/{group_count} categories",
            ))

    if summary.budgeted_income > 0 and summary.total_income > summary.budgeted_income:
        alerts.append(Alert(
            type=SUCCESS,
            message=f"Income {summary.total_income - summary.budgeted_income:.2f} above plan",
        ))

    budgeted_balance = summary.budgeted_balance
    if budgeted_balance > 0 and summary.net_balance > budgeted_balance:
        alerts.append(Alert(
            type=SUCCESS,
            message=f"Saving {summary.net_balance - budgeted_balance:.2f} more than planned",
        ))

    has_budgets = any(b.period == (year, month) for b in _budgets(budgets))
    has_transactions = summary.total_income > 0 or summary.total_expense > 0
    if has_transactions and not has_budgets:
        alerts.append(Alert(
            type=INFO,
            message="There are transactions but no budget for this month",
            action=CREATE_BUDGET_ACTION,
        ))

    return sorted(alerts, key=lambda a: ALERT_ORDER[a.type])


def _budgets(records: Iterable[Union[Budget, Dict[str, Any]]]) -> Iterable[Budget]:
    for record in records:
        yield record if isinstance(record, Budget) else Budget.from_dict(record)
