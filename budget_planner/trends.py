"""Trend direction, monthly trend series and per-group spending trends."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from .aggregation import (
    assign_groups,
    budgets_frame,
    filter_periods,
    month_name,
    ordered_groups,
    summarize_frames,
    transactions_frame,
)
from .categorization import CategoryTree
from .config import get_config_value
from .models import Budget, Category, CategoryTrend, SavingsPoint, Transaction, TrendResult, VariancePoint
from .periods import Period, add_months, validate_period
from .variance import DOWN, NEUTRAL, SIGNIFICANT_CHANGE, UP, change_direction

MIN_POINTS = get_config_value('defaults', 'trend', 'min_points', default=2)
MONTHS_BACK = get_config_value('defaults', 'trend', 'months_back', default=6)


def normalize_series(values: Sequence[float]) -> List[float]:
    """Min-max scale ``values`` to 0..1; a flat series maps to all zeros."""
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return []
    span = array.max() - array.min()
    if span == 0:
        return [0.0] * int(array.size)
    return ((array - array.min()) / span).tolist()


def percentage_change(first: float, last: float) -> float:
    if first == 0:
        return 0.0
    return (last - first) / abs(first) * 100


def analyze_trend(
    series: Iterable[float],
    min_points: Optional[int] = None,
    threshold: Optional[float] = None,
) -> TrendResult:
    """Direction of a short series from its first to its last value.

    Args:
        series: Ordered values, oldest first
        min_points: Shortest series that gets a direction (default 2)
        threshold: Percentage change counted as significant (default 10)

    Returns:
        TrendResult with ``direction`` ``up``/``down``/``neutral``. Series that
        are too short come back ``neutral`` with no points.

    Example:
        >>> analyze_trend([1000, 1050, 1200]).direction
        'up'
        >>> analyze_trend([1000, 1000, 1000]).direction
        'neutral'
    """
    if min_points is None:
        min_points = MIN_POINTS
    if threshold is None:
        threshold = SIGNIFICANT_CHANGE

    points = tuple(float(v) for v in series)
    if len(points) < min_points or not points:
        return TrendResult(direction=NEUTRAL)

    first, last = points[0], points[-1]
    normalized = tuple(normalize_series(points))

    # A zero baseline has no percentage; only the sign of the last value counts
    if first == 0:
        direction = UP if last > 0 else DOWN if last < 0 else NEUTRAL
        return TrendResult(direction=direction, points=points, change=0.0, normalized=normalized)

    change = percentage_change(first, last)
    return TrendResult(
        direction=change_direction(change, threshold), points=points, change=change, normalized=normalized,
    )


def trailing_periods(year: int, month: int, months_back: int) -> List[Period]:
    """The ``months_back`` periods ending at ``(year, month)``, oldest first."""
    validate_period(year, month)
    return [add_months(year, month, offset) for offset in range(-(months_back - 1), 1)]


def _monthly_summaries(transactions, budgets, year, month, months_back):
    tx = transactions_frame(transactions)
    bd = budgets_frame(budgets)
    for y, m in trailing_periods(year, month, months_back):
        tx_month = tx[(tx['year'] == y) & (tx['month'] == m)]
        bd_month = bd[(bd['year'] == y) & (bd['month'] == m)]
        yield y, m, summarize_frames(tx_month, bd_month)


def variance_trend(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    year: int,
    month: int,
    months_back: Optional[int] = None,
) -> List[VariancePoint]:
    """Actual vs. planned balance for each of the last ``months_back`` months.

    ``percentage`` is the variance relative to the absolute planned balance,
    0 when nothing was planned.
    """
    if months_back is None:
        months_back = MONTHS_BACK
    points = []
    for y, m, summary in _monthly_summaries(transactions, budgets, year, month, months_back):
        budgeted = summary.budgeted_balance
        actual = summary.net_balance
        variance = actual - budgeted
        points.append(VariancePoint(
            year=y,
            month=m,
            month_name=month_name(m),
            budgeted=budgeted,
            actual=actual,
            variance=variance,
            percentage=variance / abs(budgeted) * 100 if budgeted != 0 else 0.0,
        ))
    return points


def savings_trend(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    year: int,
    month: int,
    months_back: Optional[int] = None,
) -> List[SavingsPoint]:
    """Savings and savings rate (percent of income) for each of the last ``months_back`` months."""
    if months_back is None:
        months_back = MONTHS_BACK
    points = []
    for y, m, summary in _monthly_summaries(transactions, budgets, year, month, months_back):
        savings = summary.net_balance
        income = summary.total_income
        points.append(SavingsPoint(
            year=y,
            month=m,
            month_name=month_name(m),
            savings=savings,
            savings_rate=savings / income * 100 if income > 0 else 0.0,
        ))
    return points


def category_trends(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    year: int,
    month: int,
    months_back: Optional[int] = None,
    threshold: Optional[float] = None,
) -> List[CategoryTrend]:
    """Expense series of every group over the ``months_back`` months ending at ``(year, month)``.

    ``change`` compares the mean of the second half of the window with the mean
    of the first half, 0 when the first half has no spending. Groups with no
    spending in the window are left out.

    Example:
        >>> [t.direction for t in category_trends(transactions, categories, 2024, 6)]  # doctest: +SKIP
        ['up', 'neutral']
    """
    if months_back is None:
        months_back = MONTHS_BACK
    periods = trailing_periods(year, month, months_back)
    if not periods:
        return []

    tree = CategoryTree(categories)
    tx = assign_groups(filter_periods(transactions_frame(transactions), periods), tree, 'transaction')
    by_period = tx.groupby(['group', 'year', 'month'])['value'].sum()

    half = len(periods) // 2
    trends: List[CategoryTrend] = []
    for group_id in ordered_groups(tree, set(tx['group'])):
        values = tuple(float(by_period.get((group_id, y, m), 0.0)) for y, m in periods)
        total = sum(values)
        if total <= 0:
            continue
        first_half = float(np.mean(values[:half])) if half else 0.0
        second_half = float(np.mean(values[half:]))
        change = percentage_change(first_half, second_half) if first_half > 0 else 0.0
        trends.append(CategoryTrend(
            group_id=group_id,
            group_name=tree.name_of(group_id),
            periods=tuple(periods),
            values=values,
            total=total,
            average=total / len(values),
            change=change,
            direction=change_direction(change, threshold),
        ))
    return trends
