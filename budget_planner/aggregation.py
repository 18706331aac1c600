"""Month, group, yearly, year-to-date and category impact summaries.

All functions take the full transaction and budget collections and do their
own period filtering. Records are loaded into pandas DataFrames once per call
and summed with ``groupby``. Nothing here reads the clock or writes anything.
"""

from __future__ import annotations

import calendar
import warnings
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .categorization import UNCATEGORIZED_GROUP_ID, CategoryTree
from .config import get_config_value
from .errors import DataIntegrityWarning
from .models import (
    EARNING,
    EXPENSE,
    INCOME,
    Budget,
    Category,
    GroupImpact,
    GroupSummary,
    ImpactReport,
    MonthlyBreakdown,
    MonthSummary,
    Source,
    SubgroupImpact,
    SubgroupSummary,
    TopTransaction,
    Transaction,
    YearlyGroupSummary,
    YearlySummary,
    YTDSummary,
)
from .periods import (
    MONTHS_IN_YEAR,
    PAST,
    Period,
    add_months,
    classify,
    is_date_in_month,
    is_future,
    parse_date,
    validate_period,
)
from .variance import DOWN, NEUTRAL, UP, change_direction, heatmap_status, impact_level

DateLike = Union[date, datetime, str]

TRANSACTION_FRAME_COLUMNS = ['id', 'type', 'value', 'year', 'month', 'source_id', 'group_id', 'subgroup_id']
BUDGET_FRAME_COLUMNS = ['id', 'type', 'amount', 'year', 'month', 'source_id', 'group_id', 'subgroup_id']

TOP_TRANSACTIONS_LIMIT = get_config_value('defaults', 'top_transactions', 'default_limit', default=5)
TOP_TRANSACTIONS_MAX = get_config_value('defaults', 'top_transactions', 'max_limit', default=100)

# Completed months with expense activity averaged for the impact trend
IMPACT_HISTORY_MONTHS = get_config_value('defaults', 'impact', 'history_months', default=3)
IMPACT_LOOKBACK_LIMIT = get_config_value('defaults', 'impact', 'lookback_limit', default=10)
IMPACT_TRENDING_LIMIT = get_config_value('defaults', 'impact', 'trending_limit', default=5)


def month_name(month: int) -> str:
    return calendar.month_name[month]


def _percentage(actual: float, budgeted: float) -> float:
    """``actual`` as a percentage of ``budgeted``; 0 when nothing is budgeted."""
    if budgeted > 0:
        return float(actual / budgeted * 100)
    return 0.0


def _as_transaction(record: Union[Transaction, Dict[str, Any]]) -> Transaction:
    return record if isinstance(record, Transaction) else Transaction.from_dict(record)


def _as_budget(record: Union[Budget, Dict[str, Any]]) -> Budget:
    return record if isinstance(record, Budget) else Budget.from_dict(record)


def transactions_frame(transactions: Iterable[Union[Transaction, Dict[str, Any]]]) -> pd.DataFrame:
    """Flatten transactions into a DataFrame with ``year``/``month`` columns."""
    rows = []
    for record in transactions:
        t = _as_transaction(record)
        rows.append({
            'id': t.id,
            'type': t.type,
            'value': t.value,
            'year': t.date.year,
            'month': t.date.month,
            'source_id': t.source_id,
            'group_id': t.group_id,
            'subgroup_id': t.subgroup_id,
        })
    return pd.DataFrame(rows, columns=TRANSACTION_FRAME_COLUMNS)


def budgets_frame(budgets: Iterable[Union[Budget, Dict[str, Any]]]) -> pd.DataFrame:
    rows = []
    for record in budgets:
        b = _as_budget(record)
        rows.append({
            'id': b.id,
            'type': b.type,
            'amount': b.amount,
            'year': b.year,
            'month': b.month,
            'source_id': b.source_id,
            'group_id': b.group_id,
            'subgroup_id': b.subgroup_id,
        })
    return pd.DataFrame(rows, columns=BUDGET_FRAME_COLUMNS)


def _in_period(frame: pd.DataFrame, year: int, month: Optional[int] = None) -> pd.DataFrame:
    mask = frame['year'] == year
    if month is not None:
        mask &= frame['month'] == month
    return frame[mask]


def filter_periods(frame: pd.DataFrame, periods: Iterable[Period]) -> pd.DataFrame:
    """Rows of ``frame`` whose ``(year, month)`` is one of ``periods``."""
    wanted = set(periods)
    mask = [(y, m) in wanted for y, m in zip(frame['year'], frame['month'])]
    return frame[pd.Series(mask, index=frame.index, dtype=bool)]


def _sum(frame: pd.DataFrame, column: str, kind: str) -> float:
    return float(frame.loc[frame['type'] == kind, column].sum())


def summarize_frames(tx: pd.DataFrame, bd: pd.DataFrame) -> MonthSummary:
    """Totals of already period-filtered transaction and budget frames."""
    total_income = _sum(tx, 'value', EARNING)
    total_expense = _sum(tx, 'value', EXPENSE)
    return MonthSummary(
        total_income=total_income,
        total_expense=total_expense,
        budgeted_income=_sum(bd, 'amount', INCOME),
        budgeted_expense=_sum(bd, 'amount', EXPENSE),
        net_balance=total_income - total_expense,
    )


def compute_month_summary(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    year: int,
    month: int,
) -> MonthSummary:
    """Total income, expense and their budgets for one month.

    Args:
        transactions: All transactions; only those dated in the month count
        budgets: All budgets; only those for ``(year, month)`` count
        year: Calendar year
        month: Month number (1-12)

    Returns:
        MonthSummary with ``net_balance = total_income - total_expense``

    Example:
        >>> compute_month_summary([Transaction('earning', 1000.0, date(2024, 1, 5))], [], 2024, 1).net_balance
        1000.0
    """
    validate_period(year, month)
    tx = _in_period(transactions_frame(transactions), year, month)
    bd = _in_period(budgets_frame(budgets), year, month)
    return summarize_frames(tx, bd)


def assign_groups(frame: pd.DataFrame, tree: CategoryTree, kind: str) -> pd.DataFrame:
    """Expense rows of ``frame`` tagged with their resolved ``group`` and ``subgroup``.

    Rows that resolve to no known group go to the uncategorized group and
    trigger a :class:`DataIntegrityWarning`.
    """
    expense = frame[frame['type'] == EXPENSE].copy()
    groups: List[int] = []
    subgroups: List[Optional[int]] = []
    orphans: List[Any] = []
    for row in expense.itertuples(index=False):
        group_id = None if pd.isna(row.group_id) else int(row.group_id)
        subgroup_id = None if pd.isna(row.subgroup_id) else int(row.subgroup_id)
        root = tree.resolve(group_id, subgroup_id)
        if root is None:
            orphans.append(row.id)
            groups.append(UNCATEGORIZED_GROUP_ID)
            subgroups.append(None)
        else:
            groups.append(root)
            subgroups.append(tree.detail_of(group_id, subgroup_id))

    if orphans:
        warnings.warn(
            f"{len(orphans)} expense {kind}(s) reference unknown categories and were "
            f"counted as uncategorized (ids: {orphans})",
            DataIntegrityWarning,
            stacklevel=3,
        )
    expense['group'] = pd.Series(groups, index=expense.index, dtype='int64')
    expense['subgroup'] = pd.Series(subgroups, index=expense.index, dtype='object')
    return expense


def ordered_groups(tree: CategoryTree, present: Iterable[int]) -> List[int]:
    present = set(present)
    ordered = [gid for gid in tree.groups if gid in present]
    if UNCATEGORIZED_GROUP_ID in present and UNCATEGORIZED_GROUP_ID not in tree.groups:
        ordered.append(UNCATEGORIZED_GROUP_ID)
    return ordered


def compute_group_summaries(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    year: int,
    month: int,
    include_subcategories: bool = False,
) -> List[GroupSummary]:
    """Per-group expense rollup for one month.

    A record counts toward a group when its ``group_id`` is the group or its
    ``subgroup_id`` sits under it. Groups with no transactions and no budgets in
    the month are left out; the rest follow the order of ``categories``.

    Args:
        transactions: All transactions
        budgets: All budgets
        categories: Flat category collection (groups and subgroups)
        year: Calendar year
        month: Month number (1-12)
        include_subcategories: Attach a SubgroupSummary for every subgroup
            with records of its own in the month

    Returns:
        List of GroupSummary; records with unknown categories appear under
        ``UNCATEGORIZED_GROUP_ID`` at the end
    """
    validate_period(year, month)
    tree = CategoryTree(categories)
    tx = assign_groups(_in_period(transactions_frame(transactions), year, month), tree, 'transaction')
    bd = assign_groups(_in_period(budgets_frame(budgets), year, month), tree, 'budget')

    actual_by_group = tx.groupby('group')['value'].sum()
    budgeted_by_group = bd.groupby('group')['amount'].sum()
    actual_by_subgroup = tx.dropna(subset=['subgroup']).groupby('subgroup')['value'].sum()
    budgeted_by_subgroup = bd.dropna(subset=['subgroup']).groupby('subgroup')['amount'].sum()
    subgroups_present = set(actual_by_subgroup.index) | set(budgeted_by_subgroup.index)

    summaries: List[GroupSummary] = []
    for group_id in ordered_groups(tree, set(tx['group']) | set(bd['group'])):
        actual = float(actual_by_group.get(group_id, 0.0))
        budgeted = float(budgeted_by_group.get(group_id, 0.0))

        details: List[SubgroupSummary] = []
        if include_subcategories and group_id in tree.groups:
            for subgroup_id in tree.groups[group_id].subgroup_ids:
                if subgroup_id not in subgroups_present:
                    continue
                sub_actual = float(actual_by_subgroup.get(subgroup_id, 0.0))
                sub_budgeted = float(budgeted_by_subgroup.get(subgroup_id, 0.0))
                details.append(SubgroupSummary(
                    subgroup_id=subgroup_id,
                    subgroup_name=tree.name_of(subgroup_id),
                    budgeted=sub_budgeted,
                    actual=sub_actual,
                    remaining=sub_budgeted - sub_actual,
                    percentage=_percentage(sub_actual, sub_budgeted),
                ))

        summaries.append(GroupSummary(
            group_id=group_id,
            group_name=tree.name_of(group_id),
            budgeted=budgeted,
            actual=actual,
            remaining=budgeted - actual,
            percentage=_percentage(actual, budgeted),
            subgroups=tuple(details),
        ))
    return summaries


def compute_yearly_summary(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    categories: Optional[Iterable[Union[Category, Dict[str, Any]]]],
    year: int,
    reference_date: DateLike,
) -> YearlySummary:
    """Twelve monthly breakdowns of ``year`` plus their totals.

    Month totals do not depend on ``categories``; it is accepted so yearly and
    group summaries can be called with the same arguments.

    Months after ``reference_date``'s month are flagged ``is_future`` and get
    the ``neutral`` heatmap status. Their records still count toward the year
    totals, which always equal the sum of the twelve month summaries.
    """
    validate_period(year, 1)
    reference_date = parse_date(reference_date)
    tx = _in_period(transactions_frame(transactions), year)
    bd = _in_period(budgets_frame(budgets), year)

    breakdowns: List[MonthlyBreakdown] = []
    totals = MonthSummary()
    for month in range(1, MONTHS_IN_YEAR + 1):
        summary = summarize_frames(_in_period(tx, year, month), _in_period(bd, year, month))
        future = is_future(year, month, reference_date)
        status = NEUTRAL if future else heatmap_status(summary.net_balance, summary.budgeted_balance)
        breakdowns.append(MonthlyBreakdown(
            year=year,
            month=month,
            month_name=month_name(month),
            summary=summary,
            is_future=future,
            status=status,
        ))
        totals = totals + summary

    return YearlySummary(year=year, totals=totals, monthly_breakdowns=tuple(breakdowns))


def compute_yearly_group_summaries(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    year: int,
) -> List[YearlyGroupSummary]:
    """Per-group expense totals for a whole year with a twelve-point monthly series."""
    validate_period(year, 1)
    tree = CategoryTree(categories)
    tx = assign_groups(_in_period(transactions_frame(transactions), year), tree, 'transaction')
    bd = assign_groups(_in_period(budgets_frame(budgets), year), tree, 'budget')

    actual = tx.groupby(['group', 'month'])['value'].sum()
    budgeted = bd.groupby(['group', 'month'])['amount'].sum()

    summaries: List[YearlyGroupSummary] = []
    for group_id in ordered_groups(tree, set(tx['group']) | set(bd['group'])):
        monthly = tuple(
            {
                'month': m,
                'budgeted': float(budgeted.get((group_id, m), 0.0)),
                'actual': float(actual.get((group_id, m), 0.0)),
            }
            for m in range(1, MONTHS_IN_YEAR + 1)
        )
        total_budgeted = sum(point['budgeted'] for point in monthly)
        total_actual = sum(point['actual'] for point in monthly)
        summaries.append(YearlyGroupSummary(
            group_id=group_id,
            group_name=tree.name_of(group_id),
            total_budgeted=total_budgeted,
            total_actual=total_actual,
            total_remaining=total_budgeted - total_actual,
            average_percentage=_percentage(total_actual, total_budgeted),
            monthly_data=monthly,
        ))
    return summaries


def completed_months(year: int, reference_date: DateLike) -> int:
    """Number of months of ``year`` that ended before ``reference_date``'s month."""
    reference_date = parse_date(reference_date)
    if year < reference_date.year:
        return MONTHS_IN_YEAR
    if year > reference_date.year:
        return 0
    return reference_date.month - 1


def compute_ytd_summary(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    year: int,
    reference_date: DateLike,
) -> YTDSummary:
    """Year-to-date totals over completed months only.

    The month containing ``reference_date`` is still running and is excluded.
    Ratios and averages are 0 whenever their denominator is 0.
    """
    validate_period(year, 1)
    months = completed_months(year, reference_date)
    tx = _in_period(transactions_frame(transactions), year)
    bd = _in_period(budgets_frame(budgets), year)
    totals = summarize_frames(tx[tx['month'] <= months], bd[bd['month'] <= months])

    total_savings = totals.net_balance
    budgeted_savings = totals.budgeted_balance
    savings_percentage = (
        total_savings / budgeted_savings * 100 if budgeted_savings > 0 and months > 0 else 0.0
    )

    def average(value: float) -> float:
        return value / months if months > 0 else 0.0

    return YTDSummary(
        total_income=totals.total_income,
        total_expense=totals.total_expense,
        total_savings=total_savings,
        budgeted_income=totals.budgeted_income,
        budgeted_expense=totals.budgeted_expense,
        budgeted_savings=budgeted_savings,
        savings_percentage=float(savings_percentage),
        savings_rate=_percentage(total_savings, totals.total_income),
        months_completed=months,
        average_monthly_income=average(totals.total_income),
        average_monthly_expense=average(totals.total_expense),
        average_monthly_savings=average(total_savings),
    )


def top_transactions(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    sources: Iterable[Union[Source, Dict[str, Any]]],
    year: int,
    month: int,
    transaction_type: str = EXPENSE,
    limit: Optional[int] = None,
) -> List[TopTransaction]:
    """Largest transactions of one type in a month, with category and source names.

    Ties keep their original order.
    """
    validate_period(year, month)
    if limit is None:
        limit = TOP_TRANSACTIONS_LIMIT
    if limit <= 0:
        return []
    limit = min(limit, TOP_TRANSACTIONS_MAX)

    records: Sequence[Transaction] = [_as_transaction(t) for t in transactions]
    matching = [
        t for t in records
        if t.type == transaction_type and is_date_in_month(t.date, year, month)
    ]
    ranked = sorted(matching, key=lambda t: t.value, reverse=True)[:limit]

    tree = CategoryTree(categories)
    source_names = {
        s.id: s.name for s in (src if isinstance(src, Source) else Source.from_dict(src) for src in sources)
    }
    return [
        TopTransaction(
            transaction=t,
            category_name=tree.name_of(t.group_id) if t.group_id is not None else None,
            subcategory_name=tree.name_of(t.subgroup_id) if t.subgroup_id is not None else None,
            source_name=source_names.get(t.source_id),
        )
        for t in ranked
    ]


def _impact_history(tx: pd.DataFrame, bd: pd.DataFrame, year: int, month: int,
                    reference_date: date, history_months: int) -> List[Period]:
    history: List[Period] = []
    for offset in range(1, IMPACT_LOOKBACK_LIMIT + 1):
        if len(history) >= history_months:
            break
        period = add_months(year, month, -offset)
        # Running and future months are not comparable yet
        if classify(*period, reference_date) != PAST:
            continue
        if len(_in_period(tx, *period)) or len(_in_period(bd, *period)):
            history.append(period)
    return history


def _impact_measures(spent: float, budgeted: float, past_total: float,
                     history_count: int, total_spent: float) -> Dict[str, Any]:
    average = past_total / history_count if history_count else 0.0
    change = (spent - average) / average * 100 if average > 0 else 0.0
    impact = spent / total_spent * 100 if total_spent > 0 else 0.0
    return {
        'spent': spent,
        'budgeted': budgeted,
        'percentage': _percentage(spent, budgeted),
        'is_over_budget': budgeted > 0 and spent > budgeted,
        'impact': impact,
        'impact_level': impact_level(impact / 100),
        'average': average,
        'trend': change_direction(change),
    }


def _is_active(measures: Dict[str, Any]) -> bool:
    return measures['spent'] > 0 or measures['budgeted'] > 0 or measures['average'] > 0


def category_impact(
    transactions: Iterable[Union[Transaction, Dict[str, Any]]],
    budgets: Iterable[Union[Budget, Dict[str, Any]]],
    categories: Iterable[Union[Category, Dict[str, Any]]],
    year: int,
    month: int,
    reference_date: DateLike,
    history_months: Optional[int] = None,
) -> ImpactReport:
    """Share of the month's spending per group and how it moves against recent months.

    The comparison baseline is the mean spend of up to ``history_months``
    completed months before ``(year, month)`` that had expense transactions
    or expense budgets, looking back at most ten months. Months that are not
    yet over at ``reference_date`` are skipped.

    Args:
        transactions: All transactions
        budgets: All budgets
        categories: Flat category collection (groups and subgroups)
        year: Calendar year
        month: Month number (1-12)
        reference_date: Date deciding which months are completed
        history_months: Number of baseline months (default 3)

    Returns:
        ImpactReport with groups sorted by spending, largest first. Groups and
        subgroups with no spending, no budget and no history are left out.
        ``trending_up`` and ``trending_down`` hold the groups moving most
        against their baseline.
    """
    validate_period(year, month)
    reference_date = parse_date(reference_date)
    if history_months is None:
        history_months = IMPACT_HISTORY_MONTHS
    tree = CategoryTree(categories)

    tx = transactions_frame(transactions)
    bd = budgets_frame(budgets)
    tx = tx[tx['type'] == EXPENSE]
    bd = bd[bd['type'] == EXPENSE]
    history = _impact_history(tx, bd, year, month, reference_date, history_months)

    month_tx = assign_groups(_in_period(tx, year, month), tree, 'transaction')
    month_bd = assign_groups(_in_period(bd, year, month), tree, 'budget')
    past_tx = assign_groups(filter_periods(tx, history), tree, 'transaction')
    total_spent = float(month_tx['value'].sum())

    spent_by_group = month_tx.groupby('group')['value'].sum()
    budgeted_by_group = month_bd.groupby('group')['amount'].sum()
    past_by_group = past_tx.groupby('group')['value'].sum()
    spent_by_subgroup = month_tx.dropna(subset=['subgroup']).groupby('subgroup')['value'].sum()
    budgeted_by_subgroup = month_bd.dropna(subset=['subgroup']).groupby('subgroup')['amount'].sum()
    past_by_subgroup = past_tx.dropna(subset=['subgroup']).groupby('subgroup')['value'].sum()

    def measures(spent, budgeted, past, key):
        return _impact_measures(
            float(spent.get(key, 0.0)), float(budgeted.get(key, 0.0)), float(past.get(key, 0.0)),
            len(history), total_spent,
        )

    impacts: List[GroupImpact] = []
    present = set(month_tx['group']) | set(month_bd['group']) | set(past_tx['group'])
    for group_id in ordered_groups(tree, present):
        group_measures = measures(spent_by_group, budgeted_by_group, past_by_group, group_id)
        if not _is_active(group_measures):
            continue

        subgroups: List[SubgroupImpact] = []
        if group_id in tree.groups:
            for subgroup_id in tree.groups[group_id].subgroup_ids:
                sub_measures = measures(spent_by_subgroup, budgeted_by_subgroup, past_by_subgroup, subgroup_id)
                if _is_active(sub_measures):
                    subgroups.append(SubgroupImpact(
                        subgroup_id=subgroup_id,
                        subgroup_name=tree.name_of(subgroup_id),
                        **sub_measures,
                    ))
        subgroups.sort(key=lambda s: s.spent, reverse=True)

        impacts.append(GroupImpact(
            group_id=group_id,
            group_name=tree.name_of(group_id),
            subgroups=tuple(subgroups),
            **group_measures,
        ))
    impacts.sort(key=lambda g: g.spent, reverse=True)

    trending_up = sorted(
        (g for g in impacts if g.trend == UP and g.spent > 0),
        key=lambda g: g.spent - g.average, reverse=True,
    )
    trending_down = sorted(
        (g for g in impacts if g.trend == DOWN and g.average > 0),
        key=lambda g: g.average - g.spent, reverse=True,
    )
    return ImpactReport(
        year=year,
        month=month,
        total_spent=total_spent,
        history_months=len(history),
        groups=tuple(impacts),
        trending_up=tuple(trending_up[:IMPACT_TRENDING_LIMIT]),
        trending_down=tuple(trending_down[:IMPACT_TRENDING_LIMIT]),
    )
