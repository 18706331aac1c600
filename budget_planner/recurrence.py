"""Materialization of recurring and installment budgets.

Recurring budgets are stored once per month. Viewing a month calls
:func:`propagate_recurring`, which copies each recurring definition of the
previous month forward a single step. Existing records in the target month
always win, so propagation never overwrites a manual edit and repeated calls
are no-ops.

A month deleted with ``BudgetStore.delete_budget(..., suppress=True)`` keeps a
suppression marker and is never recreated.
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterable, List, Optional

from .config import get_config_value
from .db import BudgetStore
from .errors import DataIntegrityWarning
from .installments import expand_installments
from .models import EXPENSE, INSTALLMENT, RECURRING, Budget
from .periods import (
    MONTHS_IN_YEAR,
    Period,
    add_months,
    from_month_number,
    month_number,
    months_between,
    previous_month,
    validate_period,
)

logger = logging.getLogger(__name__)

DEFAULT_YEARS_AHEAD = get_config_value('defaults', 'recurrence', 'years_ahead', default=10)


def _store(store: Optional[BudgetStore]) -> BudgetStore:
    return store if store is not None else BudgetStore()


def _report_malformed(budget: Budget) -> None:
    message = (
        f"Skipping recurring budget id={budget.id} ({budget.type}) in "
        f"{budget.year}-{budget.month:02d}: missing "
        f"{'group_id' if budget.type == EXPENSE else 'source_id'}"
    )
    logger.warning(message)
    warnings.warn(message, DataIntegrityWarning, stacklevel=3)


def _recurring_copy(budget: Budget, year: int, month: int) -> Budget:
    return Budget(
        year=year,
        month=month,
        type=budget.type,
        amount=budget.amount,
        mode=RECURRING,
        source_id=budget.source_id,
        group_id=budget.group_id,
        subgroup_id=budget.subgroup_id,
        is_fixed_cost=budget.is_fixed_cost,
    )


def _copies_through(budget: Budget, last: Period) -> List[Budget]:
    steps = months_between(budget.period, last)
    return [_recurring_copy(budget, *add_months(*budget.period, step)) for step in range(1, steps + 1)]


def propagate_recurring(target_year: int, target_month: int, store: Optional[BudgetStore] = None) -> List[Budget]:
    """Copy last month's recurring budgets into ``(target_year, target_month)``.

    Only one month is covered per call. To fill a gap of several months call
    this for each month in order, or use :func:`propagate_range`.

    Args:
        target_year: Year to fill
        target_month: Month to fill (1-12)
        store: Budget store; defaults to the configured database

    Returns:
        Budgets created in the target month, empty when nothing was missing

    Raises:
        InvalidPeriod: If the target period is malformed
        PersistenceFailure: If the store cannot be read or written

    Example:
        >>> propagate_recurring(2024, 2, store)  # doctest: +SKIP
        [Budget(year=2024, month=2, type='expense', amount=300.0, mode='recurring', ...)]
    """
    validate_period(target_year, target_month)
    store = _store(store)

    prev_year, prev_month = previous_month(target_year, target_month)
    definitions = store.fetch_budgets(prev_year, prev_month, mode=RECURRING)
    if not definitions:
        return []

    existing = {b.fingerprint for b in store.fetch_budgets(target_year, target_month)}

    candidates: List[Budget] = []
    for budget in definitions:
        if not budget.has_valid_fingerprint:
            _report_malformed(budget)
            continue
        if budget.fingerprint in existing:
            continue
        existing.add(budget.fingerprint)
        candidates.append(_recurring_copy(budget, target_year, target_month))

    if not candidates:
        return []

    created = store.insert_budgets_if_absent(candidates)
    if created:
        logger.info("Propagated %d recurring budget(s) into %d-%02d",
                    len(created), target_year, target_month)
    return created


def propagate_range(start: Period, end: Period, store: Optional[BudgetStore] = None) -> List[Budget]:
    """Run :func:`propagate_recurring` for every month from ``start`` to ``end`` inclusive.

    Each month pulls from the one before it, so a chain that exists in the
    month before ``start`` reaches ``end`` without gaps.
    """
    validate_period(*start)
    validate_period(*end)
    store = _store(store)

    created: List[Budget] = []
    for number in range(month_number(*start), month_number(*end) + 1):
        created.extend(propagate_recurring(*from_month_number(number), store=store))
    return created


def propagate_recurrent_budget(
    budget: Budget,
    years_ahead: Optional[int] = None,
    store: Optional[BudgetStore] = None,
) -> List[Budget]:
    """Materialize a recurring budget in every later month up to December of ``budget.year + years_ahead``.

    Months already holding the fingerprint or carrying a suppression marker
    are skipped. Non-recurring budgets are ignored.
    """
    if budget.mode != RECURRING:
        return []
    if not budget.has_valid_fingerprint:
        _report_malformed(budget)
        return []
    if years_ahead is None:
        years_ahead = DEFAULT_YEARS_AHEAD
    store = _store(store)

    candidates = _copies_through(budget, (budget.year + years_ahead, MONTHS_IN_YEAR))
    created = store.insert_budgets_if_absent(candidates)
    if created:
        logger.info("Propagated recurring budget id=%s to %d future month(s)", budget.id, len(created))
    return created


def propagate_installment_budget(budget: Budget, store: Optional[BudgetStore] = None) -> List[Budget]:
    """Create the installments that follow ``budget`` in its plan.

    ``budget`` is taken as installment ``installment_number`` (1 when unset)
    of ``installments``; the later installments land in the following months.
    """
    if budget.mode != INSTALLMENT or not budget.installments:
        return []
    store = _store(store)

    number = budget.installment_number or 1
    first_year, first_month = add_months(budget.year, budget.month, -(number - 1))
    plan = expand_installments(
        budget, budget.installments, start_date=f"{first_year:04d}-{first_month:02d}-01"
    )
    created = store.insert_budgets_if_absent(plan[number:])
    if created:
        logger.info("Propagated installment budget id=%s to %d month(s) of %d",
                    budget.id, len(created), budget.installments)
    return created


def propagate_budget(budget: Budget, store: Optional[BudgetStore] = None) -> List[Budget]:
    """Propagate a freshly saved budget according to its mode."""
    if budget.mode == RECURRING:
        return propagate_recurrent_budget(budget, store=store)
    if budget.mode == INSTALLMENT:
        return propagate_installment_budget(budget, store=store)
    return []


def ensure_recurring_budgets_for_year(target_year: int, store: Optional[BudgetStore] = None) -> List[Budget]:
    """Extend every recurring chain that stops before ``target_year`` through its December.

    The latest record of each chain is the template, so the extension keeps
    the most recently edited amount.
    """
    validate_period(target_year, 1)
    store = _store(store)

    created: List[Budget] = []
    for latest, _ in store.latest_recurring_periods():
        if latest.year >= target_year:
            continue
        if not latest.has_valid_fingerprint:
            _report_malformed(latest)
            continue
        created.extend(store.insert_budgets_if_absent(
            _copies_through(latest, (target_year, MONTHS_IN_YEAR))
        ))

    if created:
        logger.info("Extended recurring budgets to year %d (%d created)", target_year, len(created))
    return created


def created_periods(budgets: Iterable[Budget]) -> List[Period]:
    """Distinct periods touched by ``budgets`` in ascending order."""
    return sorted({b.period for b in budgets})
