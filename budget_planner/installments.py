"""Expansion of one installment purchase or budget into per-month records."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import List, Optional, Union

from .config import get_config_value
from .errors import InvalidInstallmentCount
from .models import Budget, INSTALLMENT, Transaction
from .periods import add_months, add_months_to_date, parse_date

MIN_INSTALLMENTS = get_config_value('defaults', 'installments', 'min', default=2)
MAX_INSTALLMENTS = get_config_value('defaults', 'installments', 'max', default=120)

Record = Union[Transaction, Budget]


def validate_installment_count(count: int, maximum: Optional[int] = None) -> int:
    """Return ``count`` if it is an integer in ``[MIN_INSTALLMENTS, maximum]``.

    Raises:
        InvalidInstallmentCount: For single payments, non-integers and counts
            above ``maximum`` (``MAX_INSTALLMENTS`` by default)
    """
    if maximum is None:
        maximum = MAX_INSTALLMENTS
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidInstallmentCount(count, maximum)
    if count < MIN_INSTALLMENTS or count > maximum:
        raise InvalidInstallmentCount(count, maximum)
    return count


def expand_installments(
    draft: Record,
    count: int,
    start_date: Optional[Union[date, datetime, str]] = None,
    total_value: Optional[float] = None,
) -> List[Record]:
    """Expand a transaction or budget into ``count`` monthly installments.

    Every installment carries the same per-installment value; nothing is
    divided. Installment ``i`` (1-based) falls ``i - 1`` months after the start.

    Args:
        draft: Template transaction or budget. Its ``id`` is not copied.
        count: Number of installments (at least 2)
        start_date: First installment date; defaults to the draft's own
            date (transactions) or period (budgets)
        total_value: Value of each installment; defaults to the draft's
            ``value``/``amount``

    Returns:
        Records ordered by ``installment_number``

    Raises:
        InvalidInstallmentCount: If ``count`` is not a valid installment count
        ValueError: If the installment value is not positive
        TypeError: If ``draft`` is neither a Transaction nor a Budget

    Example:
        >>> parts = expand_installments(Transaction('expense', 50.0, date(2024, 1, 31)), 3)
        >>> [p.date.isoformat() for p in parts]
        ['2024-01-31', '2024-02-29', '2024-03-31']
    """
    validate_installment_count(count)

    if isinstance(draft, Transaction):
        value = draft.value if total_value is None else float(total_value)
        if value <= 0:
            raise ValueError(f"Installment value must be positive, got {value!r}")
        start = draft.date if start_date is None else parse_date(start_date)
        return [
            replace(
                draft,
                id=None,
                value=value,
                date=add_months_to_date(start, number - 1),
                installments=count,
                installment_number=number,
            )
            for number in range(1, count + 1)
        ]

    if isinstance(draft, Budget):
        amount = draft.amount if total_value is None else float(total_value)
        if amount <= 0:
            raise ValueError(f"Installment amount must be positive, got {amount!r}")
        if start_date is None:
            year, month = draft.period
        else:
            start = parse_date(start_date)
            year, month = start.year, start.month
        records = []
        for number in range(1, count + 1):
            target_year, target_month = add_months(year, month, number - 1)
            records.append(replace(
                draft,
                id=None,
                year=target_year,
                month=target_month,
                amount=amount,
                mode=INSTALLMENT,
                installments=count,
                installment_number=number,
            ))
        return records

    raise TypeError(f"Cannot expand installments for {type(draft).__name__}")
