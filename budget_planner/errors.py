"""Exceptions and warnings raised by the budget planner engine."""

from __future__ import annotations


class BudgetPlannerError(Exception):
    """Base class for all budget planner errors."""


class InvalidPeriod(BudgetPlannerError, ValueError):
    """A (year, month) pair is malformed (month outside 1-12 or non-integer)."""

    def __init__(self, year, month):
        self.year = year
        self.month = month
        super().__init__(f"Invalid period: year={year!r}, month={month!r} (month must be 1-12)")


class InvalidInstallmentCount(BudgetPlannerError, ValueError):
    """An installment plan was requested with fewer than two installments."""

    def __init__(self, count, maximum=None):
        self.count = count
        self.maximum = maximum
        if maximum is not None:
            message = f"Installment count must be an integer between 2 and {maximum}, got {count!r}"
        else:
            message = f"Installment count must be an integer >= 2, got {count!r}"
        super().__init__(message)


class PersistenceFailure(BudgetPlannerError):
    """The backing store failed to read or write records."""


class DataIntegrityWarning(UserWarning):
    """A record references a missing or malformed category/source.

    Emitted through :func:`warnings.warn`; the offending record is skipped or
    routed to the uncategorized group instead of failing the whole operation.
    """
