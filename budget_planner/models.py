"""Record types and derived summaries used across the budget planner.

Categories, sources, transactions and budgets are immutable snapshots of the
rows held by the store. Summaries are derived on demand and never persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Any, Dict, Optional, Tuple

from .periods import parse_date

# Transaction types
EARNING = 'earning'
EXPENSE = 'expense'
TRANSACTION_TYPES = {EARNING, EXPENSE}

# Budget types
INCOME = 'income'
BUDGET_TYPES = {INCOME, EXPENSE}

# Budget modes
UNIQUE = 'unique'
RECURRING = 'recurring'
INSTALLMENT = 'installment'
BUDGET_MODES = {UNIQUE, RECURRING, INSTALLMENT}

# (type, source_id, group_id, subgroup_id)
Fingerprint = Tuple[str, Optional[int], Optional[int], Optional[int]]

# Keys written by older exports that used camelCase field names
_CAMEL_ALIASES = {
    'parentId': 'parent_id',
    'sourceId': 'source_id',
    'groupId': 'group_id',
    'subgroupId': 'subgroup_id',
    'paymentMethod': 'payment_method',
    'installmentNumber': 'installment_number',
    'isFixedCost': 'is_fixed_cost',
}


def _normalize_keys(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    allowed = {f.name for f in fields(cls)}
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        name = _CAMEL_ALIASES.get(key, key)
        if name in allowed:
            normalized[name] = value
    return normalized


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    parent_id: Optional[int] = None

    @property
    def is_group(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(**_normalize_keys(cls, data))


@dataclass(frozen=True)
class Source:
    id: int
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        return cls(**_normalize_keys(cls, data))


@dataclass(frozen=True)
class Transaction:
    """A single earning or expense. ``value`` is always positive; ``type`` carries the sign."""

    type: str
    value: float
    date: date
    id: Optional[int] = None
    source_id: Optional[int] = None
    group_id: Optional[int] = None
    subgroup_id: Optional[int] = None
    payment_method: Optional[str] = None
    installments: Optional[int] = None
    installment_number: Optional[int] = None
    note: Optional[str] = None

    def __post_init__(self):
        if self.type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown transaction type: {self.type!r}")
        if not self.value > 0:
            raise ValueError(f"Transaction value must be positive, got {self.value!r}")

    @property
    def period(self) -> Tuple[int, int]:
        return self.date.year, self.date.month

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        values = _normalize_keys(cls, data)
        values['date'] = parse_date(values['date'])
        values['value'] = float(values['value'])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class Budget:
    """A planned amount for one (year, month) and one income source or expense category."""

    year: int
    month: int
    type: str
    amount: float
    mode: str = UNIQUE
    id: Optional[int] = None
    source_id: Optional[int] = None
    group_id: Optional[int] = None
    subgroup_id: Optional[int] = None
    installments: Optional[int] = None
    installment_number: Optional[int] = None
    is_fixed_cost: bool = False

    def __post_init__(self):
        if self.type not in BUDGET_TYPES:
            raise ValueError(f"Unknown budget type: {self.type!r}")
        if self.mode not in BUDGET_MODES:
            raise ValueError(f"Unknown budget mode: {self.mode!r}")

    @property
    def period(self) -> Tuple[int, int]:
        return self.year, self.month

    @property
    def fingerprint(self) -> Fingerprint:
        """Identity of the budget definition independent of its period."""
        return (self.type, self.source_id, self.group_id, self.subgroup_id)

    @property
    def has_valid_fingerprint(self) -> bool:
        if self.type == EXPENSE:
            return self.group_id is not None
        if self.type == INCOME:
            return self.source_id is not None
        return False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Budget':
        values = _normalize_keys(cls, data)
        # Legacy exports flagged recurring budgets with a boolean instead of a mode
        if 'mode' not in values or values['mode'] is None:
            values['mode'] = RECURRING if data.get('isRecurrent') else UNIQUE
        values['amount'] = float(values['amount'])
        values['is_fixed_cost'] = bool(values.get('is_fixed_cost') or False)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# ---------------------------------------------------------------------------
# Derived summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthSummary:
    total_income: float = 0.0
    total_expense: float = 0.0
    budgeted_income: float = 0.0
    budgeted_expense: float = 0.0
    net_balance: float = 0.0

    @property
    def budgeted_balance(self) -> float:
        return self.budgeted_income - self.budgeted_expense

    def __add__(self, other: 'MonthSummary') -> 'MonthSummary':
        if not isinstance(other, MonthSummary):
            return NotImplemented
        return MonthSummary(
            total_income=self.total_income + other.total_income,
            total_expense=self.total_expense + other.total_expense,
            budgeted_income=self.budgeted_income + other.budgeted_income,
            budgeted_expense=self.budgeted_expense + other.budgeted_expense,
            net_balance=self.net_balance + other.net_balance,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SubgroupSummary:
    subgroup_id: int
    subgroup_name: str
    budgeted: float
    actual: float
    remaining: float
    percentage: float


@dataclass(frozen=True)
class GroupSummary:
    group_id: int
    group_name: str
    budgeted: float
    actual: float
    remaining: float
    percentage: float
    subgroups: Tuple[SubgroupSummary, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyBreakdown:
    """One month of a :class:`YearlySummary`, tagged for the performance heatmap."""

    year: int
    month: int
    month_name: str
    summary: MonthSummary
    is_future: bool
    status: str

    @property
    def income(self) -> float:
        return self.summary.total_income

    @property
    def expense(self) -> float:
        return self.summary.total_expense

    @property
    def income_variance(self) -> float:
        return self.summary.total_income - self.summary.budgeted_income

    @property
    def expense_variance(self) -> float:
        return self.summary.budgeted_expense - self.summary.total_expense


@dataclass(frozen=True)
class YearlySummary:
    year: int
    totals: MonthSummary
    monthly_breakdowns: Tuple[MonthlyBreakdown, ...]

    @property
    def total_income(self) -> float:
        return self.totals.total_income

    @property
    def total_expense(self) -> float:
        return self.totals.total_expense

    @property
    def total_budgeted_income(self) -> float:
        return self.totals.budgeted_income

    @property
    def total_budgeted_expense(self) -> float:
        return self.totals.budgeted_expense

    @property
    def net_balance(self) -> float:
        return self.totals.net_balance

    def to_frame(self):
        """Return the monthly breakdowns as a DataFrame for charting."""
        import pandas as pd

        rows = [
            {
                'Month': b.month,
                'Month Name': b.month_name,
                'Income': b.income,
                'Expense': b.expense,
                'Budgeted Income': b.summary.budgeted_income,
                'Budgeted Expense': b.summary.budgeted_expense,
                'Net Balance': b.summary.net_balance,
                'Income Variance': b.income_variance,
                'Expense Variance': b.expense_variance,
                'Is Future': b.is_future,
                'Status': b.status,
            }
            for b in self.monthly_breakdowns
        ]
        return pd.DataFrame(rows)


@dataclass(frozen=True)
class YearlyGroupSummary:
    group_id: int
    group_name: str
    total_budgeted: float
    total_actual: float
    total_remaining: float
    average_percentage: float
    monthly_data: Tuple[Dict[str, float], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class YTDSummary:
    total_income: float
    total_expense: float
    total_savings: float
    budgeted_income: float
    budgeted_expense: float
    budgeted_savings: float
    savings_percentage: float
    savings_rate: float
    months_completed: int
    average_monthly_income: float
    average_monthly_expense: float
    average_monthly_savings: float


@dataclass(frozen=True)
class TopTransaction:
    """A transaction enriched with the names of its category, subcategory and source."""

    transaction: Transaction
    category_name: Optional[str] = None
    subcategory_name: Optional[str] = None
    source_name: Optional[str] = None

    @property
    def value(self) -> float:
        return self.transaction.value


@dataclass(frozen=True)
class Alert:
    type: str
    message: str
    category: Optional[str] = None
    action: Optional[str] = None


@dataclass(frozen=True)
class TrendResult:
    direction: str
    points: Tuple[float, ...] = ()
    change: float = 0.0
    normalized: Tuple[float, ...] = ()


@dataclass(frozen=True)
class VariancePoint:
    year: int
    month: int
    month_name: str
    budgeted: float
    actual: float
    variance: float
    percentage: float


@dataclass(frozen=True)
class SavingsPoint:
    year: int
    month: int
    month_name: str
    savings: float
    savings_rate: float


@dataclass(frozen=True)
class SubgroupImpact:
    subgroup_id: int
    subgroup_name: str
    spent: float
    budgeted: float
    percentage: float
    is_over_budget: bool
    impact: float
    impact_level: str
    average: float
    trend: str


@dataclass(frozen=True)
class GroupImpact:
    """One group's share of the month's spending and its move against recent months.

    ``impact`` is the percentage of total spending; ``average`` is the mean
    spend over the completed history months.
    """

    group_id: int
    group_name: str
    spent: float
    budgeted: float
    percentage: float
    is_over_budget: bool
    impact: float
    impact_level: str
    average: float
    trend: str
    subgroups: Tuple[SubgroupImpact, ...] = ()

    @property
    def top_subgroup(self) -> Optional[SubgroupImpact]:
        return self.subgroups[0] if self.subgroups else None


@dataclass(frozen=True)
class ImpactReport:
    year: int
    month: int
    total_spent: float
    history_months: int
    groups: Tuple[GroupImpact, ...] = ()
    trending_up: Tuple[GroupImpact, ...] = ()
    trending_down: Tuple[GroupImpact, ...] = ()


@dataclass(frozen=True)
class CategoryTrend:
    group_id: int
    group_name: str
    periods: Tuple[Tuple[int, int], ...]
    values: Tuple[float, ...]
    total: float
    average: float
    change: float
    direction: str
