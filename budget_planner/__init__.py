"""Top-level package for the Budget Planner engine.

The engine tracks income and expense transactions against monthly budgets.
The primary modules are:

* ``recurrence`` – copies recurring budgets forward month by month
* ``installments`` – splits an installment purchase into monthly records
* ``aggregation`` – month, group, yearly, year-to-date and impact summaries
* ``variance`` and ``alerts`` – status tiers, heatmap and alerts
* ``trends`` – trend direction, monthly and per-group trend series
* ``db`` – the SQLite ``BudgetStore`` used by recurrence

To propagate budgets from the command line you can execute:

```bash
python scripts/propagate_budgets.py --year 2024 --month 2
```
"""

from .aggregation import (
    category_impact,
    compute_group_summaries,
    compute_month_summary,
    compute_yearly_group_summaries,
    compute_yearly_summary,
    compute_ytd_summary,
    top_transactions,
)
from .alerts import build_alerts
from .categorization import UNCATEGORIZED_GROUP_ID, CategoryTree
from .db import BudgetStore
from .errors import (
    BudgetPlannerError,
    DataIntegrityWarning,
    InvalidInstallmentCount,
    InvalidPeriod,
    PersistenceFailure,
)
from .installments import MAX_INSTALLMENTS, expand_installments
from .models import (
    Alert,
    Budget,
    Category,
    CategoryTrend,
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
    TrendResult,
    YearlyGroupSummary,
    YearlySummary,
    YTDSummary,
)
from .periods import classify, compare_month, next_month, previous_month
from .recurrence import (
    ensure_recurring_budgets_for_year,
    propagate_budget,
    propagate_installment_budget,
    propagate_range,
    propagate_recurrent_budget,
    propagate_recurring,
)
from .trends import analyze_trend, category_trends, savings_trend, variance_trend
from .variance import budget_status, change_direction, heatmap_status, impact_level, is_significant_change

__all__ = [
    "Alert",
    "Budget",
    "BudgetPlannerError",
    "BudgetStore",
    "Category",
    "CategoryTrend",
    "CategoryTree",
    "DataIntegrityWarning",
    "GroupImpact",
    "GroupSummary",
    "ImpactReport",
    "InvalidInstallmentCount",
    "InvalidPeriod",
    "MAX_INSTALLMENTS",
    "MonthSummary",
    "MonthlyBreakdown",
    "PersistenceFailure",
    "Source",
    "SubgroupImpact",
    "SubgroupSummary",
    "TopTransaction",
    "Transaction",
    "TrendResult",
    "UNCATEGORIZED_GROUP_ID",
    "YTDSummary",
    "YearlyGroupSummary",
    "YearlySummary",
    "analyze_trend",
    "budget_status",
    "build_alerts",
    "category_impact",
    "category_trends",
    "change_direction",
    "classify",
    "compare_month",
    "compute_group_summaries",
    "compute_month_summary",
    "compute_yearly_group_summaries",
    "compute_yearly_summary",
    "compute_ytd_summary",
    "ensure_recurring_budgets_for_year",
    "expand_installments",
    "heatmap_status",
    "impact_level",
    "is_significant_change",
    "next_month",
    "previous_month",
    "propagate_budget",
    "propagate_installment_budget",
    "propagate_range",
    "propagate_recurrent_budget",
    "propagate_recurring",
    "savings_trend",
    "top_transactions",
    "variance_trend",
]
