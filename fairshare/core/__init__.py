"""
Computation core: frequency normalization, fair-split allocation and the
filter/sort/group/total derivation. Everything here is pure and total.
"""

from fairshare.core.allocation import (
    Allocation,
    IncomeSummary,
    allocate,
    exact_difference,
    exact_sum,
    fair_share_x,
    income_ratio_x,
    summarize_incomes,
)
from fairshare.core.formatting import (
    format_currency,
    format_frequency,
    format_percent,
    round_display,
)
from fairshare.core.frequency import (
    DAYS_PER_MONTH,
    FREQUENCY_LABELS,
    FREQUENCY_OPTIONS,
    WEEKS_PER_MONTH,
    monthly_amount,
    needs_param,
    to_decimal,
    to_monthly,
)
from fairshare.core.grouping import (
    UNGROUPED_KEY,
    UNGROUPED_LABEL,
    ExpenseGroup,
    ExpenseRow,
    ExpenseView,
    IncomeRow,
    IncomeView,
    LookupContext,
    Totals,
    collation_key,
    derive_expense_view,
    derive_income_view,
    filter_expenses,
    group_rows,
    sort_rows,
)

__all__ = [
    "Allocation",
    "IncomeSummary",
    "allocate",
    "exact_difference",
    "exact_sum",
    "fair_share_x",
    "income_ratio_x",
    "summarize_incomes",
    "format_currency",
    "format_frequency",
    "format_percent",
    "round_display",
    "DAYS_PER_MONTH",
    "FREQUENCY_LABELS",
    "FREQUENCY_OPTIONS",
    "WEEKS_PER_MONTH",
    "monthly_amount",
    "needs_param",
    "to_decimal",
    "to_monthly",
    "UNGROUPED_KEY",
    "UNGROUPED_LABEL",
    "ExpenseGroup",
    "ExpenseRow",
    "ExpenseView",
    "IncomeRow",
    "IncomeView",
    "LookupContext",
    "Totals",
    "collation_key",
    "derive_expense_view",
    "derive_income_view",
    "filter_expenses",
    "group_rows",
    "sort_rows",
]
