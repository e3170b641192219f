"""
Aggregation & Grouping Engine

Pure derivations from (records, filter, sort, group-by) to the view the
grid renders. Stages always run in this order:

1. Filter  - by payer; totals reflect only the active filter
2. Sort    - one (column, direction) key over the whole filtered set
3. Group   - partition the sorted rows, keeping their order inside a group
4. Totals  - per group and for the whole filtered set

DESIGN DECISION: Nothing here is cached across record changes. The view is
memoized only by input equality (records are frozen and hashable), so any
change to a record, the filter, the sort or the grouping produces a fresh
view with fresh totals.
"""

import unicodedata
from dataclasses import dataclass
from decimal import Decimal
from functools import cached_property, lru_cache
from typing import Any, Callable, Iterable, Optional, Sequence

from fairshare.core.allocation import (
    Allocation,
    IncomeSummary,
    allocate,
    exact_sum,
    summarize_incomes,
)
from fairshare.core.frequency import FREQUENCY_OPTIONS, monthly_amount
from fairshare.models.records import (
    Category,
    Expense,
    Household,
    Income,
    LinkedAccount,
    PartnerLabel,
)
from fairshare.models.view import GroupByOption, PayerFilter, SortState

UNGROUPED_KEY = "_ungrouped"
UNGROUPED_LABEL = "Uncategorized"
ALL_KEY = "_all"


def collation_key(text: Optional[str]) -> tuple[str, str]:
    """
    Sort key for display strings.

    The primary key ignores accents and case, so "Épicerie" sorts with the
    E's and "apple" before "Banana". The raw text breaks ties so the
    ordering stays total and deterministic.
    """
    text = text or ""
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold(), text


# =============================================================================
# LOOKUPS
# =============================================================================

@dataclass(frozen=True)
class LookupContext:
    """
    Reference entities and partner names used to resolve ids to labels.

    A dangling id (no matching entity) resolves to "" and groups as
    unassigned rather than raising.
    """
    categories: tuple[Category, ...] = ()
    linked_accounts: tuple[LinkedAccount, ...] = ()
    partner_x: str = "Partner X"
    partner_y: str = "Partner Y"

    @classmethod
    def build(
        cls,
        categories: Iterable[Category] = (),
        linked_accounts: Iterable[LinkedAccount] = (),
        household: Optional[Household] = None,
    ) -> "LookupContext":
        names = {}
        if household is not None:
            names = {"partner_x": household.partner_x, "partner_y": household.partner_y}
        return cls(
            categories=tuple(categories),
            linked_accounts=tuple(linked_accounts),
            **names,
        )

    @cached_property
    def _category_names(self) -> dict[str, str]:
        return {c.id: c.name for c in self.categories}

    @cached_property
    def _account_names(self) -> dict[str, str]:
        return {a.id: a.name for a in self.linked_accounts}

    def category_name(self, category_id: Optional[str]) -> str:
        return self._category_names.get(category_id, "") if category_id else ""

    def account_name(self, account_id: Optional[str]) -> str:
        return self._account_names.get(account_id, "") if account_id else ""

    def account_owner(self, account_id: Optional[str]) -> Optional[PartnerLabel]:
        for account in self.linked_accounts:
            if account.id == account_id:
                return account.owner_partner
        return None

    def has_category(self, category_id: Optional[str]) -> bool:
        return category_id in self._category_names

    def has_account(self, account_id: Optional[str]) -> bool:
        return account_id in self._account_names

    def partner_name(self, label: Optional[PartnerLabel]) -> str:
        if label is None:
            return ""
        return self.partner_x if label == PartnerLabel.X else self.partner_y


# =============================================================================
# ROWS & VIEWS
# =============================================================================

@dataclass(frozen=True)
class Totals:
    monthly: Decimal = Decimal("0")
    fair_x: Decimal = Decimal("0")
    fair_y: Decimal = Decimal("0")

    @classmethod
    def of(cls, rows: Iterable["ExpenseRow"]) -> "Totals":
        rows = list(rows)
        return cls(
            monthly=exact_sum(r.monthly for r in rows),
            fair_x=exact_sum(r.fair_x for r in rows),
            fair_y=exact_sum(r.fair_y for r in rows),
        )


@dataclass(frozen=True)
class ExpenseRow:
    """An expense with its live computed figures."""
    expense: Expense
    allocation: Allocation

    @property
    def id(self) -> str:
        return self.expense.id

    @property
    def monthly(self) -> Decimal:
        return self.allocation.monthly

    @property
    def fair_x(self) -> Decimal:
        return self.allocation.fair_x

    @property
    def fair_y(self) -> Decimal:
        return self.allocation.fair_y


@dataclass(frozen=True)
class ExpenseGroup:
    key: str
    label: str
    rows: tuple[ExpenseRow, ...]
    totals: Totals


@dataclass(frozen=True)
class ExpenseView:
    """
    Everything the expense grid renders.

    `rows` is the display order: the sorted rows, or the rows of each group
    in group order when grouped. Grid row indexes refer to this order.
    """
    rows: tuple[ExpenseRow, ...]
    groups: Optional[tuple[ExpenseGroup, ...]]
    totals: Totals
    ratio_x: Decimal

    @property
    def row_ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.rows)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class IncomeRow:
    income: Income
    monthly: Decimal

    @property
    def id(self) -> str:
        return self.income.id


@dataclass(frozen=True)
class IncomeView:
    rows: tuple[IncomeRow, ...]
    summary: IncomeSummary

    @property
    def row_ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.rows)

    def __len__(self) -> int:
        return len(self.rows)


# =============================================================================
# STAGE 1 - FILTER
# =============================================================================

def filter_expenses(
    expenses: Iterable[Expense],
    payer_filter: PayerFilter = PayerFilter.ALL,
) -> list[Expense]:
    """Keep only expenses paid by the chosen partner (or all)."""
    if payer_filter == PayerFilter.ALL:
        return list(expenses)
    label = PartnerLabel(payer_filter.value)
    return [e for e in expenses if e.payer == label]


# =============================================================================
# STAGE 2 - SORT
# =============================================================================

_FREQUENCY_RANK = {f: i for i, f in enumerate(FREQUENCY_OPTIONS)}

ExpenseSortKey = Callable[[ExpenseRow, LookupContext], Any]

EXPENSE_SORT_KEYS: dict[str, ExpenseSortKey] = {
    "name": lambda r, ctx: collation_key(r.expense.name),
    "category": lambda r, ctx: collation_key(ctx.category_name(r.expense.category_id)),
    "amount": lambda r, ctx: r.expense.amount,
    "estimate": lambda r, ctx: r.expense.is_estimate,
    "frequency": lambda r, ctx: _FREQUENCY_RANK.get(r.expense.frequency_type, len(_FREQUENCY_RANK)),
    "monthly": lambda r, ctx: r.monthly,
    "payment_method": lambda r, ctx: collation_key(ctx.account_name(r.expense.linked_account_id)),
    "payer": lambda r, ctx: r.expense.payer.value if r.expense.payer else "",
    "benefit_x": lambda r, ctx: r.expense.benefit_x,
    "benefit_y": lambda r, ctx: r.expense.benefit_y,
    "fair_x": lambda r, ctx: r.fair_x,
    "fair_y": lambda r, ctx: r.fair_y,
}

IncomeSortKey = Callable[[IncomeRow, LookupContext], Any]

INCOME_SORT_KEYS: dict[str, IncomeSortKey] = {
    "name": lambda r, ctx: collation_key(r.income.name),
    "partner": lambda r, ctx: r.income.partner_label.value,
    "amount": lambda r, ctx: r.income.amount,
    "frequency": lambda r, ctx: _FREQUENCY_RANK.get(r.income.frequency_type, len(_FREQUENCY_RANK)),
    "monthly": lambda r, ctx: r.monthly,
}


def sort_rows(
    rows: Sequence[Any],
    sort: Optional[SortState],
    context: LookupContext,
    keys: dict[str, Callable[[Any, LookupContext], Any]] = EXPENSE_SORT_KEYS,
) -> list[Any]:
    """
    Stable sort by a single column.

    Reference columns compare resolved names, computed columns compare live
    values. An unknown or unsortable column leaves the order unchanged.
    """
    if sort is None or sort.column not in keys:
        return list(rows)
    key = keys[sort.column]
    return sorted(rows, key=lambda row: key(row, context), reverse=sort.descending)


# =============================================================================
# STAGE 3 - GROUP
# =============================================================================

def group_key(expense: Expense, group_by: GroupByOption, context: LookupContext) -> str:
    """Group an expense falls into; missing or dangling references are ungrouped."""
    if group_by == GroupByOption.CATEGORY:
        return expense.category_id if context.has_category(expense.category_id) else UNGROUPED_KEY
    if group_by == GroupByOption.ESTIMATED:
        return "Estimated" if expense.is_estimate else "Actual"
    if group_by == GroupByOption.PAYER:
        return expense.payer.value if expense.payer else UNGROUPED_KEY
    if group_by == GroupByOption.PAYMENT_METHOD:
        return expense.linked_account_id if context.has_account(expense.linked_account_id) else UNGROUPED_KEY
    return ALL_KEY


def group_label(key: str, group_by: GroupByOption, context: LookupContext) -> str:
    if key == UNGROUPED_KEY:
        return UNGROUPED_LABEL
    if group_by == GroupByOption.CATEGORY:
        return context.category_name(key) or UNGROUPED_LABEL
    if group_by == GroupByOption.ESTIMATED:
        return key
    if group_by == GroupByOption.PAYER:
        return context.partner_name(PartnerLabel(key))
    if group_by == GroupByOption.PAYMENT_METHOD:
        return context.account_name(key) or UNGROUPED_LABEL
    return ""


def group_rows(
    rows: Sequence[ExpenseRow],
    group_by: GroupByOption,
    context: LookupContext,
) -> Optional[tuple[ExpenseGroup, ...]]:
    """
    Partition sorted rows into labelled groups.

    Groups are ordered by label; the ungrouped bucket always comes last.
    Returns None when not grouping.
    """
    if group_by == GroupByOption.NONE:
        return None

    buckets: dict[str, list[ExpenseRow]] = {}
    for row in rows:
        buckets.setdefault(group_key(row.expense, group_by, context), []).append(row)

    def order(key: str) -> tuple:
        if key == UNGROUPED_KEY:
            return (1, ("", ""))
        return (0, collation_key(group_label(key, group_by, context)))

    return tuple(
        ExpenseGroup(
            key=key,
            label=group_label(key, group_by, context),
            rows=tuple(buckets[key]),
            totals=Totals.of(buckets[key]),
        )
        for key in sorted(buckets, key=order)
    )


# =============================================================================
# DERIVED VIEWS
# =============================================================================

@lru_cache(maxsize=32)
def _expense_view(
    expenses: tuple[Expense, ...],
    incomes: tuple[Income, ...],
    context: LookupContext,
    payer_filter: PayerFilter,
    sort: Optional[SortState],
    group_by: GroupByOption,
) -> ExpenseView:
    ratio_x = summarize_incomes(incomes).ratio_x
    filtered = filter_expenses(expenses, payer_filter)
    rows = [ExpenseRow(expense=e, allocation=allocate(e, ratio_x)) for e in filtered]
    rows = sort_rows(rows, sort, context, EXPENSE_SORT_KEYS)
    groups = group_rows(rows, group_by, context)
    display = tuple(row for g in groups for row in g.rows) if groups is not None else tuple(rows)
    return ExpenseView(
        rows=display,
        groups=groups,
        totals=Totals.of(rows),
        ratio_x=ratio_x,
    )


def derive_expense_view(
    expenses: Iterable[Expense],
    incomes: Iterable[Income],
    context: Optional[LookupContext] = None,
    payer_filter: PayerFilter = PayerFilter.ALL,
    sort: Optional[SortState] = None,
    group_by: GroupByOption = GroupByOption.NONE,
) -> ExpenseView:
    """Filter, sort, group and total the expense set in one pure step."""
    return _expense_view(
        tuple(expenses),
        tuple(incomes),
        context or LookupContext(),
        PayerFilter(payer_filter),
        sort,
        GroupByOption(group_by),
    )


@lru_cache(maxsize=32)
def _income_view(
    incomes: tuple[Income, ...],
    context: LookupContext,
    sort: Optional[SortState],
) -> IncomeView:
    rows = [IncomeRow(income=i, monthly=monthly_amount(i)) for i in incomes]
    rows = sort_rows(rows, sort, context, INCOME_SORT_KEYS)
    return IncomeView(rows=tuple(rows), summary=summarize_incomes(incomes))


def derive_income_view(
    incomes: Iterable[Income],
    context: Optional[LookupContext] = None,
    sort: Optional[SortState] = None,
) -> IncomeView:
    """Sorted income rows plus per-partner totals and the income ratio."""
    return _income_view(tuple(incomes), context or LookupContext(), sort)
