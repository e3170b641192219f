"""
Persisted grid preferences: payer filter, grouping and sort per grid.

Read once when constructed, written through to the store on every change.
Listeners are told after every change, so a grid can re-derive its rows
before the next coordinate is resolved against them.
A stored value that no longer parses (renamed column, unknown option)
falls back to its default instead of failing.
"""

from enum import Enum
from typing import Callable, Optional, TypeVar

import structlog

from fairshare.audit import AuditLogger
from fairshare.errors import PersistenceError
from fairshare.grid.columns import EXPENSE_COLUMNS, INCOME_COLUMNS, sortable_column_ids
from fairshare.models.audit import AuditEventBuilder
from fairshare.models.view import GroupByOption, PayerFilter, SortDirection, SortState
from fairshare.services.storage import PreferenceStore

logger = structlog.get_logger(__name__)

EXPENSES_FILTER_PAYER = "expenses_filterPayer"
EXPENSES_GROUP_BY = "expenses_groupBy"
EXPENSES_SORT_COL = "expenses_sortCol"
EXPENSES_SORT_DIR = "expenses_sortDir"
INCOMES_SORT_COL = "incomes_sortCol"
INCOMES_SORT_DIR = "incomes_sortDir"

DEFAULT_SORT = SortState(column="name", direction=SortDirection.ASC)

EXPENSE_SORTABLE = sortable_column_ids(EXPENSE_COLUMNS)
INCOME_SORTABLE = sortable_column_ids(INCOME_COLUMNS)

E = TypeVar("E", bound=Enum)


def toggle_sort(current: SortState, column: str, sortable: frozenset[str]) -> SortState:
    """Header click: same column flips direction, a new column starts ascending."""
    if column not in sortable:
        return current
    if column == current.column:
        return SortState(column=column, direction=current.direction.flipped)
    return SortState(column=column, direction=SortDirection.ASC)


class GridPreferences:
    """
    View choices for the expense and income grids.

    Args:
        store: Durable key-value store
        audit: Receives a preference_changed event per change
    """

    def __init__(self, store: PreferenceStore, audit: Optional[AuditLogger] = None):
        self._store = store
        self._audit = audit
        self._listeners: list[Callable[[], None]] = []

        self.payer_filter = self._read_enum(EXPENSES_FILTER_PAYER, PayerFilter, PayerFilter.ALL)
        self.group_by = self._read_enum(EXPENSES_GROUP_BY, GroupByOption, GroupByOption.NONE)
        self.expense_sort = self._read_sort(EXPENSES_SORT_COL, EXPENSES_SORT_DIR, EXPENSE_SORTABLE)
        self.income_sort = self._read_sort(INCOMES_SORT_COL, INCOMES_SORT_DIR, INCOME_SORTABLE)

    def _read_enum(self, key: str, enum: type[E], default: E) -> E:
        raw = self._store.get(key)
        if raw is None:
            return default
        try:
            return enum(raw)
        except ValueError:
            logger.info("preference_ignored", key=key, value=raw)
            return default

    def _read_sort(self, col_key: str, dir_key: str, sortable: frozenset[str]) -> SortState:
        column = self._store.get(col_key)
        if column not in sortable:
            column = DEFAULT_SORT.column
        direction = self._read_enum(dir_key, SortDirection, DEFAULT_SORT.direction)
        return SortState(column=column, direction=direction)

    def _write(self, key: str, value: str) -> None:
        # The in-memory choice stands even if it can't be saved
        try:
            self._store.set(key, value)
        except PersistenceError as e:
            logger.warning("preference_save_failed", key=key, error=e.message)
            return
        if self._audit is not None:
            self._audit.log_nowait(AuditEventBuilder.preference_changed(key, value))

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Call `callback` after every change to the filter, grouping or a sort."""
        self._listeners.append(callback)

    def _changed(self) -> None:
        for callback in self._listeners:
            callback()

    def set_payer_filter(self, value: PayerFilter) -> None:
        self.payer_filter = PayerFilter(value)
        self._write(EXPENSES_FILTER_PAYER, self.payer_filter.value)
        self._changed()

    def set_group_by(self, value: GroupByOption) -> None:
        self.group_by = GroupByOption(value)
        self._write(EXPENSES_GROUP_BY, self.group_by.value)
        self._changed()

    def set_expense_sort(self, sort: SortState) -> None:
        if sort.column not in EXPENSE_SORTABLE:
            return
        self.expense_sort = sort
        self._write(EXPENSES_SORT_COL, sort.column)
        self._write(EXPENSES_SORT_DIR, sort.direction.value)
        self._changed()

    def set_income_sort(self, sort: SortState) -> None:
        if sort.column not in INCOME_SORTABLE:
            return
        self.income_sort = sort
        self._write(INCOMES_SORT_COL, sort.column)
        self._write(INCOMES_SORT_DIR, sort.direction.value)
        self._changed()

    def toggle_expense_sort(self, column: str) -> SortState:
        sort = toggle_sort(self.expense_sort, column, EXPENSE_SORTABLE)
        if sort != self.expense_sort:
            self.set_expense_sort(sort)
        return self.expense_sort

    def toggle_income_sort(self, column: str) -> SortState:
        sort = toggle_sort(self.income_sort, column, INCOME_SORTABLE)
        if sort != self.income_sort:
            self.set_income_sort(sort)
        return self.income_sort
