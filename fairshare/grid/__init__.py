"""Spreadsheet-style editing: column table, state machine and controller."""

from fairshare.grid.columns import (
    EXPENSE_COLUMNS,
    INCOME_COLUMNS,
    NONE_CHOICE,
    ColumnSpec,
    EditBehavior,
    column_index,
    sortable_column_ids,
)
from fairshare.grid.controller import GridController
from fairshare.grid.state import (
    Blur,
    Commit,
    Editing,
    GridCoordinate,
    GridSnapshot,
    GridState,
    Idle,
    Input,
    Key,
    KeyPress,
    PointerDown,
    RowAdded,
    RowsChanged,
    Transition,
    reduce,
)
from fairshare.grid.updates import translate_edit

__all__ = [
    "EXPENSE_COLUMNS",
    "INCOME_COLUMNS",
    "NONE_CHOICE",
    "ColumnSpec",
    "EditBehavior",
    "column_index",
    "sortable_column_ids",
    "GridController",
    "Blur",
    "Commit",
    "Editing",
    "GridCoordinate",
    "GridSnapshot",
    "GridState",
    "Idle",
    "Input",
    "Key",
    "KeyPress",
    "PointerDown",
    "RowAdded",
    "RowsChanged",
    "Transition",
    "reduce",
    "translate_edit",
]
