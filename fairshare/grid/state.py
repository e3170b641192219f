"""
Grid Interaction State Machine

An explicit, framework-free model of focus and inline editing over a
row x column matrix. The grid is always in exactly one of two states:

    Idle(focus?)                         nothing being typed
    Editing(focus, pending, original)    an inline editor is open

`reduce(state, event, snapshot)` is a pure function returning the next
state plus the commits the caller must carry out. It performs no I/O, so
every transition can be tested without rendering anything.

Transitions:
- PointerDown(cell)   -> Idle(cell), or straight to Editing on inline cells.
                         An open editor elsewhere is committed first.
- Arrow keys (Idle)   -> move one row/column, clamped, no wraparound
- Enter (Idle)        -> start editing an inline cell
- Input(text)         -> replace the pending value
- Enter/Tab (Editing) -> commit, move down / right, Idle
- Escape (Editing)    -> discard, Idle at the same cell
- Blur (Editing)      -> commit, Idle at the same cell
- RowAdded(row)       -> Editing on the new row's first editable column
- RowsChanged         -> Idle with no focus (row set changed shape)

A commit is only emitted when the pending text differs from the last
committed text, so tabbing through a row without typing writes nothing.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Union

from fairshare.core.grouping import LookupContext
from fairshare.grid.columns import ColumnSpec


@dataclass(frozen=True, order=True)
class GridCoordinate:
    row: int
    column: int


# =============================================================================
# SNAPSHOT - what the grid currently shows
# =============================================================================

@dataclass(frozen=True)
class GridSnapshot:
    """
    Immutable picture of the rendered grid (post filter, sort and group).

    values[r][c] is the committed value of a cell as the string an editor
    starts from; editable[r][c] says whether the cell accepts edits on this
    particular row.
    """
    row_ids: tuple[str, ...]
    columns: tuple[ColumnSpec, ...]
    values: tuple[tuple[str, ...], ...]
    editable: tuple[tuple[bool, ...], ...]

    @classmethod
    def build(
        cls,
        rows: Sequence[Any],
        columns: Sequence[ColumnSpec],
        context: Optional[LookupContext] = None,
    ) -> "GridSnapshot":
        """Snapshot of view rows (ExpenseRow / IncomeRow) under a column table."""
        context = context or LookupContext()
        columns = tuple(columns)
        return cls(
            row_ids=tuple(row.id for row in rows),
            columns=columns,
            values=tuple(
                tuple(column.accessor(row, context) for column in columns)
                for row in rows
            ),
            editable=tuple(
                tuple(column.is_editable(row) for column in columns)
                for row in rows
            ),
        )

    @classmethod
    def empty(cls, columns: Sequence[ColumnSpec] = ()) -> "GridSnapshot":
        return cls(row_ids=(), columns=tuple(columns), values=(), editable=())

    @property
    def row_count(self) -> int:
        return len(self.row_ids)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def contains(self, cell: Optional[GridCoordinate]) -> bool:
        return (
            cell is not None
            and 0 <= cell.row < self.row_count
            and 0 <= cell.column < self.column_count
        )

    def clamp(self, row: int, column: int) -> GridCoordinate:
        return GridCoordinate(
            row=min(max(row, 0), self.row_count - 1),
            column=min(max(column, 0), self.column_count - 1),
        )

    def value_at(self, cell: GridCoordinate) -> str:
        return self.values[cell.row][cell.column]

    def is_editable(self, cell: GridCoordinate) -> bool:
        return self.contains(cell) and self.editable[cell.row][cell.column]

    def is_inline_editable(self, cell: GridCoordinate) -> bool:
        return self.is_editable(cell) and self.columns[cell.column].edit.is_inline

    def row_index(self, row_id: str) -> Optional[int]:
        try:
            return self.row_ids.index(row_id)
        except ValueError:
            return None

    def first_inline_column(self, row: int) -> Optional[int]:
        for column in range(self.column_count):
            if self.is_inline_editable(GridCoordinate(row, column)):
                return column
        return None


# =============================================================================
# STATES
# =============================================================================

@dataclass(frozen=True)
class Idle:
    focus: Optional[GridCoordinate] = None


@dataclass(frozen=True)
class Editing:
    """
    An open inline editor.

    The row id and column id are captured on entry so the commit reaches
    the right record even if rows move underneath the editor.
    """
    focus: GridCoordinate
    row_id: str
    column_id: str
    pending: str
    original: str


GridState = Union[Idle, Editing]


# =============================================================================
# EVENTS
# =============================================================================

class Key(str, Enum):
    UP = "ArrowUp"
    DOWN = "ArrowDown"
    LEFT = "ArrowLeft"
    RIGHT = "ArrowRight"
    ENTER = "Enter"
    TAB = "Tab"
    ESCAPE = "Escape"


_ARROWS = {
    Key.UP: (-1, 0),
    Key.DOWN: (1, 0),
    Key.LEFT: (0, -1),
    Key.RIGHT: (0, 1),
}


@dataclass(frozen=True)
class PointerDown:
    cell: GridCoordinate


@dataclass(frozen=True)
class KeyPress:
    key: Key
    shift: bool = False


@dataclass(frozen=True)
class Input:
    text: str


@dataclass(frozen=True)
class Blur:
    pass


@dataclass(frozen=True)
class RowAdded:
    row: int


@dataclass(frozen=True)
class RowsChanged:
    pass


GridEvent = Union[PointerDown, KeyPress, Input, Blur, RowAdded, RowsChanged]


# =============================================================================
# EFFECTS
# =============================================================================

@dataclass(frozen=True)
class Commit:
    """A changed cell value the caller should write back."""
    row_id: str
    column_id: str
    field: str
    value: str
    original: str


@dataclass(frozen=True)
class Transition:
    state: GridState
    commits: tuple[Commit, ...] = ()


# =============================================================================
# REDUCER
# =============================================================================

def begin_edit(
    cell: GridCoordinate,
    snapshot: GridSnapshot,
    pending: Optional[str] = None,
) -> Editing:
    """Open an editor on a cell, starting from its committed value."""
    original = snapshot.value_at(cell)
    return Editing(
        focus=cell,
        row_id=snapshot.row_ids[cell.row],
        column_id=snapshot.columns[cell.column].id,
        pending=original if pending is None else pending,
        original=original,
    )


def _commits_for(state: Editing, snapshot: GridSnapshot) -> tuple[Commit, ...]:
    # A row that vanished mid-edit takes its pending text with it
    if state.pending == state.original or state.row_id not in snapshot.row_ids:
        return ()
    field = None
    for column in snapshot.columns:
        if column.id == state.column_id:
            field = column.field
            break
    if field is None:
        return ()
    return (Commit(
        row_id=state.row_id,
        column_id=state.column_id,
        field=field,
        value=state.pending,
        original=state.original,
    ),)


def _focus(state: GridState, snapshot: GridSnapshot) -> Optional[GridCoordinate]:
    return state.focus if snapshot.contains(state.focus) else None


def reduce(state: GridState, event: GridEvent, snapshot: GridSnapshot) -> Transition:
    """
    Apply one event to the grid state.

    Events that don't apply in the current state (or point outside the
    grid) leave the state unchanged.
    """
    if isinstance(event, RowsChanged):
        commits = _commits_for(state, snapshot) if isinstance(state, Editing) else ()
        return Transition(Idle(), commits)

    if isinstance(event, RowAdded):
        commits = _commits_for(state, snapshot) if isinstance(state, Editing) else ()
        if not 0 <= event.row < snapshot.row_count:
            return Transition(Idle(), commits)
        column = snapshot.first_inline_column(event.row)
        if column is None:
            return Transition(Idle(snapshot.clamp(event.row, 0)), commits)
        return Transition(begin_edit(GridCoordinate(event.row, column), snapshot), commits)

    if isinstance(event, PointerDown):
        if not snapshot.contains(event.cell):
            return Transition(state)
        if isinstance(state, Editing):
            if state.focus == event.cell:
                return Transition(state)
            commits = _commits_for(state, snapshot)
        else:
            commits = ()
        if snapshot.is_inline_editable(event.cell):
            return Transition(begin_edit(event.cell, snapshot), commits)
        return Transition(Idle(event.cell), commits)

    if isinstance(state, Editing):
        return _reduce_editing(state, event, snapshot)
    return _reduce_idle(state, event, snapshot)


def _reduce_idle(state: Idle, event: GridEvent, snapshot: GridSnapshot) -> Transition:
    focus = _focus(state, snapshot)
    if focus is None or not isinstance(event, KeyPress):
        return Transition(state)

    if event.key in _ARROWS:
        d_row, d_column = _ARROWS[event.key]
        return Transition(Idle(snapshot.clamp(focus.row + d_row, focus.column + d_column)))

    if event.key == Key.ENTER and snapshot.is_inline_editable(focus):
        return Transition(begin_edit(focus, snapshot))

    return Transition(state)


def _reduce_editing(state: Editing, event: GridEvent, snapshot: GridSnapshot) -> Transition:
    if isinstance(event, Input):
        return Transition(Editing(
            focus=state.focus,
            row_id=state.row_id,
            column_id=state.column_id,
            pending=event.text,
            original=state.original,
        ))

    if isinstance(event, Blur):
        return Transition(Idle(_focus(state, snapshot)), _commits_for(state, snapshot))

    if not isinstance(event, KeyPress):
        return Transition(state)

    if event.key == Key.ESCAPE:
        return Transition(Idle(_focus(state, snapshot)))

    if event.key in (Key.ENTER, Key.TAB):
        commits = _commits_for(state, snapshot)
        focus = _focus(state, snapshot)
        if focus is None:
            return Transition(Idle(), commits)
        if event.key == Key.ENTER:
            target = snapshot.clamp(focus.row + 1, focus.column)
        else:
            step = -1 if event.shift else 1
            target = snapshot.clamp(focus.row, focus.column + step)
        return Transition(Idle(target), commits)

    # Arrow keys move the caret inside the editor, not the focus
    return Transition(state)
