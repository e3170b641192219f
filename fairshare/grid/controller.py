"""
Grid Controller

The event-loop side of the grid. Owns the current state and snapshot,
feeds events through the pure reducer and carries out the commits it
returns:

1. Translate the cell text into a partial record update
   (ValidationError -> notice, nothing written)
2. Show the typed value at once through a local overlay
3. Issue the write as a fire-and-forget task, retrying transient
   storage errors

DESIGN DECISION: Writes are never cancelled and, unless configured, never
queued behind each other. Two quick edits to one cell may resolve in any
order; the overlay shows the last value typed and the error state of a
cell follows the last write *issued* for it, whatever order they finish in.
"""

import asyncio
from collections import Counter
from itertools import count
from typing import Any, Awaitable, Callable, Optional

import structlog

from fairshare.audit import AuditLogger
from fairshare.config import PersistenceSettings, get_settings
from fairshare.errors import PersistenceError, ValidationError
from fairshare.grid.state import (
    Commit,
    GridCoordinate,
    GridEvent,
    GridSnapshot,
    GridState,
    Idle,
    PointerDown,
    RowAdded,
    RowsChanged,
    reduce,
)
from fairshare.models.view import Notice
from fairshare.services.retry import call_with_retry

logger = structlog.get_logger(__name__)

CellKey = tuple[str, str]
Translate = Callable[[str, str, str], dict[str, Any]]
Write = Callable[[str, dict[str, Any]], Awaitable[None]]
Apply = Callable[[str, dict[str, Any]], None]


class GridController:
    """
    Interactive state of one grid (expenses or incomes).

    Must be driven from inside a running event loop: commits schedule
    tasks on it.

    Args:
        snapshot: What the grid currently shows
        translate: (row_id, field, text) -> partial update; raises
            ValidationError to refuse the edit
        write: Async collaborator call for a partial update
        apply_local: Optional optimistic apply to the caller's own records
        entity_type: Record kind, for notices and the audit trail
        audit: Audit logger for failed writes and refused edits
        settings: Retry and write-ordering configuration
    """

    def __init__(
        self,
        snapshot: GridSnapshot,
        translate: Translate,
        write: Write,
        apply_local: Optional[Apply] = None,
        entity_type: str = "expense",
        audit: Optional[AuditLogger] = None,
        settings: Optional[PersistenceSettings] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self._base = snapshot
        self._view: Optional[GridSnapshot] = None
        self._translate = translate
        self._write = write
        self._apply_local = apply_local
        self._entity_type = entity_type
        self._audit = audit or AuditLogger()
        self._settings = settings or get_settings().persistence
        self._on_notice = on_notice

        self.state: GridState = Idle()
        self.notices: list[Notice] = []

        # (row_id, column_id) -> (typed text, committed text it replaced)
        self._overlay: dict[CellKey, tuple[str, str]] = {}
        self._errors: dict[CellKey, str] = {}
        self._issued: dict[CellKey, int] = {}
        self._sequence = count(1)
        self._tasks: set[asyncio.Task] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> GridSnapshot:
        """The committed snapshot with optimistic values laid over it."""
        if self._view is None:
            self._view = self._with_overlay(self._base)
        return self._view

    def _with_overlay(self, base: GridSnapshot) -> GridSnapshot:
        if not self._overlay:
            return base
        values = []
        for row_id, row in zip(base.row_ids, base.values):
            cells = list(row)
            for index, column in enumerate(base.columns):
                pending = self._overlay.get((row_id, column.id))
                if pending is not None:
                    cells[index] = pending[0]
            values.append(tuple(cells))
        return GridSnapshot(
            row_ids=base.row_ids,
            columns=base.columns,
            values=tuple(values),
            editable=base.editable,
        )

    def _base_value(self, key: CellKey) -> Optional[str]:
        row = self._base.row_index(key[0])
        if row is None:
            return None
        for index, column in enumerate(self._base.columns):
            if column.id == key[1]:
                return self._base.values[row][index]
        return None

    def reset(self, snapshot: GridSnapshot) -> None:
        """Start over on a freshly loaded snapshot: no focus, no overlay."""
        self._base = snapshot
        self._overlay.clear()
        self._view = None
        self.state = Idle()

    def forget_row(self, row_id: str) -> None:
        """Drop the typed values and error state of a deleted record."""
        for cells in (self._overlay, self._errors, self._issued):
            for key in [k for k in cells if k[0] == row_id]:
                del cells[key]
        self._view = None

    def refresh(self, snapshot: GridSnapshot) -> GridState:
        """
        Replace the snapshot after the records or the view changed.

        One new row id (and none gone) means a row was just added; any
        other change to the row set means the grid changed shape.
        """
        old_ids = self._base.row_ids
        self._base = snapshot

        # Overlay entries are stale once the committed value moved on
        for key, (_, base_value) in list(self._overlay.items()):
            if self._base_value(key) != base_value:
                del self._overlay[key]
        self._view = None

        new_ids = snapshot.row_ids
        if new_ids == old_ids:
            return self.state

        added = set(new_ids) - set(old_ids)
        if len(added) == 1 and set(old_ids) <= set(new_ids):
            return self.dispatch(RowAdded(snapshot.row_index(added.pop())))
        return self.dispatch(RowsChanged())

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def dispatch(self, event: GridEvent) -> GridState:
        """Apply one event and issue whatever commits it produced."""
        transition = reduce(self.state, event, self.snapshot)
        self.state = transition.state
        for commit in transition.commits:
            self._commit(commit)
        return self.state

    def choose(self, cell: GridCoordinate, value: str) -> bool:
        """
        Pick a value in a select or toggle cell.

        These cells commit on choice rather than through an inline editor.
        Returns True if a write was issued.
        """
        snapshot = self.snapshot
        if not snapshot.is_editable(cell) or snapshot.columns[cell.column].edit.is_inline:
            return False
        self.dispatch(PointerDown(cell))

        snapshot = self.snapshot
        original = snapshot.value_at(cell)
        if value == original:
            return False
        column = snapshot.columns[cell.column]
        self._commit(Commit(
            row_id=snapshot.row_ids[cell.row],
            column_id=column.id,
            field=column.field,
            value=value,
            original=original,
        ))
        return True

    # -------------------------------------------------------------------------
    # Cell state
    # -------------------------------------------------------------------------

    def display_value(self, cell: GridCoordinate) -> Optional[str]:
        snapshot = self.snapshot
        return snapshot.value_at(cell) if snapshot.contains(cell) else None

    def cell_error(self, cell: GridCoordinate) -> Optional[str]:
        snapshot = self.snapshot
        if not snapshot.contains(cell):
            return None
        return self._errors.get((snapshot.row_ids[cell.row], snapshot.columns[cell.column].id))

    @property
    def pending_writes(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every write issued so far (and any they trigger)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -------------------------------------------------------------------------
    # Commit pipeline
    # -------------------------------------------------------------------------

    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _commit(self, commit: Commit) -> None:
        key = (commit.row_id, commit.column_id)
        try:
            updates = self._translate(commit.row_id, commit.field, commit.value)
        except ValidationError as e:
            logger.info("edit_refused", row_id=commit.row_id, field=commit.field, reason=e.message)
            self._notify(Notice.error("Invalid value", e.message))
            self._spawn(self._audit.log_validation_failed(
                self._entity_type,
                commit.row_id,
                [{"field": e.field or commit.field, "message": e.message}],
            ))
            return

        if not updates:
            # Different text, same value (e.g. "12" and "12.0")
            self._spawn(self._audit.log_write_skipped(self._entity_type, commit.row_id, commit.field))
            return

        base_value = self._base_value(key)
        if base_value is not None:
            self._overlay[key] = (commit.value, base_value)
            self._view = None
        if self._apply_local is not None:
            self._apply_local(commit.row_id, updates)

        sequence = next(self._sequence)
        self._issued[key] = sequence
        logger.debug("cell_committed", row_id=commit.row_id, field=commit.field, sequence=sequence)
        self._spawn(self._persist(key, sequence, commit.row_id, updates))

    async def _send(self, row_id: str, updates: dict[str, Any]) -> None:
        await call_with_retry(self._write, row_id, updates, settings=self._settings)

    async def _send_in_order(self, row_id: str, updates: dict[str, Any]) -> None:
        # A lock lives only while some write to its record is queued or running
        lock = self._locks.setdefault(row_id, asyncio.Lock())
        self._lock_users[row_id] += 1
        try:
            async with lock:
                await self._send(row_id, updates)
        finally:
            self._lock_users[row_id] -= 1
            if not self._lock_users[row_id]:
                del self._lock_users[row_id]
                del self._locks[row_id]

    async def _persist(
        self,
        key: CellKey,
        sequence: int,
        row_id: str,
        updates: dict[str, Any],
    ) -> None:
        error: Optional[str] = None
        try:
            if self._settings.serialize_record_writes:
                await self._send_in_order(row_id, updates)
            else:
                await self._send(row_id, updates)
        except PersistenceError as e:
            error = e.message
            logger.warning("write_failed", row_id=row_id, sequence=sequence, error=error)
            await self._audit.log_write_failed(self._entity_type, row_id, "update", error)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.exception("write_crashed", row_id=row_id, sequence=sequence)
            await self._audit.log_error(type(e).__name__, error, {"row_id": row_id})
        else:
            await self._audit.log_record_updated(self._entity_type, row_id, updates)

        if error is not None:
            self._notify(Notice.error("Error saving", error))

        # Only the most recently issued write decides the cell's error state
        if self._issued.get(key) == sequence:
            del self._issued[key]
            if error is None:
                self._errors.pop(key, None)
            else:
                self._errors[key] = error
