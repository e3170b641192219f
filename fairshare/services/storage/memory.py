"""
In-memory collaborators.

Used by the tests and by anyone embedding the core without a backend.
Record stores can be scripted to fail or stall so the failure paths of
the write pipeline can be exercised deterministically.
"""

import asyncio
import json
from collections import deque
from itertools import count
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from fairshare.errors import NotFoundError, PersistenceError
from fairshare.models.audit import AuditEvent
from fairshare.services.storage.interface import (
    AuditStorageInterface,
    Clipboard,
    PreferenceStore,
    RecordStore,
    ReferenceStore,
)

logger = structlog.get_logger(__name__)


class _Outcome:
    __slots__ = ("error", "delay")

    def __init__(self, error: Optional[Exception], delay: float):
        self.error = error
        self.delay = delay


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed record store.

    Each call consumes the next scripted outcome, if any: an optional delay
    (to let later calls overtake it) followed by an optional error.
    """

    def __init__(self, id_prefix: str = "rec"):
        self.records: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Optional[str], dict[str, Any]]] = []
        self._ids = count(1)
        self._id_prefix = id_prefix
        self._script: deque[_Outcome] = deque()

    def script(self, error: Optional[Exception] = None, delay: float = 0.0) -> None:
        """Queue the outcome of the next call."""
        self._script.append(_Outcome(error, delay))

    async def _play(self) -> None:
        if not self._script:
            return
        outcome = self._script.popleft()
        if outcome.delay:
            await asyncio.sleep(outcome.delay)
        if outcome.error is not None:
            raise outcome.error

    async def add_record(self, fields: dict[str, Any]) -> str:
        self.calls.append(("add", None, dict(fields)))
        await self._play()
        record_id = f"{self._id_prefix}-{next(self._ids)}"
        self.records[record_id] = dict(fields)
        return record_id

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> None:
        self.calls.append(("update", record_id, dict(updates)))
        await self._play()
        if record_id not in self.records:
            raise NotFoundError(f"Record not found: {record_id}")
        self.records[record_id].update(updates)

    async def remove_record(self, record_id: str) -> None:
        self.calls.append(("remove", record_id, {}))
        await self._play()
        if self.records.pop(record_id, None) is None:
            raise NotFoundError(f"Record not found: {record_id}")


class InMemoryReferenceStore(InMemoryRecordStore, ReferenceStore):
    """
    Reference entity store that repoints expenses held by another store.

    Args:
        expenses: The store holding expense records
        field: Expense field holding this kind of reference (e.g. category_id)
    """

    def __init__(self, expenses: InMemoryRecordStore, field: str, id_prefix: str = "ref"):
        super().__init__(id_prefix=id_prefix)
        self._expenses = expenses
        self._field = field

    async def reassign_references(self, old_id: str, new_id: Optional[str]) -> int:
        self.calls.append(("reassign", old_id, {"new_id": new_id}))
        await self._play()
        changed = 0
        for record in self._expenses.records.values():
            if record.get(self._field) == old_id:
                record[self._field] = new_id
                changed += 1
        return changed


class InMemoryPreferenceStore(PreferenceStore):

    def __init__(self, values: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class JsonFilePreferenceStore(PreferenceStore):
    """
    Preferences kept in a small JSON object on disk.

    A missing or unreadable file starts empty; every set rewrites the file.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._values = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("preferences_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("preferences_unreadable", path=str(self._path), error="not an object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to save preferences: {e}")


class InMemoryClipboard(Clipboard):

    def __init__(self, error: Optional[Exception] = None):
        self.text: Optional[str] = None
        self._error = error

    async def write_text(self, text: str) -> None:
        if self._error is not None:
            raise self._error
        self.text = text


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
