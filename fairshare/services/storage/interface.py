"""
Abstract Collaborator Interfaces

DESIGN DECISION: The core never decides how or where data is persisted.
It talks to a handful of abstract collaborators instead. This allows us to:
1. Embed the core behind any backend (remote database, local file, ...)
2. Use in-memory collaborators for testing
3. Keep computation and grid logic decoupled from I/O

Record identities are opaque strings assigned by the collaborator. Every
failure is raised as a PersistenceError subclass so callers can turn it
into a non-fatal notice.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from fairshare.errors import (
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from fairshare.models.audit import AuditEvent


class RecordStore(ABC):
    """
    Abstract store for one kind of record (expenses, incomes, ...).

    Implementations must be safe to call concurrently from one event loop;
    the core issues updates without waiting for earlier ones to finish.
    """

    @abstractmethod
    async def add_record(self, fields: dict[str, Any]) -> str:
        """
        Create a record.

        Args:
            fields: Initial field values (without an id)

        Returns:
            The id assigned to the new record

        Raises:
            PersistenceError: If the record could not be created
        """
        pass

    @abstractmethod
    async def update_record(self, record_id: str, updates: dict[str, Any]) -> None:
        """
        Apply a partial update.

        Args:
            record_id: Id of the record to change
            updates: Only the fields that changed

        Raises:
            NotFoundError: If the record doesn't exist
            PersistenceError: If the update fails
        """
        pass

    @abstractmethod
    async def remove_record(self, record_id: str) -> None:
        """
        Delete a record.

        Raises:
            NotFoundError: If the record doesn't exist
            PersistenceError: If the delete fails
        """
        pass


class ReferenceStore(RecordStore):
    """
    Store for entities expenses point at (categories, budgets, accounts).
    """

    @abstractmethod
    async def reassign_references(self, old_id: str, new_id: Optional[str]) -> int:
        """
        Repoint every expense referencing old_id to new_id (None clears).

        Returns:
            Number of expenses changed
        """
        pass


class PreferenceStore(ABC):
    """
    Durable key-value store for grid preferences.

    Synchronous: preferences are read once at startup and written on change.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass


class Clipboard(ABC):
    """System clipboard."""

    @abstractmethod
    async def write_text(self, text: str) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


__all__ = [
    "AuditStorageInterface",
    "Clipboard",
    "NotFoundError",
    "PersistenceError",
    "PreferenceStore",
    "RecordStore",
    "ReferenceStore",
    "StorageConnectionError",
]
