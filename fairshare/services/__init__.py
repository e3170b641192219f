"""Services package."""

from fairshare.services.retry import call_with_retry
from fairshare.services.storage import (
    AuditStorageInterface,
    Clipboard,
    InMemoryAuditStorage,
    InMemoryClipboard,
    InMemoryPreferenceStore,
    InMemoryRecordStore,
    InMemoryReferenceStore,
    JsonFilePreferenceStore,
    NotFoundError,
    PersistenceError,
    PreferenceStore,
    RecordStore,
    ReferenceStore,
    StorageConnectionError,
)

__all__ = [
    "call_with_retry",
    # Interfaces
    "AuditStorageInterface",
    "Clipboard",
    "PreferenceStore",
    "RecordStore",
    "ReferenceStore",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    # In-memory implementations
    "InMemoryAuditStorage",
    "InMemoryClipboard",
    "InMemoryPreferenceStore",
    "InMemoryRecordStore",
    "InMemoryReferenceStore",
    "JsonFilePreferenceStore",
]
