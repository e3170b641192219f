"""
Storage Services Package

Provides the abstract collaborator interfaces the core talks to, plus
in-memory implementations. The real backend is supplied by the embedder.
"""

from fairshare.services.storage.interface import (
    AuditStorageInterface,
    Clipboard,
    NotFoundError,
    PersistenceError,
    PreferenceStore,
    RecordStore,
    ReferenceStore,
    StorageConnectionError,
)
from fairshare.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryClipboard,
    InMemoryPreferenceStore,
    InMemoryRecordStore,
    InMemoryReferenceStore,
    JsonFilePreferenceStore,
)

__all__ = [
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
