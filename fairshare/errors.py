"""
Error taxonomy for FairShare.

Nothing in the computation layers raises; these exceptions belong to the
edges where the core asks a collaborator to change something.

- ValidationError: the request was refused before any collaborator call.
- PersistenceError: the collaborator rejected the call. Non-fatal; local
  state is not rolled back.
- ReferentialConflict: a category, budget or payment method is still in use
  and the caller has not chosen a replacement (or None).
"""

from typing import Optional


class FairShareError(Exception):
    """Base exception for FairShare."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FairShareError):
    """Input rejected before issuing any collaborator call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class PersistenceError(FairShareError):
    """A persistence collaborator call failed."""
    pass


class NotFoundError(PersistenceError):
    """The record to update or remove does not exist in storage."""
    pass


class StorageConnectionError(PersistenceError):
    """Storage could not be reached. Transient; writes are retried."""
    pass


class ReferentialConflict(FairShareError):
    """Refused delete of an entity that expenses still reference."""

    def __init__(self, kind: str, entity_id: str, usage_count: int):
        super().__init__(
            f"Cannot delete {kind} {entity_id}: used by {usage_count} "
            f"expense{'s' if usage_count != 1 else ''}. "
            "Choose a replacement or clear it first."
        )
        self.kind = kind
        self.entity_id = entity_id
        self.usage_count = usage_count
