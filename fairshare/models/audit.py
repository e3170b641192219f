"""
Audit Models for FairShare

Every write the core asks for - and every write it deliberately skips - is
recorded. This provides:
1. Traceability of who changed which record and when
2. Debugging information when a collaborator call fails
3. A history of preference and reference changes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Record writes
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_REMOVED = "record_removed"
    WRITE_SKIPPED = "write_skipped"
    WRITE_FAILED = "write_failed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Reference entities
    REFERENCES_REASSIGNED = "references_reassigned"
    REFERENTIAL_CONFLICT = "referential_conflict"

    # Household & preferences
    PARTNER_NAMES_UPDATED = "partner_names_updated"
    PREFERENCE_CHANGED = "preference_changed"
    INVITE_CODE_COPIED = "invite_code_copied"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Kind of record (e.g., 'expense', 'income', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Opaque id of the record"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


def _printable(fields: dict[str, Any]) -> dict[str, Any]:
    """Stringify values that structured logs can't render natively."""
    return {
        key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        for key, value in fields.items()
    }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_updated("expense", expense_id, {"amount": "12"})
        event = AuditEventBuilder.write_failed("expense", expense_id, "update", str(exc))
    """

    @staticmethod
    def record_added(entity_type: str, entity_id: Optional[str], fields: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} added",
            details={"fields": _printable(fields)},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(entity_type: str, entity_id: str, updates: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} updated: {', '.join(sorted(updates))}",
            details={"updates": _printable(updates)},
            is_user_action=True,
        )

    @staticmethod
    def record_removed(entity_type: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REMOVED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} removed",
            is_user_action=True,
        )

    @staticmethod
    def write_skipped(entity_type: str, entity_id: str, field: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Unchanged {field} not written",
            details={"field": field},
        )

    @staticmethod
    def write_failed(
        entity_type: str,
        entity_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} {operation} failed",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        entity_id: Optional[str],
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def references_reassigned(
        kind: str,
        old_id: str,
        new_id: Optional[str],
        usage_count: int,
    ) -> AuditEvent:
        target = new_id if new_id is not None else "unassigned"
        return AuditEvent(
            event_type=AuditEventType.REFERENCES_REASSIGNED,
            entity_type=kind,
            entity_id=old_id,
            description=f"{usage_count} expenses moved from {kind} {old_id} to {target}",
            details={"new_id": new_id, "usage_count": usage_count},
            is_user_action=True,
        )

    @staticmethod
    def referential_conflict(kind: str, entity_id: str, usage_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFERENTIAL_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=entity_id,
            description=f"Refused to delete {kind} still used by {usage_count} expenses",
            details={"usage_count": usage_count},
            is_user_action=True,
        )

    @staticmethod
    def partner_names_updated(partner_x: str, partner_y: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTNER_NAMES_UPDATED,
            entity_type="household",
            description="Partner names updated",
            details={"partner_x": partner_x, "partner_y": partner_y},
            is_user_action=True,
        )

    @staticmethod
    def preference_changed(key: str, value: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCE_CHANGED,
            severity=AuditSeverity.DEBUG,
            entity_type="preference",
            entity_id=key,
            description=f"Preference {key} set to {value}",
            details={"key": key, "value": value},
            is_user_action=True,
        )

    @staticmethod
    def invite_code_copied() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_CODE_COPIED,
            entity_type="household",
            description="Invite code copied to clipboard",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
