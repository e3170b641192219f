"""
Audit Logger

DESIGN DECISION: Every write the core issues is logged.
This provides:
1. Traceability of each record change
2. Debugging capability when a collaborator call fails
3. A history the user can be shown

The audit logger:
- Is async to not block the edit flow
- Gracefully handles failures (a broken audit sink never breaks an edit)
"""

import asyncio
import logging
from collections import deque
from typing import Any, Optional

import structlog

from fairshare.config import LoggingSettings, get_settings
from fairshare.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from fairshare.services.storage import AuditStorageInterface


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Configure structlog (and the stdlib logger behind it) from settings."""
    settings = settings or get_settings().logging
    logging.basicConfig(format="%(message)s", level=settings.level)
    logging.getLogger().setLevel(settings.level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


_LOG_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage sink, when one is configured

    The most recent events are also kept in memory (`events`), up to
    `history_size` of them.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        history_size: Optional[int] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            history_size: Events kept in `events` (default from
                    LoggingSettings.audit_history_size)
        """
        self._storage = storage
        self._logger = structlog.get_logger("fairshare.audit")
        if history_size is None:
            history_size = get_settings().logging.audit_history_size
        self.events: deque[AuditEvent] = deque(maxlen=history_size)
        self._background: set[asyncio.Task] = set()

    def _log_local(self, event: AuditEvent) -> None:
        self.events.append(event)
        getattr(self._logger, _LOG_METHODS[event.severity])("audit_event", **event.to_log_dict())

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        self._log_local(event)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_nowait(self, event: AuditEvent) -> None:
        """
        Log from synchronous code.

        Inside a running event loop the full log() is scheduled as a task;
        without one the event is only logged locally.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._log_local(event)
            return
        task = loop.create_task(self.log(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def flush(self) -> None:
        """Wait for events scheduled by log_nowait."""
        while self._background:
            await asyncio.gather(*list(self._background))

    async def log_record_added(self, entity_type: str, entity_id: Optional[str], fields: dict) -> None:
        await self.log(AuditEventBuilder.record_added(entity_type, entity_id, fields))

    async def log_record_updated(self, entity_type: str, entity_id: str, updates: dict) -> None:
        await self.log(AuditEventBuilder.record_updated(entity_type, entity_id, updates))

    async def log_record_removed(self, entity_type: str, entity_id: str) -> None:
        await self.log(AuditEventBuilder.record_removed(entity_type, entity_id))

    async def log_write_skipped(self, entity_type: str, entity_id: str, field: str) -> None:
        """Log an edit that left the value unchanged and so wrote nothing."""
        await self.log(AuditEventBuilder.write_skipped(entity_type, entity_id, field))

    async def log_write_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.write_failed(entity_type, entity_id, operation, error_message))

    async def log_validation_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        issues: list[dict],
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(entity_type, entity_id, issues))

    async def log_references_reassigned(
        self,
        kind: str,
        old_id: str,
        new_id: Optional[str],
        usage_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.references_reassigned(kind, old_id, new_id, usage_count))

    async def log_referential_conflict(self, kind: str, entity_id: str, usage_count: int) -> None:
        await self.log(AuditEventBuilder.referential_conflict(kind, entity_id, usage_count))

    async def log_partner_names_updated(self, partner_x: str, partner_y: str) -> None:
        await self.log(AuditEventBuilder.partner_names_updated(partner_x, partner_y))

    async def log_invite_code_copied(self) -> None:
        await self.log(AuditEventBuilder.invite_code_copied())

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(error_type, error_message, details))
