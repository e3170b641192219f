"""Audit logging package."""

from fairshare.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
