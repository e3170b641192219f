"""
Data Models Package

This package contains all Pydantic models used by FairShare.
All records flowing through the core must conform to these schemas.
"""

from fairshare.models.records import (
    PARAMETRIZED_FREQUENCIES,
    Budget,
    Category,
    Expense,
    FrequencyType,
    Household,
    Income,
    LinkedAccount,
    PartnerLabel,
    ReferenceKind,
)
from fairshare.models.view import (
    GroupByOption,
    Notice,
    NoticeVariant,
    PayerFilter,
    SortDirection,
    SortState,
)
from fairshare.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from fairshare.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Records
    "PARAMETRIZED_FREQUENCIES",
    "Budget",
    "Category",
    "Expense",
    "FrequencyType",
    "Household",
    "Income",
    "LinkedAccount",
    "PartnerLabel",
    "ReferenceKind",
    # View state
    "GroupByOption",
    "Notice",
    "NoticeVariant",
    "PayerFilter",
    "SortDirection",
    "SortState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
