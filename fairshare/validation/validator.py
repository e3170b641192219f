"""
Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- The edit is applied to a copy of the record and re-validated by the model
- Catches out-of-range benefit percentages, non-positive frequency
  parameters and unknown enum values

STAGE 2 - SEMANTIC VALIDATION:
- Blank names where a name is required
- Negative amounts
- References to entities that no longer exist
- Parametrized frequencies still missing their parameter

Errors block the write before any collaborator is called. Warnings are
reported but never stop a write; nothing is silently corrected.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError as SchemaError

from fairshare.core.grouping import LookupContext
from fairshare.errors import ValidationError
from fairshare.models.records import Expense, Income
from fairshare.models.validation import ValidationIssue, ValidationResult

Record = Union[Expense, Income]


def _entity_type(record: Record) -> str:
    return "expense" if isinstance(record, Expense) else "income"


class RecordValidator:
    """
    Validates records and proposed partial updates.

    Reference checks run only when a LookupContext is supplied.
    """

    def __init__(self, context: Optional[LookupContext] = None):
        self._context = context

    def _validate_schema(
        self,
        record: Record,
        updates: dict[str, Any],
    ) -> tuple[Optional[Record], list[ValidationIssue]]:
        """
        Stage 1: apply the update and let the model re-check its invariants.

        Returns: (updated_record or None, list_of_issues)
        """
        try:
            return record.apply_update(updates), []
        except SchemaError as e:
            issues = []
            for error in e.errors():
                field = ".".join(str(part) for part in error.get("loc", ())) or "record"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=str(error.get("msg", "Invalid value")),
                    severity="error",
                ))
            return None, issues

    def _validate_semantic(self, record: Record) -> list[ValidationIssue]:
        """Stage 2: business checks on a structurally valid record."""
        issues = []

        if not record.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message=f"This {_entity_type(record)} has no name yet",
                severity="warning",
                suggested_fix="Give it a name so it is easy to find",
            ))

        if record.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="negative_value",
                message="Amount is negative",
                severity="warning",
                suggested_fix="Check the sign; refunds can be entered as negative amounts",
            ))

        if not record.is_configured:
            issues.append(ValidationIssue(
                field="frequency_param",
                issue_type="not_configured",
                message="This frequency needs a number before it counts toward totals",
                severity="warning",
                suggested_fix="Fill in how many days, weeks, months or times",
            ))

        if isinstance(record, Expense) and self._context is not None:
            issues.extend(self._check_references(record))

        return issues

    def _check_references(self, expense: Expense) -> list[ValidationIssue]:
        issues = []
        if expense.category_id and not self._context.has_category(expense.category_id):
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="dangling_reference",
                message="Category no longer exists; shown as uncategorized",
                severity="warning",
            ))
        if expense.linked_account_id and not self._context.has_account(expense.linked_account_id):
            issues.append(ValidationIssue(
                field="linked_account_id",
                issue_type="dangling_reference",
                message="Payment method no longer exists",
                severity="warning",
            ))
        return issues

    def validate(self, record: Record) -> ValidationResult:
        """Validate a whole record."""
        return ValidationResult(
            entity_type=_entity_type(record),
            entity_id=record.id,
            issues=self._validate_semantic(record),
        )

    def validate_update(
        self,
        record: Record,
        updates: dict[str, Any],
    ) -> tuple[Optional[Record], ValidationResult]:
        """
        Validate a partial update against the record it applies to.

        Clearing a name is an error here even though a fresh record may
        start unnamed: a name the user typed away is never written blank.

        Returns:
            (updated record, or None if the schema stage failed; result)
        """
        updated, issues = self._validate_schema(record, updates)

        if "name" in updates and not str(updates["name"] or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name cannot be blank",
                severity="error",
                suggested_fix="Type a name, or press Escape to keep the old one",
            ))

        if updated is not None:
            for issue in self._validate_semantic(updated):
                if issue.field == "name":
                    continue
                if issue.field in updates or issue.issue_type == "not_configured":
                    issues.append(issue)

        return updated, ValidationResult(
            entity_type=_entity_type(record),
            entity_id=record.id,
            issues=issues,
        )

    @staticmethod
    def validate_name(name: Optional[str], field: str = "name") -> str:
        """Stripped name, or ValidationError when blank."""
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError(f"{field.replace('_', ' ').capitalize()} cannot be blank", field=field)
        return cleaned

    @staticmethod
    def raise_for_errors(result: ValidationResult) -> None:
        """Raise ValidationError carrying the first blocking issue, if any."""
        if result.has_errors:
            first = result.errors[0]
            raise ValidationError(first.message, field=first.field)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what ends up in a notice's description.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("This change was not saved:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
