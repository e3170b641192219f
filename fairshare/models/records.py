"""
Core Data Models for FairShare

These models define the schemas for every record the core computes over.
They are designed to:
1. Enforce the record invariants at the boundary, on every entry point
2. Be hashable, so derived views can be cached by input equality
3. Treat identities as opaque - the persistence collaborator owns them

DESIGN DECISION: benefit_x is validated here rather than only clamped by
the one grid control that edits it. A record that reaches the engine is
always within 0-100.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class FrequencyType(str, Enum):
    """
    Recurrence pattern of an expense or income.

    The "every N" and "K times per" families are parametrized: they need a
    positive integer before they contribute anything.
    """
    MONTHLY = "monthly"
    TWICE_MONTHLY = "twice_monthly"
    WEEKLY = "weekly"
    EVERY_N_WEEKS = "every_n_weeks"
    EVERY_N_MONTHS = "every_n_months"
    EVERY_N_DAYS = "every_n_days"
    ANNUAL = "annual"
    K_TIMES_ANNUALLY = "k_times_annually"
    K_TIMES_MONTHLY = "k_times_monthly"
    K_TIMES_WEEKLY = "k_times_weekly"

    @property
    def is_parametrized(self) -> bool:
        return self in PARAMETRIZED_FREQUENCIES


PARAMETRIZED_FREQUENCIES = frozenset({
    FrequencyType.EVERY_N_WEEKS,
    FrequencyType.EVERY_N_MONTHS,
    FrequencyType.EVERY_N_DAYS,
    FrequencyType.K_TIMES_ANNUALLY,
    FrequencyType.K_TIMES_MONTHLY,
    FrequencyType.K_TIMES_WEEKLY,
})


class PartnerLabel(str, Enum):
    """The two partners of a household."""
    X = "X"
    Y = "Y"


class ReferenceKind(str, Enum):
    """Entities an expense can point at by id."""
    CATEGORY = "category"
    BUDGET = "budget"
    LINKED_ACCOUNT = "linked_account"

    @property
    def expense_field(self) -> str:
        return f"{self.value}_id"


# =============================================================================
# RECORDS
# =============================================================================

class _Record(BaseModel):
    """Shared configuration: immutable, whitespace-stripped, hashable."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque identity assigned by the persistence collaborator"
    )

    def apply_update(self, updates: dict[str, Any]):
        """
        Return a copy with a partial update applied.

        Unlike model_copy(update=...), the result is re-validated, so a bad
        update raises instead of producing a record that breaks invariants.
        """
        data = self.model_dump()
        data.update(updates)
        return type(self).model_validate(data)


class _Recurring(_Record):
    """Fields shared by expenses and incomes."""

    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Amount per occurrence, in currency units"
    )
    frequency_type: FrequencyType = Field(
        default=FrequencyType.MONTHLY,
        description="Recurrence pattern"
    )
    frequency_param: Optional[int] = Field(
        default=None,
        description="N or K for parametrized frequencies"
    )

    @field_validator('frequency_param')
    @classmethod
    def validate_frequency_param(
        cls,
        v: Optional[int],
        info: ValidationInfo,
    ) -> Optional[int]:
        """
        Positive when present; dropped for frequencies that take no param.

        A parametrized record may still lack its param - it is "not yet
        configured" and normalizes to 0 until the user fills it in.
        """
        frequency = info.data.get("frequency_type")
        if frequency is not None and not frequency.is_parametrized:
            return None
        if v is not None and v <= 0:
            raise ValueError("Frequency parameter must be a positive integer")
        return v

    @property
    def is_configured(self) -> bool:
        """False while a parametrized frequency is missing its param."""
        return not self.frequency_type.is_parametrized or self.frequency_param is not None


class Expense(_Recurring):
    """
    A shared household cost.

    benefit_x is the share of the benefit that goes to partner X; partner Y
    gets the complement. Who benefits is independent of who pays.
    """

    benefit_x: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Percentage of the benefit attributed to partner X"
    )
    payer: Optional[PartnerLabel] = Field(
        default=None,
        description="Partner who pays, if known"
    )
    category_id: Optional[str] = None
    budget_id: Optional[str] = None
    linked_account_id: Optional[str] = None
    is_estimate: bool = Field(
        default=False,
        description="Informational only - never affects computation"
    )

    @property
    def benefit_y(self) -> int:
        return 100 - self.benefit_x

    def reference(self, kind: ReferenceKind) -> Optional[str]:
        """Id this expense holds for the given reference kind."""
        return getattr(self, kind.expense_field)


class Income(_Recurring):
    """An income stream belonging to one partner."""

    partner_label: PartnerLabel = Field(
        default=PartnerLabel.X,
        description="Partner who earns this income"
    )


class _Named(_Record):
    """Shared shape of reference entities."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    color: Optional[str] = Field(
        default=None,
        max_length=32,
        description="Display color (CSS color string)"
    )


class Category(_Named):
    """Expense category, e.g. Housing, Groceries."""
    pass


class Budget(_Named):
    """Budget bucket, e.g. Fixed Essentials, Flexible."""
    pass


class LinkedAccount(_Named):
    """
    Payment method or account.

    Choosing it on an expense also sets the expense's payer to the owner.
    """

    owner_partner: Optional[PartnerLabel] = None


class Household(BaseModel):
    """Partner display names and the invite code of one household."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    household_id: str
    name: str = "My Household"
    partner_x: str = Field(default="Partner X", min_length=1)
    partner_y: str = Field(default="Partner Y", min_length=1)
    partner_x_color: Optional[str] = None
    partner_y_color: Optional[str] = None
    invite_code: Optional[str] = None

    def partner_name(self, label: Optional[PartnerLabel]) -> str:
        if label is None:
            return ""
        return self.partner_x if label is PartnerLabel.X else self.partner_y
