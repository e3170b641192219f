"""
View-state models: the choices a user makes about how the expense grid is
filtered, sorted and grouped, plus the notices surfaced back to them.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupByOption(str, Enum):
    """Dimension the expense grid is grouped by."""
    NONE = "none"
    CATEGORY = "category"
    ESTIMATED = "estimated"
    PAYER = "payer"
    PAYMENT_METHOD = "payment_method"


class PayerFilter(str, Enum):
    """Which payer's expenses are shown."""
    ALL = "all"
    X = "X"
    Y = "Y"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class SortState(BaseModel):
    """A single (column, direction) sort key."""
    model_config = ConfigDict(frozen=True)

    column: str = Field(default="name", min_length=1)
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC


class NoticeVariant(str, Enum):
    INFO = "info"
    DESTRUCTIVE = "destructive"


class Notice(BaseModel):
    """
    A user-visible, non-fatal message.

    Failed writes never roll back what the user typed; they show one of
    these instead.
    """
    model_config = ConfigDict(frozen=True)

    title: str
    description: Optional[str] = None
    variant: NoticeVariant = NoticeVariant.INFO

    @classmethod
    def error(cls, title: str, description: Optional[str] = None) -> "Notice":
        return cls(title=title, description=description, variant=NoticeVariant.DESTRUCTIVE)
