"""
Grid column configuration.

Each column is described explicitly: what it shows, whether it sorts, how
its cells are edited and which record field an edit writes. The state
machine and the controller read only this table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from fairshare.core.formatting import format_currency
from fairshare.core.grouping import LookupContext


class EditBehavior(str, Enum):
    """How a cell reacts to the user."""
    TEXT = "text"            # inline text input
    NUMBER = "number"        # inline number input
    CURRENCY = "currency"    # inline number input, shown as currency
    PERCENT = "percent"      # inline number input, shown as a percentage
    SELECT = "select"        # picks one value from a list
    TOGGLE = "toggle"        # checkbox
    READONLY = "readonly"    # computed figure
    ACTION = "action"        # row action (delete)

    @property
    def is_inline(self) -> bool:
        """Pointer-down on these cells starts editing immediately."""
        return self in _INLINE


_INLINE = frozenset({
    EditBehavior.TEXT,
    EditBehavior.NUMBER,
    EditBehavior.CURRENCY,
    EditBehavior.PERCENT,
})

NONE_CHOICE = "_none"


@dataclass(frozen=True)
class ColumnSpec:
    """
    One grid column.

    Attributes:
        id: Stable column id; also the sort key name
        header: Header text; {partner_x}/{partner_y} are filled in
        accessor: Cell value as the string an editor starts from
        sortable: Whether a header click sorts by this column
        edit: Cell editing behavior
        field: Record field an edit writes, if any
        available: Row predicate; False hides the cell (e.g. the frequency
            parameter of a non-parametrized frequency)
    """
    id: str
    header: str
    accessor: Callable[[Any, LookupContext], str]
    sortable: bool = True
    edit: EditBehavior = EditBehavior.READONLY
    field: Optional[str] = None
    available: Optional[Callable[[Any], bool]] = None

    def header_text(self, context: LookupContext) -> str:
        return self.header.format(partner_x=context.partner_x, partner_y=context.partner_y)

    def is_available(self, record: Any) -> bool:
        return self.available is None or self.available(record)

    def is_editable(self, record: Any) -> bool:
        return self.field is not None and self.is_available(record)


def _param_text(record: Any) -> str:
    return "" if record.frequency_param is None else str(record.frequency_param)


def _needs_param(record: Any) -> bool:
    return record.frequency_type.is_parametrized


def _optional(value: Optional[str]) -> str:
    return value if value else NONE_CHOICE


EXPENSE_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(
        id="name",
        header="Name",
        accessor=lambda r, ctx: r.expense.name,
        edit=EditBehavior.TEXT,
        field="name",
    ),
    ColumnSpec(
        id="category",
        header="Category",
        accessor=lambda r, ctx: _optional(r.expense.category_id),
        edit=EditBehavior.SELECT,
        field="category_id",
    ),
    ColumnSpec(
        id="amount",
        header="Amount",
        accessor=lambda r, ctx: str(r.expense.amount),
        edit=EditBehavior.CURRENCY,
        field="amount",
    ),
    ColumnSpec(
        id="estimate",
        header="Est",
        accessor=lambda r, ctx: "true" if r.expense.is_estimate else "false",
        edit=EditBehavior.TOGGLE,
        field="is_estimate",
    ),
    ColumnSpec(
        id="frequency",
        header="Frequency",
        accessor=lambda r, ctx: r.expense.frequency_type.value,
        edit=EditBehavior.SELECT,
        field="frequency_type",
    ),
    ColumnSpec(
        id="frequency_param",
        header="",
        accessor=lambda r, ctx: _param_text(r.expense),
        sortable=False,
        edit=EditBehavior.NUMBER,
        field="frequency_param",
        available=lambda r: _needs_param(r.expense),
    ),
    ColumnSpec(
        id="monthly",
        header="Monthly",
        accessor=lambda r, ctx: format_currency(r.monthly),
    ),
    ColumnSpec(
        id="payment_method",
        header="Payment Method",
        accessor=lambda r, ctx: _optional(r.expense.linked_account_id),
        edit=EditBehavior.SELECT,
        field="linked_account_id",
    ),
    ColumnSpec(
        id="payer",
        header="Payer",
        accessor=lambda r, ctx: ctx.partner_name(r.expense.payer),
    ),
    ColumnSpec(
        id="benefit_x",
        header="{partner_x} %",
        accessor=lambda r, ctx: str(r.expense.benefit_x),
        edit=EditBehavior.PERCENT,
        field="benefit_x",
    ),
    ColumnSpec(
        id="benefit_y",
        header="{partner_y} %",
        accessor=lambda r, ctx: str(r.expense.benefit_y),
        edit=EditBehavior.PERCENT,
        field="benefit_y",
    ),
    ColumnSpec(
        id="fair_x",
        header="Fair {partner_x}",
        accessor=lambda r, ctx: format_currency(r.fair_x),
    ),
    ColumnSpec(
        id="fair_y",
        header="Fair {partner_y}",
        accessor=lambda r, ctx: format_currency(r.fair_y),
    ),
    ColumnSpec(
        id="actions",
        header="",
        accessor=lambda r, ctx: "",
        sortable=False,
        edit=EditBehavior.ACTION,
    ),
)

INCOME_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(
        id="name",
        header="Name",
        accessor=lambda r, ctx: r.income.name,
        edit=EditBehavior.TEXT,
        field="name",
    ),
    ColumnSpec(
        id="partner",
        header="Partner",
        accessor=lambda r, ctx: r.income.partner_label.value,
        edit=EditBehavior.SELECT,
        field="partner_label",
    ),
    ColumnSpec(
        id="amount",
        header="Amount",
        accessor=lambda r, ctx: str(r.income.amount),
        edit=EditBehavior.CURRENCY,
        field="amount",
    ),
    ColumnSpec(
        id="frequency",
        header="Frequency",
        accessor=lambda r, ctx: r.income.frequency_type.value,
        edit=EditBehavior.SELECT,
        field="frequency_type",
    ),
    ColumnSpec(
        id="frequency_param",
        header="",
        accessor=lambda r, ctx: _param_text(r.income),
        sortable=False,
        edit=EditBehavior.NUMBER,
        field="frequency_param",
        available=lambda r: _needs_param(r.income),
    ),
    ColumnSpec(
        id="monthly",
        header="Monthly",
        accessor=lambda r, ctx: format_currency(r.monthly),
    ),
    ColumnSpec(
        id="actions",
        header="",
        accessor=lambda r, ctx: "",
        sortable=False,
        edit=EditBehavior.ACTION,
    ),
)


def column_index(columns: Sequence[ColumnSpec], column_id: str) -> int:
    """Position of a column by id; ValueError if absent."""
    for index, column in enumerate(columns):
        if column.id == column_id:
            return index
    raise ValueError(f"Unknown column: {column_id}")


def sortable_column_ids(columns: Sequence[ColumnSpec]) -> frozenset[str]:
    return frozenset(c.id for c in columns if c.sortable)
