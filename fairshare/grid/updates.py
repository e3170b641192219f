"""
Edit translation: committed cell text to a partial record update.

Each field has its own parser. Lenient where a stray keystroke should not
lose the edit (an unparsable amount becomes 0, a percentage is rounded and
clamped), strict where guessing would change the meaning of the record (an
unknown frequency or a non-numeric parameter raises ValidationError).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional

from fairshare.core.frequency import ZERO, to_decimal
from fairshare.core.grouping import LookupContext
from fairshare.errors import ValidationError
from fairshare.grid.columns import NONE_CHOICE
from fairshare.models.records import FrequencyType, PartnerLabel

Parser = Callable[[str, LookupContext], dict[str, Any]]


def _name(text: str, context: LookupContext) -> dict[str, Any]:
    return {"name": text.strip()}


def _amount(text: str, context: LookupContext) -> dict[str, Any]:
    value = to_decimal(text.strip())
    return {"amount": value if value is not None else ZERO}


def clamp_percent(text: str) -> int:
    """Round half up and clamp to 0-100; anything unparsable is 0."""
    value = to_decimal(text.strip()) or ZERO
    rounded = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, rounded))


def _benefit_x(text: str, context: LookupContext) -> dict[str, Any]:
    return {"benefit_x": clamp_percent(text)}


def _benefit_y(text: str, context: LookupContext) -> dict[str, Any]:
    # Only X's share is stored
    return {"benefit_x": 100 - clamp_percent(text)}


def _frequency_type(text: str, context: LookupContext) -> dict[str, Any]:
    try:
        return {"frequency_type": FrequencyType(text.strip())}
    except ValueError:
        raise ValidationError(f"Unknown frequency: {text}", field="frequency_type")


def _frequency_param(text: str, context: LookupContext) -> dict[str, Any]:
    text = text.strip()
    if not text:
        return {"frequency_param": None}
    value = to_decimal(text)
    if value is None or value != value.to_integral_value():
        raise ValidationError("Enter a whole number", field="frequency_param")
    if value <= 0:
        raise ValidationError("Enter a number greater than zero", field="frequency_param")
    return {"frequency_param": int(value)}


def _optional_id(field: str) -> Parser:
    def parse(text: str, context: LookupContext) -> dict[str, Any]:
        text = text.strip()
        return {field: None if text in ("", NONE_CHOICE) else text}
    return parse


def _linked_account(text: str, context: LookupContext) -> dict[str, Any]:
    """Choosing a payment method makes its owner the payer; clearing it clears the payer."""
    account_id = _optional_id("linked_account_id")(text, context)["linked_account_id"]
    return {
        "linked_account_id": account_id,
        "payer": context.account_owner(account_id) if account_id else None,
    }


def _is_estimate(text: str, context: LookupContext) -> dict[str, Any]:
    return {"is_estimate": text.strip().lower() in ("true", "1", "yes", "on")}


def _partner_label(text: str, context: LookupContext) -> dict[str, Any]:
    try:
        return {"partner_label": PartnerLabel(text.strip())}
    except ValueError:
        raise ValidationError(f"Unknown partner: {text}", field="partner_label")


FIELD_PARSERS: dict[str, Parser] = {
    "name": _name,
    "amount": _amount,
    "benefit_x": _benefit_x,
    "benefit_y": _benefit_y,
    "frequency_type": _frequency_type,
    "frequency_param": _frequency_param,
    "category_id": _optional_id("category_id"),
    "budget_id": _optional_id("budget_id"),
    "linked_account_id": _linked_account,
    "is_estimate": _is_estimate,
    "partner_label": _partner_label,
}


def translate_edit(
    field: str,
    text: str,
    context: Optional[LookupContext] = None,
) -> dict[str, Any]:
    """
    Partial update for one committed cell.

    Raises:
        ValidationError: If the field is not editable or the text can't be
            interpreted for it
    """
    parser = FIELD_PARSERS.get(field)
    if parser is None:
        raise ValidationError(f"Field is not editable: {field}", field=field)
    return parser(text, context or LookupContext())
