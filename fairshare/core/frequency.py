"""
Frequency Normalizer

Converts any recurring amount into its monthly equivalent so expenses and
incomes on different schedules can be added together.

DESIGN DECISION: The conversion constants are exact decimals, and the
function is total. A missing or non-positive parameter, an unknown
frequency or an unparsable amount all normalize to 0 ("not yet
configured") instead of raising and breaking every total on the page.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from fairshare.models.records import FrequencyType, PARAMETRIZED_FREQUENCIES

WEEKS_PER_MONTH = Decimal("4.33")
DAYS_PER_MONTH = Decimal("30.44")
MONTHS_PER_YEAR = Decimal("12")

ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]

FREQUENCY_LABELS: dict[FrequencyType, str] = {
    FrequencyType.MONTHLY: "Monthly",
    FrequencyType.TWICE_MONTHLY: "Twice Monthly",
    FrequencyType.WEEKLY: "Weekly",
    FrequencyType.EVERY_N_WEEKS: "Every X Weeks",
    FrequencyType.EVERY_N_MONTHS: "Every X Months",
    FrequencyType.EVERY_N_DAYS: "Every X Days",
    FrequencyType.ANNUAL: "Yearly",
    FrequencyType.K_TIMES_ANNUALLY: "X/Year",
    FrequencyType.K_TIMES_MONTHLY: "X/Month",
    FrequencyType.K_TIMES_WEEKLY: "X/Week",
}

# Order offered in the frequency picker
FREQUENCY_OPTIONS: tuple[FrequencyType, ...] = (
    FrequencyType.WEEKLY,
    FrequencyType.TWICE_MONTHLY,
    FrequencyType.MONTHLY,
    FrequencyType.ANNUAL,
    FrequencyType.EVERY_N_DAYS,
    FrequencyType.EVERY_N_WEEKS,
    FrequencyType.EVERY_N_MONTHS,
    FrequencyType.K_TIMES_WEEKLY,
    FrequencyType.K_TIMES_MONTHLY,
    FrequencyType.K_TIMES_ANNUALLY,
)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a number-ish value to a finite Decimal, or None.

    Floats go through str() so 0.1 stays 0.1 rather than its binary
    expansion.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def _frequency(value: Any) -> Optional[FrequencyType]:
    if isinstance(value, FrequencyType):
        return value
    try:
        return FrequencyType(value)
    except (ValueError, TypeError):
        return None


def needs_param(frequency_type: Any) -> bool:
    """True for frequencies that need an N/K parameter."""
    return _frequency(frequency_type) in PARAMETRIZED_FREQUENCIES


def to_monthly(
    amount: Number,
    frequency_type: Union[FrequencyType, str],
    frequency_param: Optional[Number] = None,
) -> Decimal:
    """
    Normalize an amount to its monthly equivalent.

    Args:
        amount: Amount per occurrence
        frequency_type: Recurrence pattern (enum or its string value)
        frequency_param: N for "every N ..." or K for "K times per ..."

    Returns:
        Monthly-equivalent amount; 0 when the input can't be normalized
    """
    value = to_decimal(amount)
    frequency = _frequency(frequency_type)
    if value is None or frequency is None:
        return ZERO

    param = to_decimal(frequency_param)
    if param is not None and param <= 0:
        param = None

    if frequency is FrequencyType.MONTHLY:
        return value
    if frequency is FrequencyType.TWICE_MONTHLY:
        return value * 2
    if frequency is FrequencyType.WEEKLY:
        return value * WEEKS_PER_MONTH
    if frequency is FrequencyType.ANNUAL:
        return value / MONTHS_PER_YEAR

    if param is None:
        return ZERO

    if frequency is FrequencyType.EVERY_N_WEEKS:
        return value * WEEKS_PER_MONTH / param
    if frequency is FrequencyType.EVERY_N_MONTHS:
        return value / param
    if frequency is FrequencyType.EVERY_N_DAYS:
        return value * DAYS_PER_MONTH / param
    if frequency is FrequencyType.K_TIMES_ANNUALLY:
        return value * param / MONTHS_PER_YEAR
    if frequency is FrequencyType.K_TIMES_MONTHLY:
        return value * param
    if frequency is FrequencyType.K_TIMES_WEEKLY:
        return value * param * WEEKS_PER_MONTH
    return ZERO


def monthly_amount(record: Any) -> Decimal:
    """Monthly equivalent of an Expense or Income."""
    return to_monthly(
        getattr(record, "amount", None),
        getattr(record, "frequency_type", None),
        getattr(record, "frequency_param", None),
    )
