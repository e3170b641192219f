"""Display-time rounding. Never applied before totals are computed."""

from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from fairshare.core.frequency import FREQUENCY_LABELS
from fairshare.models.records import FrequencyType

_HALF = Decimal("0.5")


def round_display(value: Decimal) -> int:
    """Round half up to a whole unit, as amounts are shown in the grid."""
    return int((value + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def format_currency(value: Decimal, symbol: str = "$") -> str:
    """e.g. Decimal("432.996") -> "$433"."""
    return f"{symbol}{round_display(value)}"


def format_percent(value: Decimal) -> str:
    return f"{round_display(value)}%"


def format_frequency(frequency_type: FrequencyType, frequency_param: Optional[int]) -> str:
    """Picker label with its parameter filled in, e.g. "Every 3 Weeks"."""
    label = FREQUENCY_LABELS.get(frequency_type, str(frequency_type))
    if not frequency_type.is_parametrized:
        return label
    return label.replace("X", str(frequency_param) if frequency_param else "X", 1)
