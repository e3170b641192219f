"""
Fair-Split Allocator

Splits each expense's monthly amount between the two partners by blending
two signals multiplicatively:

- who benefits (benefit_x / benefit_y), and
- who can pay (each partner's share of household income).

Benefit weighting alone would ignore ability to pay; income weighting alone
would ignore who benefits. With both, a partner who benefits 100% but earns
nothing is not handed the whole bill.

INVARIANT: fair_y is always monthly - fair_x. The two shares add up to the
monthly amount exactly; rounding happens only at display time.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Iterable

from fairshare.core.formatting import round_display
from fairshare.core.frequency import ZERO, monthly_amount
from fairshare.models.records import Expense, Income, PartnerLabel

NEUTRAL_RATIO = Decimal("0.5")

# Wide enough that adding or subtracting shares never rounds
EXACT_PRECISION = 100
ONE = Decimal("1")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Allocation:
    """Monthly amount of one expense and each partner's share of it."""
    monthly: Decimal
    fair_x: Decimal
    fair_y: Decimal


@dataclass(frozen=True)
class IncomeSummary:
    """Household income normalized to monthly figures."""
    x_total: Decimal
    y_total: Decimal
    ratio_x: Decimal

    @property
    def total(self) -> Decimal:
        return self.x_total + self.y_total

    @property
    def ratio_y(self) -> Decimal:
        return ONE - self.ratio_x

    @property
    def percent_x(self) -> int:
        """Whole-percent share of partner X, for display."""
        return round_display(self.ratio_x * HUNDRED)

    @property
    def percent_y(self) -> int:
        return round_display(HUNDRED - self.ratio_x * HUNDRED)


def summarize_incomes(incomes: Iterable[Income]) -> IncomeSummary:
    """
    Total each partner's monthly income and derive partner X's ratio.

    An empty or all-zero household resolves to a neutral 50/50 ratio.
    """
    x_total = ZERO
    y_total = ZERO
    for income in incomes:
        monthly = monthly_amount(income)
        if income.partner_label == PartnerLabel.X:
            x_total += monthly
        else:
            y_total += monthly

    total = x_total + y_total
    # Negative totals are as meaningless as zero ones
    ratio_x = x_total / total if total > 0 else NEUTRAL_RATIO
    return IncomeSummary(x_total=x_total, y_total=y_total, ratio_x=ratio_x)


def income_ratio_x(incomes: Iterable[Income]) -> Decimal:
    """Partner X's share of total monthly household income (0.5 if none)."""
    return summarize_incomes(incomes).ratio_x


def fair_share_x(expense: Expense, ratio_x: Decimal) -> Decimal:
    """Partner X's fair share of an expense's monthly amount."""
    monthly = monthly_amount(expense)
    bx = Decimal(expense.benefit_x) / HUNDRED
    by = ONE - bx
    wx = bx * ratio_x
    wy = by * (ONE - ratio_x)
    total_weight = wx + wy
    if total_weight == 0:
        total_weight = ONE
    return monthly * (wx / total_weight)


def allocate(expense: Expense, ratio_x: Decimal) -> Allocation:
    """Monthly amount and both fair shares of one expense."""
    monthly = monthly_amount(expense)
    fair_x = fair_share_x(expense, ratio_x)
    return Allocation(monthly=monthly, fair_x=fair_x, fair_y=exact_difference(monthly, fair_x))


def exact_difference(minuend: Decimal, subtrahend: Decimal) -> Decimal:
    """a - b without context rounding, so (a - b) + b == a."""
    with localcontext() as ctx:
        ctx.prec = EXACT_PRECISION
        return minuend - subtrahend


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    """Order-independent sum: group subtotals always add up to the grand total."""
    with localcontext() as ctx:
        ctx.prec = EXACT_PRECISION
        total = ZERO
        for value in values:
            total += value
        return total
