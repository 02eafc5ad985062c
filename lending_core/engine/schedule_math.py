"""Currency and schedule arithmetic.

All amounts stay in integer minor units once rounded. Rounding happens only
where a value becomes a schedule entry, never mid-calculation.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Sequence

from lending_core.exceptions import ComputationError, ValidationError
from lending_core.models.enums import PeriodUnit
from lending_core.models.money import DEFAULT_CURRENCY, Money, currency_scale

# Working precision for intermediate Decimal arithmetic
PRECISION = 34


def annual_rate_to_period_rate(annual_rate: Decimal, unit: PeriodUnit = PeriodUnit.MONTH) -> Decimal:
    """Convert an annual rate fraction to a per-period rate.

    Parameters
    ----------
    annual_rate : Decimal
        Nominal annual rate as a fraction (``Decimal("0.18")`` for 18%).
    unit : PeriodUnit
        Repayment period.

    Returns
    -------
    Decimal
        Unrounded per-period rate.
    """
    annual_rate = Decimal(annual_rate)
    if annual_rate < 0:
        raise ValidationError(f"Annual rate must not be negative, got {annual_rate}", field="annual_rate")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return annual_rate / Decimal(unit.periods_per_year)


def round_currency(amount: Decimal, currency: str = DEFAULT_CURRENCY) -> Money:
    """Round a major-unit ``Decimal`` half-up to the currency's minor unit."""
    scale = currency_scale(currency)
    minor = (Decimal(amount) * (Decimal(10) ** scale)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return Money(int(minor), currency)


def round_minor(value: Decimal) -> int:
    """Round a minor-unit ``Decimal`` half-up to an integer."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def sum_preserving_rounding(
    parts: Sequence[Decimal],
    target: Money,
    tolerance: int | None = None,
) -> list[Money]:
    """Round ``parts`` (minor units) so that they sum exactly to ``target``.

    Every part is rounded half-up; the last part then absorbs whatever residue
    remains so the rounded list sums to ``target``.

    Parameters
    ----------
    parts : Sequence[Decimal]
        Unrounded amounts in minor units.
    target : Money
        Exact total the rounded parts must reach.
    tolerance : int | None
        Largest residue (minor units) the last part may absorb. Defaults to
        one minor unit per part.

    Returns
    -------
    list[Money]
        Rounded parts in ``target``'s currency.

    Raises
    ------
    ComputationError
        If the residue exceeds ``tolerance`` or the last part turns negative.
    """
    if not parts:
        raise ComputationError("Cannot distribute an amount over zero parts")

    limit = tolerance if tolerance is not None else len(parts)
    rounded = [round_minor(part) for part in parts]
    head = sum(rounded[:-1])
    last = target.minor_units - head
    residue = last - rounded[-1]

    if abs(residue) > limit:
        raise ComputationError(
            f"Rounding residue {residue} exceeds tolerance {limit} for target {target}"
        )
    if last < 0 <= target.minor_units:
        raise ComputationError(f"Final part would be negative ({last}) for target {target}")

    rounded[-1] = last
    return [Money(value, target.currency) for value in rounded]


def add_periods(start: date, unit: PeriodUnit, count: int) -> date:
    """Return the date ``count`` periods after ``start``.

    Monthly and quarterly steps keep the day of month, clamped to the last
    day of shorter months.
    """
    if unit == PeriodUnit.WEEK:
        return start + timedelta(weeks=count)
    if unit == PeriodUnit.FORTNIGHT:
        return start + timedelta(weeks=2 * count)

    months = count if unit == PeriodUnit.MONTH else 3 * count
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
