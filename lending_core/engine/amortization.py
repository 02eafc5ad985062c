"""Reducing-balance amortization schedules."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_CEILING, Decimal, localcontext

from lending_core.engine.schedule_math import (
    PRECISION,
    add_periods,
    annual_rate_to_period_rate,
    round_minor,
    sum_preserving_rounding,
)
from lending_core.exceptions import ComputationError, InvalidInputError
from lending_core.models.enums import PeriodUnit
from lending_core.models.loan import Schedule, ScheduleEntry, Tenure
from lending_core.models.money import Money

logger = logging.getLogger(__name__)


def _exact_emi(principal_minor: Decimal, period_rate: Decimal, periods: int) -> Decimal:
    if period_rate == 0:
        return principal_minor / periods
    growth = (1 + period_rate) ** periods
    return principal_minor * period_rate * growth / (growth - 1)


def emi_amount(principal: Money, period_rate: Decimal, periods: int) -> Money:
    """Equated installment for a reducing-balance loan, rounded once.

    ``EMI = P * r * (1 + r)^n / ((1 + r)^n - 1)``; for ``r == 0`` it is
    ``P / n``.
    """
    if periods <= 0:
        raise InvalidInputError("Number of periods must be positive", field="tenure", limit=1)
    if principal.minor_units <= 0:
        raise InvalidInputError("Principal must be positive", field="principal", limit=0)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        emi = _exact_emi(Decimal(principal.minor_units), period_rate, periods)
    return Money(round_minor(emi), principal.currency)


def periods_for_emi(principal: Money, period_rate: Decimal, emi: Money) -> int:
    """Smallest number of periods that repays ``principal`` at ``emi``."""
    if emi.minor_units <= 0:
        raise InvalidInputError("EMI must be positive", field="emi", limit=0)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        p = Decimal(principal.minor_units)
        e = Decimal(emi.minor_units)
        if period_rate == 0:
            exact = p / e
        else:
            remaining = 1 - p * period_rate / e
            if remaining <= 0:
                raise InvalidInputError(
                    f"EMI {emi} does not cover the interest on {principal}", field="emi"
                )
            exact = -remaining.ln() / (1 + period_rate).ln()
    return max(1, int(exact.to_integral_value(rounding=ROUND_CEILING)))


def _level_split(
    principal: Money, period_rate: Decimal, emi: Money, periods: int
) -> tuple[list[int], list[Decimal]] | None:
    """Interest and principal per entry for a level installment ``emi``.

    Returns None when the once-rounded installment leaves more drift than a
    single installment can absorb.
    """
    interests: list[int] = []
    parts: list[Decimal] = []
    balance = principal.minor_units

    for _ in range(periods):
        interest = round_minor(Decimal(balance) * period_rate)
        part = min(emi.minor_units - interest, balance)
        if part < 0:
            return None
        interests.append(interest)
        parts.append(Decimal(part))
        balance -= part

    # The last principal absorbs the drift left by rounding the EMI once.
    parts[-1] = Decimal(emi.minor_units - interests[-1])
    if abs(principal.minor_units - sum(parts)) > emi.minor_units:
        return None
    return interests, parts


def _spread_split(principal: Money, period_rate: Decimal, periods: int) -> tuple[list[int], list[Decimal]]:
    """Interest and principal per entry by cumulative rounding of the exact split.

    Each entry repays the rounded growth of the exact cumulative principal, so
    no entry is off by more than one minor unit and nothing piles up on the
    last. At a zero rate every entry is ``P / n`` to within one minor unit.
    """
    interests: list[int] = []
    parts: list[Decimal] = []
    target = principal.minor_units

    with localcontext() as ctx:
        ctx.prec = PRECISION
        exact_principal = Decimal(target)
        emi = _exact_emi(exact_principal, period_rate, periods)
        repaid_exact = Decimal(0)
        repaid = 0
        for _ in range(periods):
            interests.append(round_minor(Decimal(target - repaid) * period_rate))
            repaid_exact += emi - (exact_principal - repaid_exact) * period_rate
            reached = min(round_minor(repaid_exact), target)
            parts.append(Decimal(reached - repaid))
            repaid = reached
    return interests, parts


def generate_schedule(
    principal: Money,
    annual_rate: Decimal,
    tenure: Tenure,
    disbursed_on: date,
    loan_id: str = "",
    version: int = 1,
    reason: str = "ORIGINATION",
    start_period: int = 0,
) -> Schedule:
    """Build an amortization schedule.

    Parameters
    ----------
    principal : Money
        Amount to amortize.
    annual_rate : Decimal
        Nominal annual rate as a fraction.
    tenure : Tenure
        Number and length of repayment periods.
    disbursed_on : date
        Anchor date; entry ``i`` falls due ``start_period + i`` periods later.
    loan_id : str
        Owning loan.
    version : int
        Schedule version number.
    reason : str
        Why this version exists (``ORIGINATION``, ``DISBURSEMENT``,
        ``PREPAYMENT``).
    start_period : int
        Periods already elapsed before the first entry; used when a running
        loan is re-amortized.

    Returns
    -------
    Schedule
        Entries whose principal components sum exactly to ``principal`` and
        whose final balance is zero.

    Raises
    ------
    InvalidInputError
        If ``principal`` or the number of periods is not positive.
    ComputationError
        If the rounded entries do not amortize the principal to zero.
    """
    periods = tenure.count
    period_rate = annual_rate_to_period_rate(annual_rate, tenure.unit)
    emi = emi_amount(principal, period_rate, periods)
    currency = principal.currency

    split = _level_split(principal, period_rate, emi, periods)
    if split is not None:
        interests, principal_parts = split
        tolerance = emi.minor_units
    else:
        # Installment too small in minor units to be rounded once
        interests, principal_parts = _spread_split(principal, period_rate, periods)
        tolerance = periods

    principals = sum_preserving_rounding(principal_parts, principal, tolerance=tolerance)

    entries = []
    balance = principal.minor_units
    for index, (part, interest) in enumerate(zip(principals, interests), start=1):
        balance -= part.minor_units
        sequence = start_period + index
        interest_money = Money(interest, currency)
        entries.append(
            ScheduleEntry(
                entry_id=f"{loan_id}-v{version}-{sequence:03d}",
                loan_id=loan_id,
                schedule_version=version,
                sequence=sequence,
                due_date=add_periods(disbursed_on, tenure.unit, sequence),
                total=part + interest_money,
                principal=part,
                interest=interest_money,
                balance_after=Money(balance, currency),
            )
        )

    if entries[-1].balance_after.minor_units != 0:
        raise ComputationError(f"Schedule for {loan_id} does not amortize to zero")

    logger.debug(
        "Generated schedule %s v%d: %d x %s at %s", loan_id, version, periods, emi, annual_rate
    )
    return Schedule(
        loan_id=loan_id,
        version=version,
        entries=entries,
        emi=emi,
        annual_rate=annual_rate,
        anchored_on=disbursed_on,
        reason=reason,
    )


def reamortize(
    current: Schedule,
    outstanding: Money,
    anchor: date,
    unit: PeriodUnit,
    reduce_tenure: bool = True,
    reason: str = "PREPAYMENT",
) -> Schedule:
    """Spread ``outstanding`` principal over a new schedule version.

    Paid entries are not repeated: the new entries continue the sequence
    after the last paid one. With ``reduce_tenure`` the installment is kept
    and the number of remaining periods shrinks; otherwise the remaining
    periods are kept and the installment shrinks.
    """
    unpaid = current.unpaid()
    if not unpaid:
        raise InvalidInputError("Schedule has no unpaid entries to re-amortize", field="schedule")

    elapsed = unpaid[0].sequence - 1
    if reduce_tenure:
        period_rate = annual_rate_to_period_rate(current.annual_rate, unit)
        periods = min(len(unpaid), periods_for_emi(outstanding, period_rate, current.emi))
    else:
        periods = len(unpaid)

    return generate_schedule(
        principal=outstanding,
        annual_rate=current.annual_rate,
        tenure=Tenure(periods, unit),
        disbursed_on=anchor,
        loan_id=current.loan_id,
        version=current.version + 1,
        reason=reason,
        start_period=elapsed,
    )
