"""Loan, schedule and lifecycle models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from lending_core.models.enums import InstallmentStatus, LoanStatus, LoanType, PeriodUnit
from lending_core.models.money import Money, money_sum


@dataclass(frozen=True)
class Tenure:
    """Loan tenure as a count of repayment periods."""

    count: int
    unit: PeriodUnit = PeriodUnit.MONTH

    @property
    def months_equivalent(self) -> int:
        """Tenure expressed in whole months, rounded up."""
        return math.ceil(self.count * 12 / self.unit.periods_per_year)


@dataclass(frozen=True)
class StatusChange:
    """One lifecycle transition."""

    previous: LoanStatus
    next: LoanStatus
    actor: str
    reason: str
    at: datetime


@dataclass
class Loan:
    """Loan contract entity."""

    loan_id: str
    applicant_id: str
    loan_type: LoanType
    requested_amount: Money
    tenure: Tenure
    purpose: str = ""
    status: LoanStatus = LoanStatus.DRAFT
    approved_amount: Money | None = None
    interest_rate: Decimal | None = None  # Annual, as a fraction (0.18 for 18%)
    processing_fee: Money | None = None
    gst_on_fee: Money | None = None
    score_at_approval: int | None = None
    auto_approved: bool = False
    disbursed_on: date | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None
    version: int = 0
    history: list[StatusChange] = field(default_factory=list)

    @property
    def currency(self) -> str:
        return self.requested_amount.currency

    @property
    def principal(self) -> Money:
        """Approved principal, falling back to the requested amount."""
        return self.approved_amount if self.approved_amount is not None else self.requested_amount


@dataclass
class ScheduleEntry:
    """Repayment schedule entry (EMI)."""

    entry_id: str
    loan_id: str
    schedule_version: int
    sequence: int  # 1, 2, 3, ...
    due_date: date
    total: Money
    principal: Money
    interest: Money
    balance_after: Money
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_on: date | None = None
    paid_amount: Money | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass
class Schedule:
    """One version of a loan's repayment schedule."""

    loan_id: str
    version: int
    entries: list[ScheduleEntry]
    emi: Money
    annual_rate: Decimal
    anchored_on: date | None = None  # Due dates are counted in periods from here
    reason: str = "ORIGINATION"
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def first_due_date(self) -> date:
        return self.entries[0].due_date

    @property
    def total_principal(self) -> Money:
        return money_sum(e.principal for e in self.entries)

    @property
    def total_interest(self) -> Money:
        return money_sum(e.interest for e in self.entries)

    @property
    def total_payable(self) -> Money:
        return money_sum(e.total for e in self.entries)

    def unpaid(self) -> list[ScheduleEntry]:
        return [e for e in self.entries if not e.is_paid]

    def next_due(self) -> ScheduleEntry | None:
        unpaid = self.unpaid()
        return unpaid[0] if unpaid else None


@dataclass(frozen=True)
class FundsTransferConfirmation:
    """Funds-transfer outcome delivered by the payments subsystem."""

    loan_id: str
    success: bool
    reference: str = ""
    confirmed_on: date | None = None


@dataclass(frozen=True)
class PaymentEvent:
    """Payment applied against a single schedule entry."""

    entry_id: str
    amount: Money
    paid_on: date
