"""Applicant, credit profile and pricing models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from lending_core.models.enums import EmploymentType, LoanType, RiskLevel
from lending_core.models.money import Money


@dataclass(frozen=True)
class KycFlags:
    """KYC verification flags from the identity subsystem."""

    pan_verified: bool = False
    aadhaar_verified: bool = False
    address_verified: bool = False
    bank_account_verified: bool = False

    @property
    def completed(self) -> int:
        return sum(
            (
                self.pan_verified,
                self.aadhaar_verified,
                self.address_verified,
                self.bank_account_verified,
            )
        )


@dataclass(frozen=True)
class ApplicantSignals:
    """Scoring inputs for one applicant.

    ``applicant_id``, ``monthly_income`` and ``employment_type`` are required.
    Every other field is optional; ``None`` means "not supplied".
    """

    applicant_id: str | None
    monthly_income: Money | None
    employment_type: EmploymentType | None
    employment_months: int | None = None
    account_age_days: int | None = None
    active_loans: int | None = None
    kyc: KycFlags | None = None
    income_verified: bool | None = None
    employer_verified: bool | None = None


@dataclass(frozen=True)
class CreditProfile:
    """Recomputable scoring snapshot for an applicant."""

    applicant_id: str
    monthly_income: Money
    employment_type: EmploymentType
    employment_months: int | None
    kyc_completed: int
    account_age_days: int | None
    active_loans: int | None
    score: int
    grade: str
    risk_level: RiskLevel
    computed_on: date
    valid_until: date
    factors: dict[str, int] = field(default_factory=dict)

    def is_valid_on(self, on: date) -> bool:
        return self.computed_on <= on <= self.valid_until


@dataclass(frozen=True)
class PriceQuote:
    """Interest rate and eligibility ceiling for a loan request."""

    loan_type: LoanType
    interest_rate: Decimal
    max_eligible_amount: Money
    base_rate: Decimal
    tenure_adjustment: Decimal
    score_adjustment: Decimal


@dataclass(frozen=True)
class FeeBreakdown:
    """Upfront charges deducted at disbursement."""

    processing_fee: Money
    gst_on_fee: Money

    @property
    def total(self) -> Money:
        return self.processing_fee + self.gst_on_fee
