"""Synthetic loan applicants and applications."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator

from lending_core.config import PricingPolicy
from lending_core.generators.base import BaseGenerator
from lending_core.models import (
    ApplicantSignals,
    EmploymentType,
    KycFlags,
    LoanType,
    Money,
    PeriodUnit,
    Tenure,
)


@dataclass(frozen=True)
class LoanApplication:
    """A synthetic loan request ready for ``LendingService.submit_application``."""

    applicant_name: str
    email: str
    signals: ApplicantSignals
    loan_type: LoanType
    requested_amount: Money
    tenure: Tenure
    purpose: str


class ApplicantGenerator(BaseGenerator):
    """Generate synthetic applicants with scoring signals and loan requests."""

    EMPLOYMENT_TYPES = list(EmploymentType)
    EMPLOYMENT_WEIGHTS = [0.58, 0.24, 0.08, 0.05, 0.05]

    # Monthly income range by employment type (INR)
    INCOME_RANGES = {
        EmploymentType.SALARIED: (15000, 400000),
        EmploymentType.SELF_EMPLOYED: (12000, 600000),
        EmploymentType.RETIRED: (10000, 150000),
        EmploymentType.STUDENT: (0, 25000),
        EmploymentType.UNEMPLOYED: (0, 10000),
    }

    LOAN_TYPES = [
        LoanType.PERSONAL,
        LoanType.SALARY_ADVANCE,
        LoanType.GOLD,
        LoanType.VEHICLE,
        LoanType.EDUCATION,
        LoanType.BUSINESS,
        LoanType.HOME,
    ]
    LOAN_TYPE_WEIGHTS = [0.40, 0.22, 0.12, 0.10, 0.07, 0.05, 0.04]

    PURPOSES = {
        LoanType.PERSONAL: ["Medical expenses", "Wedding", "Home renovation", "Travel", "Debt consolidation"],
        LoanType.SALARY_ADVANCE: ["Rent", "Emergency expenses", "School fees"],
        LoanType.GOLD: ["Working capital", "Agricultural inputs", "Family function"],
        LoanType.VEHICLE: ["Two-wheeler purchase", "Car purchase"],
        LoanType.EDUCATION: ["Undergraduate tuition", "Postgraduate tuition", "Professional course"],
        LoanType.BUSINESS: ["Inventory purchase", "Equipment purchase", "Shop expansion"],
        LoanType.HOME: ["Home purchase", "Home construction"],
    }

    def __init__(
        self,
        seed: int | None = None,
        pricing: PricingPolicy | None = None,
        over_ask_rate: float = 0.05,
    ) -> None:
        """Initialize the generator.

        Parameters
        ----------
        seed : int | None
            Random seed for reproducibility.
        pricing : PricingPolicy | None
            Product terms used to keep requests realistic.
        over_ask_rate : float
            Share of applications asking for more than the income ceiling.
        """
        super().__init__(seed)
        self.pricing = pricing or PricingPolicy()
        self.over_ask_rate = over_ask_rate

    def generate_signals(self) -> ApplicantSignals:
        """Generate scoring signals for one applicant."""
        rng = self.rng
        employment = rng.choices(self.EMPLOYMENT_TYPES, weights=self.EMPLOYMENT_WEIGHTS, k=1)[0]

        low, high = self.INCOME_RANGES[employment]
        # Log-normal income, median around 36,000
        income = rng.lognormvariate(mu=10.5, sigma=0.6)
        income = max(low, min(income, high))

        employed = employment in (EmploymentType.SALARIED, EmploymentType.SELF_EMPLOYED)
        kyc = KycFlags(
            pan_verified=rng.random() < 0.92,
            aadhaar_verified=rng.random() < 0.90,
            address_verified=rng.random() < 0.75,
            bank_account_verified=rng.random() < 0.85,
        )

        return ApplicantSignals(
            applicant_id=self.fake.uuid4(),
            monthly_income=Money.of(Decimal(str(round(income, 2)))),
            employment_type=employment,
            employment_months=rng.randint(0, 240) if employed else None,
            account_age_days=rng.randint(0, 3000),
            active_loans=rng.choices([0, 1, 2, 3, 5], weights=[0.45, 0.30, 0.15, 0.07, 0.03], k=1)[0],
            kyc=kyc,
            income_verified=rng.random() < 0.7,
            employer_verified=employment == EmploymentType.SALARIED and rng.random() < 0.6,
        )

    def generate(self) -> LoanApplication:
        """Generate a single loan application."""
        rng = self.rng
        signals = self.generate_signals()
        loan_type = rng.choices(self.LOAN_TYPES, weights=self.LOAN_TYPE_WEIGHTS, k=1)[0]
        terms = self.pricing.terms_for(loan_type)

        income_ceiling = signals.monthly_income.to_decimal() * terms.income_multiple
        ceiling = min(income_ceiling, terms.max_amount)
        if rng.random() < self.over_ask_rate or ceiling < terms.min_amount:
            amount = ceiling * Decimal(str(round(rng.uniform(1.1, 1.5), 2)))
        else:
            fraction = Decimal(str(round(rng.uniform(0.2, 1.0), 2)))
            amount = terms.min_amount + (ceiling - terms.min_amount) * fraction
        # Requests are made in round thousands
        amount = max(Decimal("1000"), (amount / 1000).to_integral_value() * 1000)

        months = rng.randint(terms.min_tenure_months, min(terms.max_tenure_months, 120))

        return LoanApplication(
            applicant_name=self.fake.name(),
            email=self.fake.email(),
            signals=signals,
            loan_type=loan_type,
            requested_amount=Money.of(amount),
            tenure=Tenure(months, PeriodUnit.MONTH),
            purpose=rng.choice(self.PURPOSES[loan_type]),
        )

    def generate_batch(self, count: int) -> Iterator[LoanApplication]:
        """Generate multiple loan applications.

        Parameters
        ----------
        count : int
            Number of applications to generate.

        Yields
        ------
        LoanApplication
            Generated applications.
        """
        for _ in range(count):
            yield self.generate()
