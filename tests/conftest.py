"""Pytest configuration and fixtures."""

from datetime import date, datetime
from typing import Callable

import pytest

from lending_core.config import LendingConfig
from lending_core.models import (
    ApplicantSignals,
    EmploymentType,
    FundsTransferConfirmation,
    KycFlags,
    Loan,
    LoanStatus,
    LoanType,
    Money,
    Tenure,
)
from lending_core.service import LendingService

APPLIED_ON = date(2024, 1, 15)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def sample_loan_id() -> str:
    """Sample loan ID."""
    return "loan-test-001"


@pytest.fixture
def config() -> LendingConfig:
    """Default lending configuration."""
    return LendingConfig()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed clock so history timestamps are predictable."""
    return lambda: datetime(2024, 1, 15, 10, 0, 0)


@pytest.fixture
def service(config: LendingConfig, clock: Callable[[], datetime]) -> LendingService:
    """Lending service over a fresh in-memory store."""
    return LendingService(config, clock=clock)


@pytest.fixture
def strong_signals() -> ApplicantSignals:
    """Applicant scoring 810 (grade A+, LOW risk) with 60,000 monthly income."""
    return ApplicantSignals(
        applicant_id="app-strong",
        monthly_income=Money.of(60000),
        employment_type=EmploymentType.SALARIED,
        employment_months=72,
        account_age_days=1500,
        active_loans=0,
        kyc=KycFlags(True, True, True, True),
    )


@pytest.fixture
def moderate_signals() -> ApplicantSignals:
    """Applicant scoring 665 (grade C, MEDIUM risk) with 40,000 monthly income."""
    return ApplicantSignals(
        applicant_id="app-moderate",
        monthly_income=Money.of(40000),
        employment_type=EmploymentType.SELF_EMPLOYED,
        employment_months=24,
        account_age_days=200,
        active_loans=1,
        kyc=KycFlags(pan_verified=True, aadhaar_verified=True),
    )


@pytest.fixture
def active_loan(
    service: LendingService, strong_signals: ApplicantSignals
) -> Callable[..., str]:
    """Factory that books an auto-approved loan and disburses it on the application date."""

    def _make(
        amount: int = 50000,
        months: int = 6,
        loan_type: LoanType = LoanType.SALARY_ADVANCE,
        applied_on: date = APPLIED_ON,
    ) -> str:
        decision = service.submit_application(
            Money.of(amount), Tenure(months), loan_type, strong_signals, applied_on=applied_on
        )
        assert decision.status == LoanStatus.APPROVED
        service.confirm_funds_transfer(
            FundsTransferConfirmation(decision.loan_id, True, "UTR0001", confirmed_on=applied_on)
        )
        return decision.loan_id

    return _make


@pytest.fixture
def sample_loan(sample_loan_id: str) -> Loan:
    """An ACTIVE personal loan entity, not stored anywhere."""
    return Loan(
        loan_id=sample_loan_id,
        applicant_id="app-001",
        loan_type=LoanType.PERSONAL,
        requested_amount=Money.of(100000),
        tenure=Tenure(12),
        status=LoanStatus.ACTIVE,
        approved_amount=Money.of(100000),
    )
