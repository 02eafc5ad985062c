"""Tests for days-past-due classification."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from lending_core.config import DelinquencyPolicy
from lending_core.engine.amortization import generate_schedule
from lending_core.engine.delinquency import DelinquencyClassifier
from lending_core.models import (
    DelinquencyBucket,
    DelinquencyRecord,
    InstallmentStatus,
    Loan,
    LoanStatus,
    Money,
    Schedule,
    Tenure,
)


@pytest.fixture
def classifier() -> DelinquencyClassifier:
    return DelinquencyClassifier(DelinquencyPolicy())


@pytest.fixture
def schedule(sample_loan_id: str) -> Schedule:
    """12 monthly entries, first due 2024-02-01."""
    return generate_schedule(
        Money.of(100000), Decimal("0.18"), Tenure(12), date(2024, 1, 1), loan_id=sample_loan_id
    )


def _record(dpd: int, is_npa: bool = False) -> DelinquencyRecord:
    return DelinquencyRecord(
        loan_id="x",
        as_of=date(2024, 6, 1),
        dpd=dpd,
        bucket=DelinquencyPolicy().bucket_table.lookup(dpd),
        outstanding=Money.of(1),
        overdue_amount=Money.of(1),
        is_npa=is_npa,
        schedule_version=1,
    )


class TestClassify:
    """Tests for DelinquencyClassifier.classify."""

    def test_single_entry_45_days_late(self, classifier: DelinquencyClassifier, sample_loan: Loan) -> None:
        """Test one unpaid entry due 45 days before the as-of date."""
        schedule = generate_schedule(Money.of(10000), Decimal("0.18"), Tenure(1), date(2024, 1, 1))
        as_of = schedule.entries[0].due_date + timedelta(days=45)

        record = classifier.classify(sample_loan, schedule, as_of)

        assert record.dpd == 45
        assert record.bucket == DelinquencyBucket.DPD_31_60
        assert record.is_npa is False
        assert record.overdue_amount == schedule.entries[0].total

    def test_current_before_first_due(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        record = classifier.classify(sample_loan, schedule, date(2024, 1, 20))

        assert record.dpd == 0
        assert record.bucket == DelinquencyBucket.CURRENT
        assert record.outstanding == schedule.total_payable
        assert record.overdue_amount.is_zero()

    def test_due_today_is_not_late(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        assert classifier.classify(sample_loan, schedule, date(2024, 2, 1)).dpd == 0
        assert classifier.classify(sample_loan, schedule, date(2024, 2, 2)).dpd == 1

    def test_counts_from_oldest_unpaid(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        schedule.entries[0].status = InstallmentStatus.PAID

        record = classifier.classify(sample_loan, schedule, date(2024, 4, 11))

        # Entries due 2024-03-01 and 2024-04-01 are unpaid
        assert record.dpd == 41
        assert record.overdue_amount == schedule.entries[1].total + schedule.entries[2].total

    def test_npa_threshold(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        first_due = schedule.entries[0].due_date

        assert not classifier.classify(sample_loan, schedule, first_due + timedelta(days=90)).is_npa
        record = classifier.classify(sample_loan, schedule, first_due + timedelta(days=91))
        assert record.is_npa
        assert record.bucket == DelinquencyBucket.DPD_91_180

    def test_configurable_npa_threshold(self, sample_loan: Loan, schedule: Schedule) -> None:
        classifier = DelinquencyClassifier(DelinquencyPolicy(npa_threshold_days=90))
        record = classifier.classify(sample_loan, schedule, schedule.entries[0].due_date + timedelta(days=90))
        assert record.is_npa

    def test_idempotent(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        as_of = date(2024, 5, 20)
        assert classifier.classify(sample_loan, schedule, as_of) == classifier.classify(
            sample_loan, schedule, as_of
        )

    def test_fully_paid_is_current(
        self, classifier: DelinquencyClassifier, sample_loan: Loan, schedule: Schedule
    ) -> None:
        for entry in schedule.entries:
            entry.status = InstallmentStatus.PAID

        record = classifier.classify(sample_loan, schedule, date(2026, 1, 1))

        assert record.dpd == 0
        assert record.outstanding.is_zero()

    def test_overdue_entries(self, classifier: DelinquencyClassifier, schedule: Schedule) -> None:
        late = classifier.overdue_entries(schedule, date(2024, 3, 15))
        assert [entry.sequence for entry in late] == [1, 2]


class TestStatusPath:
    """Tests for classifier-driven status changes."""

    def test_active_to_overdue(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.ACTIVE, _record(10)) == [LoanStatus.OVERDUE]

    def test_active_to_npa_passes_overdue(self) -> None:
        path = DelinquencyClassifier.status_path(LoanStatus.ACTIVE, _record(120, is_npa=True))
        assert path == [LoanStatus.OVERDUE, LoanStatus.NPA]

    def test_overdue_cured(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.OVERDUE, _record(0)) == [LoanStatus.ACTIVE]

    def test_npa_partial_cure_stays_npa(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.NPA, _record(20)) == []

    def test_npa_full_cure(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.NPA, _record(0)) == [LoanStatus.ACTIVE]

    def test_unchanged(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.OVERDUE, _record(40)) == []

    def test_non_servicing_loans_ignored(self) -> None:
        assert DelinquencyClassifier.status_path(LoanStatus.APPROVED, _record(40)) == []
