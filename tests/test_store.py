"""Tests for the in-memory lending repositories."""

from datetime import date
from decimal import Decimal

import pytest

from lending_core.engine.amortization import generate_schedule
from lending_core.engine.provisioning import compute_provisioning
from lending_core.config import ProvisioningPolicy
from lending_core.exceptions import EntityNotFoundError, StateConflict
from lending_core.models import (
    CollectionCase,
    CollectionStage,
    DelinquencyBucket,
    DelinquencyRecord,
    Loan,
    LoanStatus,
    Money,
    Schedule,
    Tenure,
)
from lending_core.store import LendingStore


@pytest.fixture
def store() -> LendingStore:
    return LendingStore()


def _schedule(loan_id: str, version: int) -> Schedule:
    return generate_schedule(
        Money.of(10000), Decimal("0.12"), Tenure(3), date(2024, 1, 1), loan_id=loan_id, version=version
    )


def _record(loan_id: str, as_of: date, dpd: int = 0) -> DelinquencyRecord:
    return DelinquencyRecord(
        loan_id=loan_id,
        as_of=as_of,
        dpd=dpd,
        bucket=DelinquencyBucket.CURRENT if dpd == 0 else DelinquencyBucket.DPD_1_30,
        outstanding=Money.of(100),
        overdue_amount=Money.zero(),
        is_npa=False,
        schedule_version=1,
    )


class TestLoanRepository:
    """Tests for LoanRepository."""

    def test_add_and_get(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)

        loan = store.loans.get(sample_loan.loan_id)

        assert loan.loan_id == sample_loan.loan_id
        assert loan is not sample_loan

    def test_duplicate(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)
        with pytest.raises(StateConflict):
            store.loans.add(sample_loan)

    def test_get_missing(self, store: LendingStore) -> None:
        with pytest.raises(EntityNotFoundError):
            store.loans.get("nope")

    def test_reads_are_copies(self, store: LendingStore, sample_loan: Loan) -> None:
        """Test mutating a read copy does not touch the stored loan."""
        store.loans.add(sample_loan)

        copy = store.loans.get(sample_loan.loan_id)
        copy.status = LoanStatus.COMPLETED

        assert store.loans.get(sample_loan.loan_id).status == LoanStatus.ACTIVE

    def test_save_bumps_version(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)
        loan = store.loans.get(sample_loan.loan_id)
        loan.status = LoanStatus.COMPLETED

        store.loans.save(loan, expected_version=0)

        stored = store.loans.get(sample_loan.loan_id)
        assert stored.version == 1
        assert stored.status == LoanStatus.COMPLETED

    def test_stale_save(self, store: LendingStore, sample_loan: Loan) -> None:
        """Test a save based on an old read is refused."""
        store.loans.add(sample_loan)
        first = store.loans.get(sample_loan.loan_id)
        second = store.loans.get(sample_loan.loan_id)
        store.loans.save(first, expected_version=0)

        with pytest.raises(StateConflict, match="modified concurrently"):
            store.loans.save(second, expected_version=0)

    def test_find_and_ids(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)

        assert len(store.loans.find()) == 1
        assert store.loans.find({LoanStatus.NPA}) == []
        assert store.loans.ids({LoanStatus.ACTIVE}) == [sample_loan.loan_id]

    def test_for_applicant(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)
        assert [loan.loan_id for loan in store.loans.for_applicant("app-001")] == [sample_loan.loan_id]
        assert store.loans.for_applicant("other") == []


class TestScheduleRepository:
    """Tests for ScheduleRepository."""

    def test_versions(self, store: LendingStore) -> None:
        store.schedules.add(_schedule("L1", 1))
        store.schedules.add(_schedule("L1", 2))

        assert store.schedules.current("L1").version == 2
        assert store.schedules.get("L1", 1).version == 1
        assert [s.version for s in store.schedules.versions("L1")] == [1, 2]

    def test_version_gap(self, store: LendingStore) -> None:
        with pytest.raises(StateConflict):
            store.schedules.add(_schedule("L1", 2))

    def test_get_entry(self, store: LendingStore) -> None:
        schedule = store.schedules.add(_schedule("L1", 1))
        entry = schedule.entries[0]
        assert store.schedules.get_entry(entry.entry_id) is entry

    def test_discard_latest(self, store: LendingStore) -> None:
        store.schedules.add(_schedule("L1", 1))
        store.schedules.add(_schedule("L1", 2))

        store.schedules.discard("L1", 2)

        assert store.schedules.current("L1").version == 1
        with pytest.raises(EntityNotFoundError):
            store.schedules.get_entry("L1-v2-001")

    def test_discard_only_version(self, store: LendingStore) -> None:
        store.schedules.add(_schedule("L1", 1))
        store.schedules.discard("L1", 1)
        assert store.schedules.current("L1") is None

    def test_missing(self, store: LendingStore) -> None:
        assert store.schedules.current("L1") is None
        with pytest.raises(EntityNotFoundError):
            store.schedules.get("L1", 1)


class TestDelinquencyRepository:
    """Tests for DelinquencyRepository."""

    def test_upsert_replaces(self, store: LendingStore) -> None:
        """Test re-running a date replaces the record."""
        store.delinquency.upsert(_record("L1", date(2024, 3, 1), dpd=0))
        store.delinquency.upsert(_record("L1", date(2024, 3, 1), dpd=5))

        assert len(store.delinquency) == 1
        assert store.delinquency.get("L1", date(2024, 3, 1)).dpd == 5

    def test_queries(self, store: LendingStore) -> None:
        store.delinquency.upsert(_record("L2", date(2024, 3, 1)))
        store.delinquency.upsert(_record("L1", date(2024, 3, 1)))
        store.delinquency.upsert(_record("L1", date(2024, 4, 1), dpd=3))

        assert [r.loan_id for r in store.delinquency.for_date(date(2024, 3, 1))] == ["L1", "L2"]
        assert [r.as_of for r in store.delinquency.for_loan("L1")] == [date(2024, 3, 1), date(2024, 4, 1)]
        assert store.delinquency.latest("L1").dpd == 3
        assert store.delinquency.latest("L1", on_or_before=date(2024, 3, 15)).dpd == 0
        assert store.delinquency.latest("L3") is None
        assert store.delinquency.dates() == [date(2024, 3, 1), date(2024, 4, 1)]


class TestCollectionCaseRepository:
    """Tests for CollectionCaseRepository."""

    def _case(self, case_id: str, stage: CollectionStage = CollectionStage.SOFT) -> CollectionCase:
        return CollectionCase(
            case_id=case_id,
            loan_id="L1",
            stage=stage,
            bucket=DelinquencyBucket.DPD_1_30,
            dpd=5,
            outstanding=Money.of(100),
            opened_on=date(2024, 3, 1),
        )

    def test_open_for_loan(self, store: LendingStore) -> None:
        store.cases.add(self._case("c1", CollectionStage.CLOSED))
        store.cases.add(self._case("c2"))

        assert store.cases.open_for_loan("L1").case_id == "c2"
        assert [c.case_id for c in store.cases.open_cases()] == ["c2"]
        assert len(store.cases.for_loan("L1")) == 2

    def test_missing(self, store: LendingStore) -> None:
        assert store.cases.open_for_loan("L9") is None
        with pytest.raises(EntityNotFoundError):
            store.cases.get("c9")


class TestReportsAndSummary:
    """Tests for ProvisioningReportRepository and LendingStore.summary."""

    def test_reports(self, store: LendingStore) -> None:
        policy = ProvisioningPolicy()
        store.reports.save(compute_provisioning([], policy, "p", date(2024, 3, 1)))
        store.reports.save(compute_provisioning([], policy, "p", date(2024, 4, 1)))

        assert store.reports.latest().as_of == date(2024, 4, 1)
        assert store.reports.get(date(2024, 5, 1)) is None

    def test_summary(self, store: LendingStore, sample_loan: Loan) -> None:
        store.loans.add(sample_loan)
        store.schedules.add(_schedule(sample_loan.loan_id, 1))

        summary = store.summary()

        assert summary["loans"] == 1
        assert summary["scheduled_loans"] == 1
        assert summary["collection_cases"] == 0
