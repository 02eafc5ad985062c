"""In-memory repositories for lending entities.

Each entity has its own repository and each is queryable by loan id. Loans
are copied on read and written back through ``save`` with an optimistic
version check, so a failed operation never leaves a half-applied loan
behind.
"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import date

from lending_core.exceptions import EntityNotFoundError, StateConflict
from lending_core.models import (
    CollectionCase,
    DelinquencyRecord,
    Loan,
    LoanStatus,
    ProvisioningReport,
    Schedule,
    ScheduleEntry,
)


@dataclass
class LoanRepository:
    """Loans keyed by id, with an applicant index."""

    _loans: dict[str, Loan] = field(default_factory=dict)
    _applicant_loans: dict[str, list[str]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, loan: Loan) -> Loan:
        """Add a new loan."""
        with self._lock:
            if loan.loan_id in self._loans:
                raise StateConflict(f"Loan {loan.loan_id} already exists", loan_id=loan.loan_id)
            self._loans[loan.loan_id] = copy.deepcopy(loan)
            self._applicant_loans.setdefault(loan.applicant_id, []).append(loan.loan_id)
        return loan

    def get(self, loan_id: str) -> Loan:
        """Get a working copy of a loan."""
        with self._lock:
            try:
                return copy.deepcopy(self._loans[loan_id])
            except KeyError:
                raise EntityNotFoundError(f"Loan {loan_id} not found") from None

    def save(self, loan: Loan, expected_version: int) -> Loan:
        """Store ``loan`` if nobody saved it since ``expected_version`` was read."""
        with self._lock:
            stored = self._loans.get(loan.loan_id)
            if stored is None:
                raise EntityNotFoundError(f"Loan {loan.loan_id} not found")
            if stored.version != expected_version:
                raise StateConflict(
                    f"Loan {loan.loan_id} was modified concurrently "
                    f"(expected version {expected_version}, found {stored.version})",
                    loan_id=loan.loan_id,
                    current=stored.status,
                    requested=loan.status,
                )
            loan.version = expected_version + 1
            self._loans[loan.loan_id] = copy.deepcopy(loan)
        return loan

    def find(self, statuses: set[LoanStatus] | None = None) -> list[Loan]:
        """Working copies of all loans, optionally filtered by status."""
        with self._lock:
            loans = [
                copy.deepcopy(loan)
                for loan in self._loans.values()
                if statuses is None or loan.status in statuses
            ]
        return loans

    def ids(self, statuses: set[LoanStatus] | None = None) -> list[str]:
        with self._lock:
            return [
                loan_id
                for loan_id, loan in self._loans.items()
                if statuses is None or loan.status in statuses
            ]

    def for_applicant(self, applicant_id: str) -> list[Loan]:
        """All loans of an applicant."""
        with self._lock:
            loan_ids = list(self._applicant_loans.get(applicant_id, []))
        return [self.get(loan_id) for loan_id in loan_ids]

    def __len__(self) -> int:
        return len(self._loans)


@dataclass
class ScheduleRepository:
    """Versioned repayment schedules per loan."""

    _versions: dict[str, list[Schedule]] = field(default_factory=dict)
    _entries: dict[str, ScheduleEntry] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, schedule: Schedule) -> Schedule:
        """Add the next version of a loan's schedule."""
        with self._lock:
            versions = self._versions.setdefault(schedule.loan_id, [])
            expected = len(versions) + 1
            if schedule.version != expected:
                raise StateConflict(
                    f"Schedule version {schedule.version} for loan {schedule.loan_id} "
                    f"does not follow version {expected - 1}",
                    loan_id=schedule.loan_id,
                )
            versions.append(schedule)
            for entry in schedule.entries:
                self._entries[entry.entry_id] = entry
        return schedule

    def discard(self, loan_id: str, version: int) -> None:
        """Remove the latest version if it is ``version``."""
        with self._lock:
            versions = self._versions.get(loan_id, [])
            if versions and versions[-1].version == version:
                removed = versions.pop()
                for entry in removed.entries:
                    self._entries.pop(entry.entry_id, None)
            if not versions:
                self._versions.pop(loan_id, None)

    def current(self, loan_id: str) -> Schedule | None:
        """Latest schedule version of a loan, if any."""
        with self._lock:
            versions = self._versions.get(loan_id)
            return versions[-1] if versions else None

    def get(self, loan_id: str, version: int) -> Schedule:
        with self._lock:
            for schedule in self._versions.get(loan_id, []):
                if schedule.version == version:
                    return schedule
        raise EntityNotFoundError(f"Schedule version {version} of loan {loan_id} not found")

    def versions(self, loan_id: str) -> list[Schedule]:
        """All schedule versions of a loan, oldest first."""
        with self._lock:
            return list(self._versions.get(loan_id, []))

    def get_entry(self, entry_id: str) -> ScheduleEntry:
        with self._lock:
            try:
                return self._entries[entry_id]
            except KeyError:
                raise EntityNotFoundError(f"Schedule entry {entry_id} not found") from None

    def __len__(self) -> int:
        return len(self._versions)


@dataclass
class DelinquencyRepository:
    """Delinquency records, one per loan per as-of date."""

    _records: dict[str, dict[date, DelinquencyRecord]] = field(default_factory=dict)
    _by_date: dict[date, dict[str, DelinquencyRecord]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def upsert(self, record: DelinquencyRecord) -> None:
        """Store ``record``, replacing any earlier record for the same loan and date."""
        with self._lock:
            self._records.setdefault(record.loan_id, {})[record.as_of] = record
            self._by_date.setdefault(record.as_of, {})[record.loan_id] = record

    def get(self, loan_id: str, as_of: date) -> DelinquencyRecord | None:
        with self._lock:
            return self._records.get(loan_id, {}).get(as_of)

    def for_loan(self, loan_id: str) -> list[DelinquencyRecord]:
        """All records of a loan, oldest first."""
        with self._lock:
            records = self._records.get(loan_id, {})
            return [records[as_of] for as_of in sorted(records)]

    def for_date(self, as_of: date) -> list[DelinquencyRecord]:
        """All records for one as-of date, ordered by loan id."""
        with self._lock:
            records = self._by_date.get(as_of, {})
            return [records[loan_id] for loan_id in sorted(records)]

    def latest(self, loan_id: str, on_or_before: date | None = None) -> DelinquencyRecord | None:
        """Most recent record of a loan, optionally not after ``on_or_before``."""
        with self._lock:
            dates = [
                as_of
                for as_of in self._records.get(loan_id, {})
                if on_or_before is None or as_of <= on_or_before
            ]
            return self._records[loan_id][max(dates)] if dates else None

    def dates(self) -> list[date]:
        with self._lock:
            return sorted(self._by_date)

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())


@dataclass
class CollectionCaseRepository:
    """Collection cases with a loan index."""

    _cases: dict[str, CollectionCase] = field(default_factory=dict)
    _loan_cases: dict[str, list[str]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, case: CollectionCase) -> CollectionCase:
        with self._lock:
            if case.case_id in self._cases:
                raise StateConflict(f"Collection case {case.case_id} already exists", loan_id=case.loan_id)
            self._cases[case.case_id] = case
            self._loan_cases.setdefault(case.loan_id, []).append(case.case_id)
        return case

    def get(self, case_id: str) -> CollectionCase:
        with self._lock:
            try:
                return self._cases[case_id]
            except KeyError:
                raise EntityNotFoundError(f"Collection case {case_id} not found") from None

    def for_loan(self, loan_id: str) -> list[CollectionCase]:
        """All cases of a loan, oldest first."""
        with self._lock:
            return [self._cases[case_id] for case_id in self._loan_cases.get(loan_id, [])]

    def open_for_loan(self, loan_id: str) -> CollectionCase | None:
        """The loan's open case, if it has one."""
        for case in reversed(self.for_loan(loan_id)):
            if case.is_open:
                return case
        return None

    def open_cases(self) -> list[CollectionCase]:
        with self._lock:
            return [case for case in self._cases.values() if case.is_open]

    def __len__(self) -> int:
        return len(self._cases)


@dataclass
class ProvisioningReportRepository:
    """Provisioning reports keyed by as-of date; reruns replace."""

    _reports: dict[date, ProvisioningReport] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save(self, report: ProvisioningReport) -> None:
        with self._lock:
            self._reports[report.as_of] = report

    def get(self, as_of: date) -> ProvisioningReport | None:
        with self._lock:
            return self._reports.get(as_of)

    def latest(self) -> ProvisioningReport | None:
        with self._lock:
            return self._reports[max(self._reports)] if self._reports else None

    def __len__(self) -> int:
        return len(self._reports)


@dataclass
class LendingStore:
    """All lending repositories behind one handle."""

    loans: LoanRepository = field(default_factory=LoanRepository)
    schedules: ScheduleRepository = field(default_factory=ScheduleRepository)
    delinquency: DelinquencyRepository = field(default_factory=DelinquencyRepository)
    cases: CollectionCaseRepository = field(default_factory=CollectionCaseRepository)
    reports: ProvisioningReportRepository = field(default_factory=ProvisioningReportRepository)

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "loans": len(self.loans),
            "scheduled_loans": len(self.schedules),
            "delinquency_records": len(self.delinquency),
            "collection_cases": len(self.cases),
            "provisioning_reports": len(self.reports),
        }
