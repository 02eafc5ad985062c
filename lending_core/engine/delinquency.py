"""Days-past-due classification."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from lending_core.models.delinquency import DelinquencyRecord
from lending_core.models.enums import InstallmentStatus, LoanStatus
from lending_core.models.loan import Loan, Schedule, ScheduleEntry
from lending_core.models.money import money_sum

if TYPE_CHECKING:
    from lending_core.config import DelinquencyPolicy

logger = logging.getLogger(__name__)


class DelinquencyClassifier:
    """Classifies a loan's delinquency as of a date.

    DPD is counted from the earliest unpaid entry that fell due before
    ``as_of``; an entry due on ``as_of`` itself is not yet late. The
    classifier is pure: the same loan, schedule and date always give the
    same record.
    """

    def __init__(self, policy: DelinquencyPolicy) -> None:
        self.policy = policy

    def classify(self, loan: Loan, schedule: Schedule, as_of: date) -> DelinquencyRecord:
        """Return the delinquency record of ``loan`` as of ``as_of``."""
        unpaid = schedule.unpaid()
        late = [entry for entry in unpaid if entry.due_date < as_of]

        dpd = (as_of - min(entry.due_date for entry in late)).days if late else 0
        record = DelinquencyRecord(
            loan_id=loan.loan_id,
            as_of=as_of,
            dpd=dpd,
            bucket=self.policy.bucket_table.lookup(dpd),
            outstanding=money_sum((entry.total for entry in unpaid), loan.currency),
            overdue_amount=money_sum((entry.total for entry in late), loan.currency),
            is_npa=dpd >= self.policy.npa_threshold_days,
            schedule_version=schedule.version,
        )
        logger.debug("Classified %s as of %s: %d DPD (%s)", loan.loan_id, as_of, dpd, record.bucket.value)
        return record

    @staticmethod
    def overdue_entries(schedule: Schedule, as_of: date) -> list[ScheduleEntry]:
        """Entries past due on ``as_of`` that are not yet marked OVERDUE."""
        return [
            entry
            for entry in schedule.entries
            if entry.status == InstallmentStatus.PENDING and entry.due_date < as_of
        ]

    @staticmethod
    def status_path(current: LoanStatus, record: DelinquencyRecord) -> list[LoanStatus]:
        """Statuses a servicing loan must pass through to match ``record``.

        An NPA loan is only upgraded once fully cured; a partial cure leaves
        it NPA.
        """
        if current not in (LoanStatus.ACTIVE, LoanStatus.OVERDUE, LoanStatus.NPA):
            return []

        if record.is_npa:
            target = LoanStatus.NPA
        elif record.dpd > 0:
            target = LoanStatus.OVERDUE
        else:
            target = LoanStatus.ACTIVE

        if current == target:
            return []
        if current == LoanStatus.ACTIVE and target == LoanStatus.NPA:
            return [LoanStatus.OVERDUE, LoanStatus.NPA]
        if current == LoanStatus.NPA and target == LoanStatus.OVERDUE:
            return []
        return [target]
