"""Loan book scenario: a synthetic portfolio built through the lending service."""

from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from typing import Any

from lending_core.config import LendingConfig
from lending_core.exceptions import PolicyViolation
from lending_core.generators import ApplicantGenerator, PaymentBehavior
from lending_core.models import (
    FundsTransferConfirmation,
    LoanStatus,
    LoanType,
    UnderwritingDecision,
    money_sum,
)
from lending_core.service import LendingService, ValuationResult

logger = logging.getLogger(__name__)

UNDERWRITER = "underwriter"


class LoanBookScenario:
    """Generate a loan book with realistic origination and repayment.

    Every application goes through ``LendingService``:

    - auto-approved or manually underwritten (approve/reject)
    - disbursed a few days after approval
    - repaid according to a borrower behavior (on time, late, defaulting)

    ``run_valuation`` then classifies the book as of the reference date.
    """

    def __init__(
        self,
        num_applicants: int = 200,
        as_of: date | None = None,
        history_days: int = 540,
        manual_approval_rate: float = 0.70,
        on_time_rate: float = 0.85,
        late_rate: float = 0.10,
        default_rate: float = 0.05,
        seed: int | None = None,
        *,
        config: LendingConfig | None = None,
    ) -> None:
        """Initialize the scenario.

        Parameters
        ----------
        num_applicants : int
            Number of applications to submit.
        as_of : date | None
            Reference date; applications are spread over the preceding
            ``history_days``. Defaults to today.
        history_days : int
            Length of the origination window.
        manual_approval_rate : float
            Share of manually reviewed applications the underwriter approves.
        on_time_rate : float
            Share of borrowers who pay on time.
        late_rate : float
            Share of borrowers who pay late.
        default_rate : float
            Share of borrowers who stop paying.
        seed : int | None
            Random seed for reproducibility.
        config : LendingConfig | None
            Lending policies; defaults to ``LendingConfig()``.
        """
        self.num_applicants = num_applicants
        self.as_of = as_of or date.today()
        self.history_days = history_days
        self.manual_approval_rate = manual_approval_rate
        self.on_time_rate = on_time_rate
        self.late_rate = late_rate
        self.default_rate = default_rate
        self.seed = seed
        self.config = config or LendingConfig(seed=seed)

        self._rng = random.Random(seed)
        self.service = LendingService(self.config)
        self._applicant_gen = ApplicantGenerator(seed=seed, pricing=self.config.pricing)
        self._payment_behavior = PaymentBehavior(seed=seed)

        self.rejected_on_submission = 0
        self.behaviors: dict[str, str] = {}
        self.valuation: ValuationResult | None = None

    def generate(self) -> LendingService:
        """Submit, underwrite, disburse and repay every application.

        Returns
        -------
        LendingService
            Service holding the generated loan book.
        """
        logger.info(
            "Starting loan book scenario: %d applicants as of %s", self.num_applicants, self.as_of
        )

        for application in self._applicant_gen.generate_batch(self.num_applicants):
            applied_on = self.as_of - timedelta(days=self._rng.randint(30, self.history_days))
            try:
                decision = self.service.submit_application(
                    application.requested_amount,
                    application.tenure,
                    application.loan_type,
                    application.signals,
                    purpose=application.purpose,
                    applied_on=applied_on,
                )
            except PolicyViolation:
                self.rejected_on_submission += 1
                continue

            approved_on = applied_on
            if decision.status == LoanStatus.PENDING:
                approved_on = applied_on + timedelta(days=self._rng.randint(1, 3))
                if self._rng.random() >= self.manual_approval_rate:
                    self.service.decide_application(
                        decision.loan_id, UnderwritingDecision.REJECT, UNDERWRITER, "declined on review", on=approved_on
                    )
                    continue
                self.service.decide_application(
                    decision.loan_id, UnderwritingDecision.APPROVE, UNDERWRITER, "approved on review", on=approved_on
                )

            disbursed_on = min(self.as_of, approved_on + timedelta(days=self._rng.randint(0, 2)))
            self.service.confirm_funds_transfer(
                FundsTransferConfirmation(
                    loan_id=decision.loan_id,
                    success=True,
                    reference=f"UTR{self._rng.randint(10**11, 10**12 - 1)}",
                    confirmed_on=disbursed_on,
                )
            )
            self._repay(decision.loan_id)

        logger.info("Generated loan book: %s", self.service.store.summary())
        return self.service

    def _repay(self, loan_id: str) -> None:
        behavior = self._payment_behavior.choose_behavior(self.on_time_rate, self.late_rate, self.default_rate)
        self.behaviors[loan_id] = behavior
        schedule = self.service.get_schedule(loan_id)
        for event in self._payment_behavior.payments_for(schedule, behavior, reference_date=self.as_of):
            self.service.apply_payment(event)

    def run_valuation(self) -> ValuationResult:
        """Classify the generated book as of the reference date."""
        self.valuation = self.service.run_valuation(self.as_of)
        return self.valuation

    def export(self, sinks: list[Any]) -> None:
        """Export the loan book and its valuation to sinks.

        Parameters
        ----------
        sinks : list[Any]
            Sink instances (``JsonFileSink``, ``ConsoleSink``).
        """
        store = self.service.store
        loans = store.loans.find()
        entries = []
        for loan in loans:
            schedule = store.schedules.current(loan.loan_id)
            if schedule is not None:
                entries.extend(schedule.entries)

        for sink in sinks:
            sink.write_batch("loans", loans)
            sink.write_batch("schedule_entries", entries)
            sink.write_batch("delinquency_records", store.delinquency.for_date(self.as_of))
            sink.write_batch("collection_cases", store.cases.open_cases())
            if self.valuation is not None:
                sink.write_batch("provisioning_reports", [self.valuation.report])

        logger.info("Exported loan book to %d sinks", len(sinks))

    def get_portfolio_summary(self) -> dict[str, Any]:
        """Get summary statistics for the loan book.

        Returns
        -------
        dict[str, Any]
            Portfolio summary statistics.
        """
        loans = self.service.store.loans.find()
        if not loans:
            return {}

        booked = [loan for loan in loans if loan.approved_amount is not None]
        status_counts: dict[str, int] = {}
        for loan in loans:
            status_counts[loan.status.value] = status_counts.get(loan.status.value, 0) + 1

        type_counts: dict[str, int] = {}
        for loan in booked:
            type_counts[loan.loan_type.value] = type_counts.get(loan.loan_type.value, 0) + 1

        behavior_counts: dict[str, int] = {}
        for behavior in self.behaviors.values():
            behavior_counts[behavior] = behavior_counts.get(behavior, 0) + 1

        summary = {
            "applications": self.num_applicants,
            "rejected_on_submission": self.rejected_on_submission,
            "total_loans": len(loans),
            "booked_loans": len(booked),
            "total_principal": str(money_sum((l.principal for l in booked), self.config.currency).to_decimal()),
            "auto_approved": sum(1 for l in booked if l.auto_approved),
            "loan_status_distribution": status_counts,
            "loan_type_distribution": type_counts,
            "payment_behavior_distribution": behavior_counts,
            "salary_advances": type_counts.get(LoanType.SALARY_ADVANCE.value, 0),
        }
        if self.valuation is not None:
            report = self.valuation.report
            summary["total_outstanding"] = str(report.total_outstanding.to_decimal())
            summary["total_provision"] = str(report.total_provision.to_decimal())
            summary["gross_npa_ratio"] = str(report.gross_npa_ratio)
            summary["coverage_ratio"] = str(report.coverage_ratio)
        return summary
