"""Lending service: the operations exposed by the lending core.

``LendingService`` wires scoring, pricing, amortization, the lifecycle state
machine, delinquency classification, provisioning and collections together
over an injected ``LendingStore``. Writes on one loan are serialized by a
per-loan lock and committed through the loan repository's optimistic
version check; writes on one collection case are serialized by a per-case
lock.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from lending_core.config import LendingConfig
from lending_core.engine.amortization import generate_schedule, reamortize
from lending_core.engine.collections import CollectionStrategyAssigner, order_queue
from lending_core.engine.delinquency import DelinquencyClassifier
from lending_core.engine.lifecycle import (
    CLASSIFIER_ACTOR,
    SERVICING_STATUSES,
    SYSTEM_ACTOR,
    LoanStateMachine,
    qualifies_for_auto_approval,
)
from lending_core.engine.locks import KeyedLocks
from lending_core.engine.pricing import PricingEngine
from lending_core.engine.provisioning import compute_provisioning
from lending_core.engine.scoring import CreditScorer
from lending_core.engine.valuation import ValuationRunner
from lending_core.exceptions import (
    ComputationError,
    PolicyViolation,
    StateConflict,
    ValidationError,
)
from lending_core.models import (
    ActivityKind,
    ApplicantSignals,
    CollectionAction,
    CollectionActivity,
    CollectionCase,
    CollectionStage,
    ContactChannel,
    CreditProfile,
    Decision,
    DelinquencyBucket,
    DelinquencyRecord,
    FundsTransferConfirmation,
    InstallmentStatus,
    Loan,
    LoanHealth,
    LoanStatus,
    LoanType,
    Money,
    PaymentEvent,
    PriceQuote,
    ProvisioningReport,
    Schedule,
    ScheduleEntry,
    Tenure,
    UnderwritingDecision,
    money_sum,
)
from lending_core.store import LendingStore

logger = logging.getLogger(__name__)

RULE_FULL_INSTALLMENT_REQUIRED = "FULL_INSTALLMENT_REQUIRED"
RULE_PREPAYMENT_EXCEEDS_OUTSTANDING = "PREPAYMENT_EXCEEDS_OUTSTANDING"
RULE_NO_OVERDUE_INSTALLMENTS = "NO_OVERDUE_INSTALLMENTS"

PAYMENTS_ACTOR = "payments"


def _require_currency(amount: Money, currency: str, field: str) -> None:
    if amount.currency != currency:
        raise ValidationError(f"{field} must be in {currency}, got {amount.currency}", field=field)


@dataclass(frozen=True)
class ApplicationDecision:
    """Outcome of ``submit_application``."""

    loan_id: str
    status: LoanStatus
    schedule: Schedule | None
    decision: Decision
    profile: CreditProfile
    quote: PriceQuote


@dataclass(frozen=True)
class PrepaymentQuote:
    """Amount payable to prepay part or all of a loan's principal."""

    loan_id: str
    quoted_on: date
    outstanding_principal: Money
    prepaid_principal: Money
    charge: Money
    total_payable: Money

    @property
    def full(self) -> bool:
        return self.prepaid_principal == self.outstanding_principal


@dataclass(frozen=True)
class ValuationResult:
    """Outcome of one ``run_valuation`` batch."""

    as_of: date
    classified: int
    failed: tuple[str, ...]
    skipped: tuple[str, ...]
    report: ProvisioningReport

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)


class LendingService:
    """Exposed lending operations over an injected store.

    Parameters
    ----------
    config : LendingConfig | None
        Policies; defaults to ``LendingConfig()``.
    store : LendingStore | None
        Repositories; defaults to a fresh in-memory store.
    clock : Callable[[], datetime]
        Source of timestamps for history and activity logs.
    """

    def __init__(
        self,
        config: LendingConfig | None = None,
        store: LendingStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or LendingConfig()
        self.store = store or LendingStore()
        self.clock = clock

        self.scorer = CreditScorer(self.config.scoring)
        self.pricing = PricingEngine(self.config.pricing)
        self.lifecycle = LoanStateMachine()
        self.classifier = DelinquencyClassifier(self.config.delinquency)
        self.assigner = CollectionStrategyAssigner(self.config.collection)
        self.runner = ValuationRunner(workers=self.config.valuation.workers)

        self._loan_locks = KeyedLocks()
        self._case_locks = KeyedLocks()

    def _today(self) -> date:
        return self.clock().date()

    # Origination

    def submit_application(
        self,
        requested_amount: Money,
        tenure: Tenure,
        loan_type: LoanType,
        signals: ApplicantSignals,
        purpose: str = "",
        applied_on: date | None = None,
    ) -> ApplicationDecision:
        """Score, price and decide a loan application.

        Parameters
        ----------
        requested_amount : Money
            Amount applied for.
        tenure : Tenure
            Requested repayment tenure.
        loan_type : LoanType
            Product applied for.
        signals : ApplicantSignals
            Applicant data from the identity/KYC subsystem.
        purpose : str
            Free-text loan purpose.
        applied_on : date | None
            Application date; the anticipated disbursement date for the
            schedule of an auto-approved loan. Defaults to today.

        Returns
        -------
        ApplicationDecision
            APPROVED with a schedule when the auto-approval guard holds,
            otherwise PENDING for manual underwriting.

        Raises
        ------
        ValidationError
            If a required input is missing or malformed. No loan is recorded.
        PolicyViolation
            If the request breaks an eligibility rule. The loan is recorded
            REJECTED with the rule name and no schedule.
        """
        if not isinstance(requested_amount, Money) or not requested_amount.is_positive():
            raise ValidationError("requested_amount must be a positive amount", field="requested_amount", limit=0)
        _require_currency(requested_amount, self.config.currency, "requested_amount")
        if tenure.count <= 0:
            raise ValidationError("tenure must be at least one period", field="tenure", limit=1)
        if signals.monthly_income is not None:
            _require_currency(signals.monthly_income, self.config.currency, "monthly_income")

        applied_on = applied_on or self._today()
        profile = self.scorer.score(signals, as_of=applied_on)
        quote = self.pricing.price(profile.score, loan_type, tenure, signals.monthly_income)

        loan = Loan(
            loan_id=uuid.uuid4().hex,
            applicant_id=profile.applicant_id,
            loan_type=loan_type,
            requested_amount=requested_amount,
            tenure=tenure,
            purpose=purpose,
            interest_rate=quote.interest_rate,
            score_at_approval=profile.score,
            created_at=self.clock(),
        )
        self.lifecycle.transition(loan, LoanStatus.PENDING, profile.applicant_id, "application submitted", at=self.clock())
        self.store.loans.add(loan)
        logger.info(
            "Application %s: %s %s over %d %s, score %d, rate %s",
            loan.loan_id,
            loan_type.value,
            requested_amount,
            tenure.count,
            tenure.unit.value,
            profile.score,
            quote.interest_rate,
        )

        try:
            self.pricing.check_eligibility(requested_amount, quote, tenure)
        except PolicyViolation as e:
            logger.warning(
                "Application %s rejected: %s (%s)",
                loan.loan_id,
                e,
                e.rule,
                extra={"loan_id": loan.loan_id, "rule": e.rule},
            )
            self._transition(loan.loan_id, LoanStatus.REJECTED, SYSTEM_ACTOR, f"{e.rule}: {e}")
            raise

        if not qualifies_for_auto_approval(profile.score, requested_amount, self.config.approval):
            logger.info("Application %s referred to manual underwriting", loan.loan_id)
            return ApplicationDecision(loan.loan_id, LoanStatus.PENDING, None, Decision.MANUAL_REVIEW, profile, quote)

        schedule = self._approve(loan.loan_id, SYSTEM_ACTOR, "auto-approved", applied_on, auto=True)
        return ApplicationDecision(loan.loan_id, LoanStatus.APPROVED, schedule, Decision.AUTO_APPROVED, profile, quote)

    def decide_application(
        self,
        loan_id: str,
        decision: UnderwritingDecision,
        actor: str,
        reason: str = "",
        on: date | None = None,
    ) -> Loan:
        """Apply a manual underwriting decision to a PENDING or ON_HOLD loan."""
        if decision == UnderwritingDecision.APPROVE:
            self._approve(loan_id, actor, reason or "approved by underwriter", on or self._today(), auto=False)
            return self.store.loans.get(loan_id)

        target = {
            UnderwritingDecision.REJECT: LoanStatus.REJECTED,
            UnderwritingDecision.HOLD: LoanStatus.ON_HOLD,
            UnderwritingDecision.RESUME: LoanStatus.PENDING,
        }[decision]
        return self._transition(loan_id, target, actor, reason)

    def _approve(self, loan_id: str, actor: str, reason: str, anticipated_on: date, auto: bool) -> Schedule:
        """PENDING -> APPROVED together with the loan's first schedule.

        The schedule is stored before the status is committed; if anything
        fails the schedule is discarded and the stored loan stays PENDING.
        """
        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            expected_version = loan.version
            self.lifecycle.transition(loan, LoanStatus.APPROVED, actor, reason, at=self.clock())

            loan.approved_amount = loan.requested_amount
            loan.auto_approved = auto
            fees = self.pricing.fees(loan.approved_amount, loan.loan_type)
            loan.processing_fee = fees.processing_fee
            loan.gst_on_fee = fees.gst_on_fee

            version = len(self.store.schedules.versions(loan_id)) + 1
            try:
                schedule = generate_schedule(
                    principal=loan.principal,
                    annual_rate=loan.interest_rate,
                    tenure=loan.tenure,
                    disbursed_on=anticipated_on,
                    loan_id=loan_id,
                    version=version,
                )
            except ComputationError:
                logger.exception("Loan %s left PENDING: no schedule could be generated", loan_id, extra={"loan_id": loan_id})
                raise
            self.store.schedules.add(schedule)
            try:
                self.store.loans.save(loan, expected_version)
            except Exception:
                self.store.schedules.discard(loan_id, version)
                logger.exception("Loan %s left PENDING: schedule v%d discarded", loan_id, version, extra={"loan_id": loan_id})
                raise

        logger.info("Loan %s approved (%s), EMI %s x %d", loan_id, "auto" if auto else actor, schedule.emi, len(schedule.entries))
        return schedule

    def confirm_funds_transfer(self, confirmation: FundsTransferConfirmation) -> Loan:
        """APPROVED -> DISBURSED -> ACTIVE on a successful funds transfer.

        If funds move on a date other than the one the schedule was anchored
        on, a new schedule version anchored on the disbursement date is added.
        A failed transfer leaves the loan APPROVED.
        """
        loan_id = confirmation.loan_id
        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            if loan.status != LoanStatus.APPROVED:
                raise StateConflict(
                    f"Loan {loan_id} is {loan.status.value}; only APPROVED loans can be disbursed",
                    loan_id=loan_id,
                    current=loan.status,
                    requested=LoanStatus.DISBURSED,
                )
            if not confirmation.success:
                logger.warning("Funds transfer failed for loan %s (%s)", loan_id, confirmation.reference)
                return loan

            expected_version = loan.version
            disbursed_on = confirmation.confirmed_on or self._today()
            schedule = self.store.schedules.current(loan_id)
            if schedule is None:
                logger.error("Loan %s is APPROVED without a schedule", loan_id, extra={"loan_id": loan_id})
                raise ComputationError(f"Loan {loan_id} is APPROVED without a schedule")

            added_version = None
            if schedule.anchored_on != disbursed_on:
                try:
                    schedule = generate_schedule(
                        principal=loan.principal,
                        annual_rate=loan.interest_rate,
                        tenure=loan.tenure,
                        disbursed_on=disbursed_on,
                        loan_id=loan_id,
                        version=schedule.version + 1,
                        reason="DISBURSEMENT",
                    )
                except ComputationError:
                    logger.exception("Loan %s left APPROVED: schedule could not be re-anchored", loan_id, extra={"loan_id": loan_id})
                    raise
                self.store.schedules.add(schedule)
                added_version = schedule.version

            try:
                now = self.clock()
                self.lifecycle.transition(loan, LoanStatus.DISBURSED, PAYMENTS_ACTOR, confirmation.reference, at=now)
                loan.disbursed_on = disbursed_on
                self.lifecycle.transition(loan, LoanStatus.ACTIVE, SYSTEM_ACTOR, "repayment schedule in place", at=now)
                self.store.loans.save(loan, expected_version)
            except Exception:
                if added_version is not None:
                    self.store.schedules.discard(loan_id, added_version)
                logger.exception("Loan %s left APPROVED: disbursement not committed", loan_id, extra={"loan_id": loan_id})
                raise

        logger.info("Loan %s disbursed on %s, first due %s", loan_id, disbursed_on, schedule.first_due_date)
        return loan

    # Servicing

    def apply_payment(self, event: PaymentEvent) -> ScheduleEntry:
        """Mark a schedule entry PAID; completes the loan once every entry is paid."""
        entry = self.store.schedules.get_entry(event.entry_id)
        loan_id = entry.loan_id

        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            expected_version = loan.version
            if loan.status not in SERVICING_STATUSES:
                raise StateConflict(
                    f"Loan {loan_id} is {loan.status.value}; payments are not accepted",
                    loan_id=loan_id,
                    current=loan.status,
                )
            schedule = self.store.schedules.current(loan_id)
            if schedule is None or entry.schedule_version != schedule.version:
                raise StateConflict(f"Entry {entry.entry_id} belongs to a superseded schedule", loan_id=loan_id)
            if entry.is_paid:
                raise StateConflict(f"Entry {entry.entry_id} is already paid", loan_id=loan_id)
            _require_currency(event.amount, entry.total.currency, "amount")
            if event.amount < entry.total:
                raise PolicyViolation(
                    f"Payment {event.amount} is less than the installment {entry.total}",
                    rule=RULE_FULL_INSTALLMENT_REQUIRED,
                    limit=entry.total,
                )

            entry.status = InstallmentStatus.PAID
            entry.paid_on = event.paid_on
            entry.paid_amount = event.amount
            logger.info("Loan %s: entry %d paid on %s", loan_id, entry.sequence, event.paid_on)

            if not schedule.unpaid():
                self.lifecycle.transition(loan, LoanStatus.COMPLETED, PAYMENTS_ACTOR, "all installments paid", at=self.clock())
                self.store.loans.save(loan, expected_version)
                self._close_open_case(loan_id, "COMPLETED", event.paid_on)

        return entry

    def quote_prepayment(self, loan_id: str, amount: Money | None = None, on: date | None = None) -> PrepaymentQuote:
        """Quote a prepayment of ``amount`` principal, or of all of it when None."""
        loan = self.store.loans.get(loan_id)
        return self._quote_prepayment(loan, amount, on or self._today())

    def _quote_prepayment(self, loan: Loan, amount: Money | None, on: date) -> PrepaymentQuote:
        if loan.status != LoanStatus.ACTIVE:
            raise StateConflict(
                f"Loan {loan.loan_id} is {loan.status.value}; only ACTIVE loans can be prepaid",
                loan_id=loan.loan_id,
                current=loan.status,
            )
        schedule = self._require_schedule(loan)
        unpaid = schedule.unpaid()
        if any(entry.due_date < on for entry in unpaid):
            raise PolicyViolation(
                f"Loan {loan.loan_id} has installments past due; clear them before prepaying",
                rule=RULE_NO_OVERDUE_INSTALLMENTS,
            )

        outstanding = money_sum((entry.principal for entry in unpaid), loan.currency)
        if amount is not None:
            _require_currency(amount, loan.currency, "amount")
        prepaid = outstanding if amount is None else amount
        if not prepaid.is_positive():
            raise ValidationError("Prepayment amount must be positive", field="amount", limit=0)
        if prepaid > outstanding:
            raise PolicyViolation(
                f"Prepayment {prepaid} exceeds outstanding principal {outstanding}",
                rule=RULE_PREPAYMENT_EXCEEDS_OUTSTANDING,
                limit=outstanding,
            )

        charge = prepaid.scaled(self.config.pricing.prepayment_charge_rate)
        return PrepaymentQuote(
            loan_id=loan.loan_id,
            quoted_on=on,
            outstanding_principal=outstanding,
            prepaid_principal=prepaid,
            charge=charge,
            total_payable=prepaid + charge,
        )

    def apply_prepayment(
        self,
        loan_id: str,
        amount: Money | None = None,
        on: date | None = None,
        reduce_tenure: bool = True,
        actor: str = PAYMENTS_ACTOR,
    ) -> PrepaymentQuote:
        """Apply a prepayment.

        A full prepayment closes the loan as COMPLETED. A partial one
        re-amortizes the remaining principal into a new schedule version,
        keeping the installment (``reduce_tenure=True``) or the number of
        remaining periods.
        """
        on = on or self._today()
        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            expected_version = loan.version
            quote = self._quote_prepayment(loan, amount, on)
            schedule = self._require_schedule(loan)

            if quote.full:
                for entry in schedule.unpaid():
                    entry.status = InstallmentStatus.PAID
                    entry.paid_on = on
                    entry.paid_amount = entry.principal
                self.lifecycle.transition(loan, LoanStatus.COMPLETED, actor, "foreclosed by prepayment", at=self.clock())
                self.store.loans.save(loan, expected_version)
                self._close_open_case(loan_id, "COMPLETED", on)
                logger.info("Loan %s foreclosed on %s for %s", loan_id, on, quote.total_payable)
                return quote

            remaining = quote.outstanding_principal - quote.prepaid_principal
            new_schedule = reamortize(
                schedule,
                remaining,
                anchor=schedule.anchored_on or loan.disbursed_on,
                unit=loan.tenure.unit,
                reduce_tenure=reduce_tenure,
            )
            self.store.schedules.add(new_schedule)
            loan.updated_at = self.clock()
            try:
                self.store.loans.save(loan, expected_version)
            except Exception:
                self.store.schedules.discard(loan_id, new_schedule.version)
                raise

        logger.info(
            "Loan %s prepaid %s; schedule v%d: %d x %s",
            loan_id,
            quote.prepaid_principal,
            new_schedule.version,
            len(new_schedule.entries),
            new_schedule.emi,
        )
        return quote

    def settle(self, loan_id: str, amount: Money, actor: str, reason: str = "", on: date | None = None) -> Loan:
        """Close an OVERDUE or NPA loan by a negotiated settlement."""
        if not amount.is_positive():
            raise ValidationError("Settlement amount must be positive", field="amount", limit=0)
        on = on or self._today()
        loan = self._transition(loan_id, LoanStatus.SETTLED, actor, reason or f"settled for {amount}")
        self._close_open_case(loan_id, "SETTLED", on, actor)
        return loan

    def write_off(self, loan_id: str, actor: str, reason: str = "", on: date | None = None) -> Loan:
        """Write off an OVERDUE or NPA loan."""
        on = on or self._today()
        loan = self._transition(loan_id, LoanStatus.WRITTEN_OFF, actor, reason or "written off")
        self._close_open_case(loan_id, "WRITTEN_OFF", on, actor)
        return loan

    # Queries

    def get_loan(self, loan_id: str) -> Loan:
        return self.store.loans.get(loan_id)

    def get_schedule(self, loan_id: str, version: int | None = None) -> Schedule | None:
        """Current schedule of a loan, or a specific version."""
        if version is not None:
            return self.store.schedules.get(loan_id, version)
        return self.store.schedules.current(loan_id)

    def get_loan_health(self, loan_id: str, as_of: date | None = None) -> LoanHealth:
        """Read-only health projection of a loan as of a date."""
        as_of = as_of or self._today()
        loan = self.store.loans.get(loan_id)
        schedule = self.store.schedules.current(loan_id)

        if schedule is None:
            return LoanHealth(loan_id, loan.status.value, None, 0, Money.zero(loan.currency), None, None)

        next_due = schedule.next_due()
        if loan.status in SERVICING_STATUSES:
            record = self.classifier.classify(loan, schedule, as_of)
            bucket, dpd, outstanding = record.bucket, record.dpd, record.outstanding
        else:
            bucket, dpd = None, 0
            outstanding = money_sum((entry.total for entry in schedule.unpaid()), loan.currency)

        return LoanHealth(
            loan_id=loan_id,
            status=loan.status.value,
            bucket=bucket,
            dpd=dpd,
            outstanding=outstanding,
            next_due_date=next_due.due_date if next_due else None,
            next_due_amount=next_due.total if next_due else None,
        )

    def get_provisioning_report(self, as_of: date) -> ProvisioningReport:
        """Provisioning report for ``as_of``.

        Returns the report stored by the valuation run for that date, or
        aggregates whatever records exist for it.
        """
        report = self.store.reports.get(as_of)
        if report is not None:
            return report
        return compute_provisioning(
            self.store.delinquency.for_date(as_of),
            self.config.provisioning,
            self.config.valuation.portfolio_id,
            as_of,
            currency=self.config.currency,
        )

    def get_collection_queue(
        self,
        agent_id: str | None = None,
        segment: DelinquencyBucket | CollectionStage | None = None,
    ) -> list[CollectionAction]:
        """Ordered work list of open collection cases.

        Parameters
        ----------
        agent_id : str | None
            Only cases assigned to this agent.
        segment : DelinquencyBucket | CollectionStage | None
            Only cases in this bucket or stage.
        """
        actions = []
        for case in self.store.cases.open_cases():
            if agent_id is not None and case.assigned_agent != agent_id:
                continue
            if isinstance(segment, DelinquencyBucket) and case.bucket != segment:
                continue
            if isinstance(segment, CollectionStage) and case.stage != segment:
                continue
            record = self.store.delinquency.latest(case.loan_id)
            if record is None or record.bucket == DelinquencyBucket.CURRENT:
                continue
            loan = self.store.loans.get(case.loan_id)
            with self._case_locks.hold(case.case_id):
                actions.append(self.assigner.assign(loan, record, case))
        return order_queue(actions)

    # Collections

    def record_collection_contact(
        self,
        case_id: str,
        channel: ContactChannel,
        actor: str,
        notes: str = "",
        promise_to_pay_date: date | None = None,
        at: datetime | None = None,
    ) -> CollectionCase:
        """Append a contact (and optional promise-to-pay) to a case's log."""
        at = at or self.clock()
        with self._case_locks.hold(case_id):
            case = self.store.cases.get(case_id)
            if not case.is_open:
                raise StateConflict(f"Collection case {case_id} is closed", loan_id=case.loan_id)

            kind = ActivityKind.PROMISE_TO_PAY if promise_to_pay_date else ActivityKind.CONTACT
            case.activities.append(
                CollectionActivity(kind, at, actor, channel, notes, promise_to_pay_date)
            )
            case.last_contact_at = at
            if promise_to_pay_date is not None:
                case.promise_to_pay_date = promise_to_pay_date
        logger.info("Case %s: %s via %s by %s", case_id, kind.value, channel.value, actor)
        return case

    def assign_collection_agent(self, case_id: str, agent_id: str, actor: str = SYSTEM_ACTOR) -> CollectionCase:
        """Assign a case to an agent."""
        with self._case_locks.hold(case_id):
            case = self.store.cases.get(case_id)
            if not case.is_open:
                raise StateConflict(f"Collection case {case_id} is closed", loan_id=case.loan_id)
            case.assigned_agent = agent_id
            case.activities.append(
                CollectionActivity(ActivityKind.AGENT_ASSIGNED, self.clock(), actor, notes=agent_id)
            )
        logger.info("Case %s assigned to %s", case_id, agent_id)
        return case

    # Valuation

    def run_valuation(self, as_of: date | None = None, cancel_event: threading.Event | None = None) -> ValuationResult:
        """Classify every servicing loan as of a date and recompute provisioning.

        Per loan: the delinquency record is upserted, late entries are marked
        OVERDUE, classifier-driven status changes are applied and the loan's
        collection case is opened, updated or closed. One loan failing does
        not stop the others; its id is reported in ``failed``.
        """
        as_of = as_of or self._today()
        loan_ids = self.store.loans.ids(set(SERVICING_STATUSES))
        logger.info("Valuation as of %s over %d loans", as_of, len(loan_ids))

        outcome = self.runner.run(loan_ids, lambda loan_id: self._value_loan(loan_id, as_of), cancel_event)

        in_scope = set(loan_ids)
        records = [r for r in self.store.delinquency.for_date(as_of) if r.loan_id in in_scope]
        report = compute_provisioning(
            records,
            self.config.provisioning,
            self.config.valuation.portfolio_id,
            as_of,
            currency=self.config.currency,
            failed_loan_ids=outcome.failed,
        )
        self.store.reports.save(report)

        return ValuationResult(
            as_of=as_of,
            classified=len(outcome.records),
            failed=tuple(outcome.failed),
            skipped=tuple(outcome.skipped),
            report=report,
        )

    def _value_loan(self, loan_id: str, as_of: date) -> DelinquencyRecord:
        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            expected_version = loan.version
            schedule = self._require_schedule(loan)

            record = self.classifier.classify(loan, schedule, as_of)
            self.store.delinquency.upsert(record)

            for entry in self.classifier.overdue_entries(schedule, as_of):
                entry.status = InstallmentStatus.OVERDUE

            path = self.classifier.status_path(loan.status, record)
            if path:
                now = self.clock()
                for status in path:
                    self.lifecycle.transition(
                        loan, status, CLASSIFIER_ACTOR, f"{record.dpd} DPD as of {as_of}", at=now, by_classifier=True
                    )
                self.store.loans.save(loan, expected_version)

            self._sync_case(loan, record)
        return record

    def _sync_case(self, loan: Loan, record: DelinquencyRecord) -> None:
        case = self.store.cases.open_for_loan(loan.loan_id)
        now = self.clock()

        if record.bucket == DelinquencyBucket.CURRENT:
            if case is not None:
                with self._case_locks.hold(case.case_id):
                    self.assigner.close_case(case, "CURED", record.as_of, now)
            return

        if case is None:
            case = self.assigner.open_case(uuid.uuid4().hex, loan, record, now)
            self.store.cases.add(case)
        else:
            with self._case_locks.hold(case.case_id):
                self.assigner.refresh_case(case, loan, record, now)

    # Helpers

    def _transition(self, loan_id: str, requested: LoanStatus, actor: str, reason: str) -> Loan:
        with self._loan_locks.hold(loan_id):
            loan = self.store.loans.get(loan_id)
            expected_version = loan.version
            self.lifecycle.transition(loan, requested, actor, reason, at=self.clock())
            return self.store.loans.save(loan, expected_version)

    def _close_open_case(self, loan_id: str, reason: str, on: date, actor: str = SYSTEM_ACTOR) -> None:
        case = self.store.cases.open_for_loan(loan_id)
        if case is None:
            return
        with self._case_locks.hold(case.case_id):
            self.assigner.close_case(case, reason, on, self.clock(), actor)

    def _require_schedule(self, loan: Loan) -> Schedule:
        schedule = self.store.schedules.current(loan.loan_id)
        if schedule is None:
            raise ComputationError(f"Loan {loan.loan_id} is {loan.status.value} without a schedule")
        return schedule
