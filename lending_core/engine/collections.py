"""Collection strategy assignment and work-queue ordering."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable

from lending_core.exceptions import ValidationError
from lending_core.models.collection import CollectionAction, CollectionActivity, CollectionCase
from lending_core.models.delinquency import DelinquencyRecord
from lending_core.models.enums import ActivityKind, CollectionStage, DelinquencyBucket, Intensity
from lending_core.models.loan import Loan

if TYPE_CHECKING:
    from lending_core.config import CollectionPolicy

logger = logging.getLogger(__name__)

COLLECTIONS_ACTOR = "collections-engine"


class CollectionStrategyAssigner:
    """Maps a delinquent loan to its collection stage, channels and intensity.

    The base strategy comes from the policy tables. Case history then
    adjusts it: an unexpired promise-to-pay holds the case at LOW intensity,
    while a broken promise or too many contact attempts in the current stage
    escalate it one level.
    """

    def __init__(self, policy: CollectionPolicy) -> None:
        self.policy = policy

    def stage_for(self, bucket: DelinquencyBucket) -> CollectionStage | None:
        """Collection stage for ``bucket``; None when the loan is current."""
        if bucket == DelinquencyBucket.CURRENT:
            return None
        return self.policy.stage_by_bucket[bucket]

    def assign(
        self,
        loan: Loan,
        record: DelinquencyRecord,
        case: CollectionCase | None = None,
    ) -> CollectionAction:
        """Next collection action for ``loan`` given its record and case history."""
        stage = self.stage_for(record.bucket)
        if stage is None:
            raise ValidationError(f"Loan {loan.loan_id} is current; nothing to collect", field="bucket")

        strategy = self.policy.strategies[stage]
        intensity = strategy.intensity
        next_action = strategy.next_action

        if case is not None and case.promise_to_pay_date is not None:
            if case.promise_to_pay_date >= record.as_of:
                intensity = Intensity.LOW
                next_action = f"Await promised payment by {case.promise_to_pay_date.isoformat()}"
            else:
                intensity = intensity.escalate()
                next_action = f"Follow up on broken promise of {case.promise_to_pay_date.isoformat()}"
        elif case is not None and case.stage == stage:
            attempts = case.contact_attempts(current_stage_only=True)
            if attempts >= self.policy.max_attempts_per_stage:
                intensity = intensity.escalate()
                next_action = f"{next_action} (escalated after {attempts} attempts)"

        return CollectionAction(
            case_id=case.case_id if case is not None else "",
            loan_id=loan.loan_id,
            stage=stage,
            channels=strategy.channels,
            intensity=intensity,
            next_action=next_action,
            bucket=record.bucket,
            dpd=record.dpd,
            outstanding=record.outstanding,
            last_contact_at=case.last_contact_at if case is not None else None,
            assigned_agent=case.assigned_agent if case is not None else None,
        )

    def open_case(self, case_id: str, loan: Loan, record: DelinquencyRecord, at: datetime) -> CollectionCase:
        """Open a collection case for a loan that has just turned delinquent."""
        stage = self.stage_for(record.bucket)
        if stage is None:
            raise ValidationError(f"Loan {loan.loan_id} is current; no case to open", field="bucket")

        case = CollectionCase(
            case_id=case_id,
            loan_id=loan.loan_id,
            stage=stage,
            bucket=record.bucket,
            dpd=record.dpd,
            outstanding=record.outstanding,
            opened_on=record.as_of,
        )
        case.activities.append(
            CollectionActivity(ActivityKind.OPENED, at, COLLECTIONS_ACTOR, notes=f"{record.dpd} DPD")
        )
        self.apply(case, self.assign(loan, record, case))
        logger.info("Opened collection case %s for loan %s at %s", case_id, loan.loan_id, stage.value)
        return case

    def refresh_case(self, case: CollectionCase, loan: Loan, record: DelinquencyRecord, at: datetime) -> CollectionAction:
        """Bring an open case up to date with a new delinquency record."""
        stage = self.stage_for(record.bucket)
        if stage is None:
            raise ValidationError(f"Loan {loan.loan_id} is current; close the case instead", field="bucket")

        if stage != case.stage:
            case.activities.append(
                CollectionActivity(
                    ActivityKind.STAGE_CHANGED,
                    at,
                    COLLECTIONS_ACTOR,
                    notes=f"{case.stage.value} -> {stage.value}",
                )
            )
            logger.info("Case %s moved %s -> %s", case.case_id, case.stage.value, stage.value)
            case.stage = stage

        case.bucket = record.bucket
        case.dpd = record.dpd
        case.outstanding = record.outstanding
        action = self.assign(loan, record, case)
        self.apply(case, action)
        return action

    @staticmethod
    def apply(case: CollectionCase, action: CollectionAction) -> None:
        case.channels = action.channels
        case.intensity = action.intensity

    @staticmethod
    def close_case(case: CollectionCase, reason: str, on: date, at: datetime, actor: str = COLLECTIONS_ACTOR) -> None:
        """Close ``case``; closing an already closed case is a no-op."""
        if not case.is_open:
            return
        case.stage = CollectionStage.CLOSED
        case.closed_on = on
        case.closure_reason = reason
        case.activities.append(CollectionActivity(ActivityKind.CLOSED, at, actor, notes=reason))
        logger.info("Closed collection case %s (%s)", case.case_id, reason)


def _queue_key(action: CollectionAction) -> tuple:
    never_contacted = action.last_contact_at is None
    return (
        -action.bucket.severity,
        not never_contacted,
        action.last_contact_at or datetime.min,
        -action.outstanding.minor_units,
        action.loan_id,
    )


def order_queue(actions: Iterable[CollectionAction]) -> list[CollectionAction]:
    """Order collection actions into a work queue.

    Most severe bucket first; within a bucket, never-contacted cases first,
    then the longest since last contact, then the largest outstanding, then
    loan id.
    """
    return sorted(actions, key=_queue_key)
