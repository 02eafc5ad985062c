"""Loan lifecycle state machine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from lending_core.exceptions import StateConflict
from lending_core.models.enums import LoanStatus
from lending_core.models.loan import Loan, StatusChange
from lending_core.models.money import Money

if TYPE_CHECKING:
    from lending_core.config import ApprovalPolicy

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
CLASSIFIER_ACTOR = "delinquency-classifier"

S = LoanStatus

TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    S.DRAFT: frozenset({S.PENDING}),
    S.PENDING: frozenset({S.APPROVED, S.REJECTED, S.ON_HOLD}),
    S.ON_HOLD: frozenset({S.PENDING, S.REJECTED}),
    S.APPROVED: frozenset({S.DISBURSED}),
    S.DISBURSED: frozenset({S.ACTIVE}),
    S.ACTIVE: frozenset({S.OVERDUE, S.COMPLETED}),
    S.OVERDUE: frozenset({S.ACTIVE, S.NPA, S.COMPLETED, S.SETTLED, S.WRITTEN_OFF}),
    S.NPA: frozenset({S.ACTIVE, S.COMPLETED, S.SETTLED, S.WRITTEN_OFF}),
    S.REJECTED: frozenset(),
    S.COMPLETED: frozenset(),
    S.SETTLED: frozenset(),
    S.WRITTEN_OFF: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Edges only the delinquency classifier may drive
CLASSIFIER_EDGES = frozenset(
    {
        (S.ACTIVE, S.OVERDUE),
        (S.OVERDUE, S.ACTIVE),
        (S.OVERDUE, S.NPA),
        (S.NPA, S.ACTIVE),
    }
)

# Statuses a loan holds while it is being repaid
SERVICING_STATUSES = frozenset({S.ACTIVE, S.OVERDUE, S.NPA})


def is_terminal(status: LoanStatus) -> bool:
    return status in TERMINAL_STATUSES


def qualifies_for_auto_approval(score: int, requested: Money, policy: ApprovalPolicy) -> bool:
    """Return True when the auto-approval guard on PENDING -> APPROVED holds."""
    return (
        score >= policy.auto_approval_score_threshold
        and requested <= policy.ceiling(requested.currency)
    )


class LoanStateMachine:
    """Validates and applies loan status transitions.

    Transitions are applied to the given ``Loan`` instance and recorded in its
    history. Persisting the change (and bumping the optimistic version) is
    the repository's job.
    """

    def can_transition(self, current: LoanStatus, requested: LoanStatus) -> bool:
        return requested in TRANSITIONS[current]

    def transition(
        self,
        loan: Loan,
        requested: LoanStatus,
        actor: str,
        reason: str = "",
        at: datetime | None = None,
        by_classifier: bool = False,
    ) -> StatusChange:
        """Move ``loan`` to ``requested``.

        Raises
        ------
        StateConflict
            If the edge does not exist, the loan is terminal, or a
            classifier-driven edge is requested directly.
        """
        current = loan.status

        if is_terminal(current):
            self._reject(loan, requested, f"Loan {loan.loan_id} is {current.value} (terminal)")
        if not self.can_transition(current, requested):
            self._reject(loan, requested, f"Cannot move loan {loan.loan_id} from {current.value} to {requested.value}")
        if (current, requested) in CLASSIFIER_EDGES and not by_classifier:
            self._reject(
                loan,
                requested,
                f"{current.value} -> {requested.value} is driven by delinquency classification only",
            )

        change = StatusChange(
            previous=current,
            next=requested,
            actor=actor,
            reason=reason,
            at=at or datetime.now(),
        )
        loan.status = requested
        loan.updated_at = change.at
        loan.history.append(change)

        logger.info("Loan %s: %s -> %s by %s (%s)", loan.loan_id, current.value, requested.value, actor, reason)
        return change

    @staticmethod
    def _reject(loan: Loan, requested: LoanStatus, message: str) -> None:
        logger.warning("Rejected transition: %s", message)
        raise StateConflict(message, loan_id=loan.loan_id, current=loan.status, requested=requested)
