"""Tests for the loan lifecycle state machine."""

from datetime import datetime

import pytest

from lending_core.config import ApprovalPolicy
from lending_core.engine.lifecycle import (
    CLASSIFIER_ACTOR,
    TERMINAL_STATUSES,
    LoanStateMachine,
    is_terminal,
    qualifies_for_auto_approval,
)
from lending_core.exceptions import StateConflict
from lending_core.models import Loan, LoanStatus, Money


@pytest.fixture
def machine() -> LoanStateMachine:
    return LoanStateMachine()


class TestTransitions:
    """Tests for allowed and forbidden edges."""

    def test_origination_path(self, machine: LoanStateMachine, sample_loan: Loan) -> None:
        sample_loan.status = LoanStatus.DRAFT
        for status in (LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.DISBURSED, LoanStatus.ACTIVE):
            machine.transition(sample_loan, status, "tester")

        assert sample_loan.status == LoanStatus.ACTIVE
        assert [change.next for change in sample_loan.history] == [
            LoanStatus.PENDING,
            LoanStatus.APPROVED,
            LoanStatus.DISBURSED,
            LoanStatus.ACTIVE,
        ]

    def test_history_records_actor_and_reason(self, machine: LoanStateMachine, sample_loan: Loan) -> None:
        at = datetime(2024, 5, 1, 12, 0)
        change = machine.transition(sample_loan, LoanStatus.COMPLETED, "payments", "all paid", at=at)

        assert change.previous == LoanStatus.ACTIVE
        assert change.actor == "payments"
        assert change.reason == "all paid"
        assert sample_loan.updated_at == at
        assert sample_loan.history == [change]

    def test_undefined_edge(self, machine: LoanStateMachine, sample_loan: Loan) -> None:
        with pytest.raises(StateConflict) as exc_info:
            machine.transition(sample_loan, LoanStatus.APPROVED, "tester")

        assert exc_info.value.current == LoanStatus.ACTIVE
        assert exc_info.value.requested == LoanStatus.APPROVED
        assert sample_loan.status == LoanStatus.ACTIVE
        assert sample_loan.history == []

    def test_settle_requires_delinquency(self, machine: LoanStateMachine, sample_loan: Loan) -> None:
        with pytest.raises(StateConflict):
            machine.transition(sample_loan, LoanStatus.SETTLED, "tester")

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_are_final(
        self, machine: LoanStateMachine, sample_loan: Loan, status: LoanStatus
    ) -> None:
        sample_loan.status = status
        for requested in LoanStatus:
            with pytest.raises(StateConflict):
                machine.transition(sample_loan, requested, "tester")

    def test_classifier_edges_need_classifier(self, machine: LoanStateMachine, sample_loan: Loan) -> None:
        """Test ACTIVE -> OVERDUE is never a manual move."""
        with pytest.raises(StateConflict, match="delinquency classification"):
            machine.transition(sample_loan, LoanStatus.OVERDUE, "agent-7")

        machine.transition(sample_loan, LoanStatus.OVERDUE, CLASSIFIER_ACTOR, by_classifier=True)
        assert sample_loan.status == LoanStatus.OVERDUE

    def test_can_transition(self, machine: LoanStateMachine) -> None:
        assert machine.can_transition(LoanStatus.PENDING, LoanStatus.ON_HOLD)
        assert machine.can_transition(LoanStatus.ON_HOLD, LoanStatus.PENDING)
        assert not machine.can_transition(LoanStatus.ON_HOLD, LoanStatus.APPROVED)

    def test_is_terminal(self) -> None:
        assert is_terminal(LoanStatus.WRITTEN_OFF)
        assert not is_terminal(LoanStatus.NPA)


class TestAutoApprovalGuard:
    """Tests for the auto-approval guard."""

    @pytest.mark.parametrize(
        "score,amount,expected",
        [
            (700, 50000, True),
            (780, 50000, True),
            (699, 10000, False),
            (800, 50001, False),
        ],
    )
    def test_guard(self, score: int, amount: int, expected: bool) -> None:
        assert qualifies_for_auto_approval(score, Money.of(amount), ApprovalPolicy()) is expected
