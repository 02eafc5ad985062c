"""Tests for risk-based pricing and eligibility."""

from decimal import Decimal

import pytest

from lending_core.config import PricingPolicy
from lending_core.engine.pricing import (
    RULE_MAX_ELIGIBLE_AMOUNT,
    RULE_MIN_LOAN_AMOUNT,
    RULE_TENURE_LIMIT,
    PricingEngine,
)
from lending_core.exceptions import PolicyViolation, ValidationError
from lending_core.models import LoanType, Money, PeriodUnit, Tenure


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine(PricingPolicy())


class TestPrice:
    """Tests for rate and ceiling quotes."""

    def test_personal_loan_rate(self, engine: PricingEngine) -> None:
        """Test base + tenure + score adjustments."""
        quote = engine.price(810, LoanType.PERSONAL, Tenure(12), Money.of(60000))

        assert quote.base_rate == Decimal("0.12")
        assert quote.tenure_adjustment == Decimal("0.005")
        assert quote.score_adjustment == Decimal("-0.015")
        assert quote.interest_rate == Decimal("0.110")

    def test_rate_clamped_to_product_floor(self, engine: PricingEngine) -> None:
        quote = engine.price(810, LoanType.HOME, Tenure(240), Money.of(200000))
        assert quote.interest_rate == Decimal("0.08")

    def test_weaker_score_pays_more(self, engine: PricingEngine) -> None:
        strong = engine.price(810, LoanType.PERSONAL, Tenure(24), Money.of(60000))
        weak = engine.price(500, LoanType.PERSONAL, Tenure(24), Money.of(60000))
        assert weak.interest_rate > strong.interest_rate

    def test_weekly_tenure_uses_month_equivalent(self, engine: PricingEngine) -> None:
        quote = engine.price(700, LoanType.SALARY_ADVANCE, Tenure(8, PeriodUnit.WEEK), Money.of(60000))
        assert quote.tenure_adjustment == Decimal("0.01")

    def test_income_ceiling(self, engine: PricingEngine) -> None:
        quote = engine.price(810, LoanType.SALARY_ADVANCE, Tenure(6), Money.of(60000))
        assert quote.max_eligible_amount == Money.of(60000)

    def test_product_ceiling(self, engine: PricingEngine) -> None:
        quote = engine.price(810, LoanType.PERSONAL, Tenure(12), Money.of(60000))
        assert quote.max_eligible_amount == Money.of(500000)

    def test_zero_tenure(self, engine: PricingEngine) -> None:
        with pytest.raises(ValidationError):
            engine.price(810, LoanType.PERSONAL, Tenure(0), Money.of(60000))


class TestEligibility:
    """Tests for eligibility rules."""

    def _check(self, engine: PricingEngine, amount: int, loan_type: LoanType, months: int) -> None:
        tenure = Tenure(months)
        quote = engine.price(700, loan_type, tenure, Money.of(40000))
        engine.check_eligibility(Money.of(amount), quote, tenure)

    def test_eligible(self, engine: PricingEngine) -> None:
        self._check(engine, 100000, LoanType.PERSONAL, 12)

    def test_above_ceiling(self, engine: PricingEngine) -> None:
        with pytest.raises(PolicyViolation) as exc_info:
            self._check(engine, 900000, LoanType.PERSONAL, 12)
        assert exc_info.value.rule == RULE_MAX_ELIGIBLE_AMOUNT
        assert exc_info.value.limit == Money.of(500000)

    def test_below_minimum(self, engine: PricingEngine) -> None:
        with pytest.raises(PolicyViolation) as exc_info:
            self._check(engine, 5000, LoanType.PERSONAL, 12)
        assert exc_info.value.rule == RULE_MIN_LOAN_AMOUNT

    def test_tenure_out_of_range(self, engine: PricingEngine) -> None:
        with pytest.raises(PolicyViolation) as exc_info:
            self._check(engine, 100000, LoanType.PERSONAL, 72)
        assert exc_info.value.rule == RULE_TENURE_LIMIT
        assert exc_info.value.limit == (6, 60)


class TestFees:
    """Tests for processing fee and GST."""

    def test_fees(self, engine: PricingEngine) -> None:
        fees = engine.fees(Money.of(50000), LoanType.SALARY_ADVANCE)

        assert fees.processing_fee == Money.of(1000)
        assert fees.gst_on_fee == Money.of(180)
        assert fees.total == Money.of(1180)
