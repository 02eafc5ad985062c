"""Risk-based loan pricing and eligibility."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lending_core.exceptions import PolicyViolation, ValidationError
from lending_core.models.credit import FeeBreakdown, PriceQuote
from lending_core.models.enums import LoanType
from lending_core.models.loan import Tenure
from lending_core.models.money import Money

if TYPE_CHECKING:
    from lending_core.config import PricingPolicy

logger = logging.getLogger(__name__)

RULE_MAX_ELIGIBLE_AMOUNT = "MAX_ELIGIBLE_AMOUNT"
RULE_MIN_LOAN_AMOUNT = "MIN_LOAN_AMOUNT"
RULE_TENURE_LIMIT = "TENURE_LIMIT"


class PricingEngine:
    """Prices a loan request from the applicant's score and the product terms.

    The rate is the product's base rate plus a tenure adjustment and a score
    adjustment, clamped to the product's ``[min_rate, max_rate]``.
    """

    def __init__(self, policy: PricingPolicy) -> None:
        self.policy = policy

    def price(
        self,
        score: int,
        loan_type: LoanType,
        tenure: Tenure,
        monthly_income: Money,
    ) -> PriceQuote:
        """Quote an annual rate and the maximum eligible amount.

        Parameters
        ----------
        score : int
            Credit score in ``[300, 900]``.
        loan_type : LoanType
            Product being priced.
        tenure : Tenure
            Requested tenure.
        monthly_income : Money
            Applicant's monthly income.

        Returns
        -------
        PriceQuote
            Rate, eligibility ceiling and the adjustments applied.
        """
        if tenure.count <= 0:
            raise ValidationError("Tenure must be at least one period", field="tenure", limit=1)

        terms = self.policy.terms_for(loan_type)
        tenure_adjustment = self.policy.tenure_table.lookup(tenure.months_equivalent)
        score_adjustment = self.policy.score_table.lookup(score)

        rate = terms.base_rate + tenure_adjustment + score_adjustment
        rate = max(terms.min_rate, min(terms.max_rate, rate))

        income_ceiling = monthly_income.scaled(terms.income_multiple)
        product_ceiling = Money.of(terms.max_amount, monthly_income.currency)
        max_eligible = min(income_ceiling, product_ceiling, key=lambda m: m.minor_units)

        return PriceQuote(
            loan_type=loan_type,
            interest_rate=rate,
            max_eligible_amount=max_eligible,
            base_rate=terms.base_rate,
            tenure_adjustment=tenure_adjustment,
            score_adjustment=score_adjustment,
        )

    def check_eligibility(self, requested: Money, quote: PriceQuote, tenure: Tenure) -> None:
        """Raise ``PolicyViolation`` if the request breaks a product rule.

        Requests are never truncated to fit; the caller must resubmit.
        """
        terms = self.policy.terms_for(quote.loan_type)
        min_amount = Money.of(terms.min_amount, requested.currency)

        if requested > quote.max_eligible_amount:
            raise PolicyViolation(
                f"Requested {requested} exceeds maximum eligible amount {quote.max_eligible_amount}",
                rule=RULE_MAX_ELIGIBLE_AMOUNT,
                limit=quote.max_eligible_amount,
            )
        if requested < min_amount:
            raise PolicyViolation(
                f"Requested {requested} is below the minimum loan amount {min_amount}",
                rule=RULE_MIN_LOAN_AMOUNT,
                limit=min_amount,
            )

        months = tenure.months_equivalent
        if not terms.min_tenure_months <= months <= terms.max_tenure_months:
            raise PolicyViolation(
                f"Tenure of {months} months outside {terms.min_tenure_months}-"
                f"{terms.max_tenure_months} months for {quote.loan_type.value}",
                rule=RULE_TENURE_LIMIT,
                limit=(terms.min_tenure_months, terms.max_tenure_months),
            )

    def fees(self, amount: Money, loan_type: LoanType) -> FeeBreakdown:
        """Processing fee and GST on it for a disbursed amount."""
        terms = self.policy.terms_for(loan_type)
        processing_fee = amount.scaled(terms.processing_fee_rate)
        return FeeBreakdown(
            processing_fee=processing_fee,
            gst_on_fee=processing_fee.scaled(self.policy.gst_rate),
        )
