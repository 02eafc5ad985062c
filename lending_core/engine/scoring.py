"""Rule-based credit scoring."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING

from lending_core.exceptions import ValidationError
from lending_core.models.credit import ApplicantSignals, CreditProfile
from lending_core.models.enums import EmploymentType
from lending_core.models.money import Money

if TYPE_CHECKING:
    from lending_core.config import ScoringPolicy

logger = logging.getLogger(__name__)


class CreditScorer:
    """Computes a bounded, deterministic credit score from applicant signals.

    The score is the policy's base score plus one delta per signal, clamped to
    ``[min_score, max_score]``. Optional signals that were not supplied
    contribute nothing. The scorer holds no state beyond its policy, so the
    same signals on the same date always give the same profile.

    Parameters
    ----------
    policy : ScoringPolicy
        Band tables and point values.
    """

    def __init__(self, policy: ScoringPolicy) -> None:
        self.policy = policy

    def score(self, signals: ApplicantSignals, as_of: date | None = None) -> CreditProfile:
        """Score an applicant.

        Parameters
        ----------
        signals : ApplicantSignals
            Applicant inputs; ``applicant_id``, ``monthly_income`` and
            ``employment_type`` are required.
        as_of : date | None
            Scoring date. Defaults to today.

        Returns
        -------
        CreditProfile
            Score, grade, risk level and per-factor breakdown.

        Raises
        ------
        ValidationError
            If a required signal is missing or a supplied signal is negative.
        """
        self._validate(signals)
        as_of = as_of or date.today()
        factors = self.factors(signals)

        raw = self.policy.base_score + sum(factors.values())
        score = max(self.policy.min_score, min(self.policy.max_score, raw))

        profile = CreditProfile(
            applicant_id=signals.applicant_id,
            monthly_income=signals.monthly_income,
            employment_type=signals.employment_type,
            employment_months=signals.employment_months,
            kyc_completed=signals.kyc.completed if signals.kyc is not None else 0,
            account_age_days=signals.account_age_days,
            active_loans=signals.active_loans,
            score=score,
            grade=self.policy.grade_table.lookup(score),
            risk_level=self.policy.risk_table.lookup(score),
            computed_on=as_of,
            valid_until=as_of + timedelta(days=self.policy.validity_days),
            factors=factors,
        )
        logger.debug("Scored applicant %s: %d (%s)", profile.applicant_id, score, profile.grade)
        return profile

    def factors(self, signals: ApplicantSignals) -> dict[str, int]:
        """Return the score delta contributed by each signal."""
        policy = self.policy
        factors = {
            "employment_type": policy.employment_type_points[signals.employment_type],
            "monthly_income": policy.income_table.lookup(_whole_major_units(signals.monthly_income)),
        }

        if signals.employment_months is not None:
            factors["employment_months"] = policy.employment_months_table.lookup(signals.employment_months)
        if signals.kyc is not None:
            factors["kyc"] = policy.kyc_table.lookup(signals.kyc.completed)
        if signals.account_age_days is not None:
            factors["account_age_days"] = policy.account_age_table.lookup(signals.account_age_days)
        if signals.active_loans is not None:
            factors["active_loans"] = policy.active_loans_table.lookup(signals.active_loans)
        if signals.income_verified:
            factors["income_verified"] = policy.income_verified_points
        if signals.employer_verified:
            factors["employer_verified"] = policy.employer_verified_points

        return factors

    @staticmethod
    def _validate(signals: ApplicantSignals) -> None:
        if not signals.applicant_id:
            raise ValidationError("applicant_id is required", field="applicant_id")
        if signals.monthly_income is None:
            raise ValidationError("monthly_income is required", field="monthly_income")
        if not isinstance(signals.monthly_income, Money) or signals.monthly_income.minor_units < 0:
            raise ValidationError(
                "monthly_income must be a non-negative Money amount", field="monthly_income", limit=0
            )
        if signals.employment_type is None:
            raise ValidationError("employment_type is required", field="employment_type")
        if not isinstance(signals.employment_type, EmploymentType):
            raise ValidationError(
                f"Unknown employment_type: {signals.employment_type!r}", field="employment_type"
            )

        for name in ("employment_months", "account_age_days", "active_loans"):
            value = getattr(signals, name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must not be negative", field=name, limit=0)


def _whole_major_units(amount: Money) -> int:
    return amount.minor_units // (10 ** amount.scale)
