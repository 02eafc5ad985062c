"""Synthetic data generators."""

from lending_core.generators.applicant import ApplicantGenerator, LoanApplication
from lending_core.generators.base import BaseGenerator
from lending_core.generators.payments import PaymentBehavior

__all__ = [
    "ApplicantGenerator",
    "BaseGenerator",
    "LoanApplication",
    "PaymentBehavior",
]
