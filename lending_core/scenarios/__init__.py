"""Scenarios for generating synthetic loan books."""

from lending_core.scenarios.loan_book import LoanBookScenario

__all__ = ["LoanBookScenario"]
