"""Pure lending computations and the loan lifecycle state machine."""

from lending_core.engine.amortization import emi_amount, generate_schedule, reamortize
from lending_core.engine.collections import CollectionStrategyAssigner, order_queue
from lending_core.engine.delinquency import DelinquencyClassifier
from lending_core.engine.lifecycle import LoanStateMachine, qualifies_for_auto_approval
from lending_core.engine.locks import KeyedLocks
from lending_core.engine.pricing import PricingEngine
from lending_core.engine.provisioning import compute_provisioning
from lending_core.engine.schedule_math import (
    add_periods,
    annual_rate_to_period_rate,
    round_currency,
    sum_preserving_rounding,
)
from lending_core.engine.scoring import CreditScorer
from lending_core.engine.tables import RangeTable
from lending_core.engine.valuation import BatchOutcome, ValuationRunner

__all__ = [
    "BatchOutcome",
    "CollectionStrategyAssigner",
    "CreditScorer",
    "DelinquencyClassifier",
    "KeyedLocks",
    "LoanStateMachine",
    "PricingEngine",
    "RangeTable",
    "ValuationRunner",
    "add_periods",
    "annual_rate_to_period_rate",
    "compute_provisioning",
    "emi_amount",
    "generate_schedule",
    "order_queue",
    "qualifies_for_auto_approval",
    "reamortize",
    "round_currency",
    "sum_preserving_rounding",
]
