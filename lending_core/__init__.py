"""Lending core: origination, servicing and portfolio valuation for retail loans."""

from lending_core.config import LendingConfig
from lending_core.exceptions import (
    ComputationError,
    ConfigurationError,
    EntityNotFoundError,
    InvalidInputError,
    LendingError,
    PolicyViolation,
    SinkError,
    StateConflict,
    ValidationError,
)
from lending_core.models.money import Money
from lending_core.service import LendingService

__version__ = "0.1.0"

__all__ = [
    "ComputationError",
    "ConfigurationError",
    "EntityNotFoundError",
    "InvalidInputError",
    "LendingConfig",
    "LendingError",
    "LendingService",
    "Money",
    "PolicyViolation",
    "SinkError",
    "StateConflict",
    "ValidationError",
]
