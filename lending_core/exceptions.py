"""Custom exception hierarchy for lending-core."""

from typing import Any

GENERIC_RETRY_MESSAGE = "We could not complete this request. Please retry or contact support."


class LendingError(Exception):
    """Base exception for all lending-core errors."""

    @property
    def public_message(self) -> str:
        """Message safe to show to an end user."""
        return GENERIC_RETRY_MESSAGE


class ValidationError(LendingError):
    """Raised when input is malformed or a required field is missing.

    Caller-correctable; never retried automatically.
    """

    def __init__(self, message: str, field: str | None = None, limit: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.limit = limit

    @property
    def public_message(self) -> str:
        return str(self)


class InvalidInputError(ValidationError):
    """Raised when numeric inputs to a calculation are out of domain."""


class PolicyViolation(LendingError):
    """Raised when well-formed input violates a business rule."""

    def __init__(self, message: str, rule: str, limit: Any = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.limit = limit

    @property
    def public_message(self) -> str:
        return f"{self} (rule: {self.rule})"


class StateConflict(LendingError):
    """Raised when a transition is invalid for the entity's current state."""

    def __init__(
        self,
        message: str,
        loan_id: str | None = None,
        current: Any = None,
        requested: Any = None,
    ) -> None:
        super().__init__(message)
        self.loan_id = loan_id
        self.current = current
        self.requested = requested


class ComputationError(LendingError):
    """Raised when an internal invariant fails during a calculation."""


class EntityNotFoundError(LendingError):
    """Raised when a referenced entity does not exist."""


class ConfigurationError(LendingError):
    """Raised when configuration is invalid or missing."""


class SinkError(LendingError):
    """Raised when a sink operation fails."""
