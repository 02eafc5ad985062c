"""In-memory repositories for lending entities."""

from lending_core.store.lending import (
    CollectionCaseRepository,
    DelinquencyRepository,
    LendingStore,
    LoanRepository,
    ProvisioningReportRepository,
    ScheduleRepository,
)

__all__ = [
    "CollectionCaseRepository",
    "DelinquencyRepository",
    "LendingStore",
    "LoanRepository",
    "ProvisioningReportRepository",
    "ScheduleRepository",
]
