"""Domain models for the lending core."""

from lending_core.models.collection import CollectionAction, CollectionActivity, CollectionCase
from lending_core.models.credit import (
    ApplicantSignals,
    CreditProfile,
    FeeBreakdown,
    KycFlags,
    PriceQuote,
)
from lending_core.models.delinquency import (
    AssetClassAggregate,
    BucketAggregate,
    DelinquencyRecord,
    LoanHealth,
    ProvisioningReport,
)
from lending_core.models.enums import (
    ActivityKind,
    AssetClass,
    CollectionStage,
    ContactChannel,
    Decision,
    DelinquencyBucket,
    EmploymentType,
    InstallmentStatus,
    Intensity,
    LoanStatus,
    LoanType,
    PeriodUnit,
    RiskLevel,
    UnderwritingDecision,
)
from lending_core.models.loan import (
    FundsTransferConfirmation,
    Loan,
    PaymentEvent,
    Schedule,
    ScheduleEntry,
    StatusChange,
    Tenure,
)
from lending_core.models.money import Money, money_sum

__all__ = [
    "ActivityKind",
    "ApplicantSignals",
    "AssetClass",
    "AssetClassAggregate",
    "BucketAggregate",
    "CollectionAction",
    "CollectionActivity",
    "CollectionCase",
    "CollectionStage",
    "ContactChannel",
    "CreditProfile",
    "Decision",
    "DelinquencyBucket",
    "DelinquencyRecord",
    "EmploymentType",
    "FeeBreakdown",
    "FundsTransferConfirmation",
    "InstallmentStatus",
    "Intensity",
    "KycFlags",
    "Loan",
    "LoanHealth",
    "LoanStatus",
    "LoanType",
    "Money",
    "PaymentEvent",
    "PeriodUnit",
    "PriceQuote",
    "ProvisioningReport",
    "RiskLevel",
    "Schedule",
    "ScheduleEntry",
    "StatusChange",
    "Tenure",
    "UnderwritingDecision",
    "money_sum",
]
