"""Delinquency and provisioning models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from lending_core.models.enums import AssetClass, DelinquencyBucket
from lending_core.models.money import Money


@dataclass(frozen=True)
class DelinquencyRecord:
    """Delinquency state of one loan as of one date."""

    loan_id: str
    as_of: date
    dpd: int
    bucket: DelinquencyBucket
    outstanding: Money
    overdue_amount: Money
    is_npa: bool
    schedule_version: int


@dataclass(frozen=True)
class AssetClassAggregate:
    """Aggregate outstanding and provision for one asset class."""

    asset_class: AssetClass
    loan_count: int
    outstanding: Money
    rate: Decimal
    provision: Money


@dataclass(frozen=True)
class BucketAggregate:
    """Aggregate outstanding and provision for one DPD bucket.

    ``rate`` is the provisioning rate applied to the bucket, or None when the
    bucket is empty or its loans span more than one asset class.
    """

    bucket: DelinquencyBucket
    loan_count: int
    outstanding: Money
    rate: Decimal | None
    provision: Money


@dataclass(frozen=True)
class ProvisioningReport:
    """Portfolio-level provisioning requirement as of one date."""

    portfolio_id: str
    as_of: date
    asset_classes: dict[AssetClass, AssetClassAggregate]
    buckets: dict[DelinquencyBucket, BucketAggregate]
    total_outstanding: Money
    total_provision: Money
    npa_outstanding: Money
    gross_npa_ratio: Decimal
    coverage_ratio: Decimal
    loan_count: int
    failed_loan_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LoanHealth:
    """Read-only health projection of a loan."""

    loan_id: str
    status: str
    bucket: DelinquencyBucket | None
    dpd: int
    outstanding: Money
    next_due_date: date | None
    next_due_amount: Money | None
