"""Portfolio provisioning: pure aggregation over delinquency records."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable

from lending_core.models.delinquency import (
    AssetClassAggregate,
    BucketAggregate,
    DelinquencyRecord,
    ProvisioningReport,
)
from lending_core.models.enums import AssetClass, DelinquencyBucket
from lending_core.models.money import DEFAULT_CURRENCY, Money, money_sum

if TYPE_CHECKING:
    from lending_core.config import ProvisioningPolicy

logger = logging.getLogger(__name__)

RATIO_QUANTUM = Decimal("0.0001")

# Coverage on a book without NPAs
FULL_COVERAGE = Decimal("1")


def _ratio(numerator: Money, denominator: Money) -> Decimal:
    return numerator.ratio(denominator).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)


def classify_asset(dpd: int, policy: ProvisioningPolicy) -> tuple[AssetClass, Decimal]:
    """Asset class and provisioning rate for a DPD count."""
    return policy.class_table.lookup(dpd)


def compute_provisioning(
    records: Iterable[DelinquencyRecord],
    policy: ProvisioningPolicy,
    portfolio_id: str,
    as_of: date,
    currency: str = DEFAULT_CURRENCY,
    failed_loan_ids: Iterable[str] = (),
) -> ProvisioningReport:
    """Aggregate delinquency records into a provisioning report.

    Parameters
    ----------
    records : Iterable[DelinquencyRecord]
        One record per loan for ``as_of``.
    policy : ProvisioningPolicy
        DPD ranges with their asset class and rate.
    portfolio_id : str
        Portfolio the report belongs to.
    as_of : date
        Valuation date.
    currency : str
        Reporting currency; every record must be in it.
    failed_loan_ids : Iterable[str]
        Loans the valuation could not classify.

    Returns
    -------
    ProvisioningReport
        Per-class and per-bucket aggregates. Each class rate is applied to
        the aggregate outstanding of every bucket in that class, so bucket
        and class provisions both sum to the total. With no NPA outstanding
        the coverage ratio is 1.
    """
    cells: dict[tuple[DelinquencyBucket, AssetClass], list[Money]] = defaultdict(list)
    loan_count = 0

    for record in records:
        asset_class, _ = classify_asset(record.dpd, policy)
        cells[(record.bucket, asset_class)].append(record.outstanding)
        loan_count += 1

    # Rate applied to each bucket's outstanding within an asset class
    cell_outstanding = {key: money_sum(amounts, currency) for key, amounts in cells.items()}
    cell_provision = {
        key: outstanding.scaled(policy.rate_for(key[1])) for key, outstanding in cell_outstanding.items()
    }

    asset_classes = {}
    for asset_class in AssetClass:
        keys = [key for key in cells if key[1] == asset_class]
        asset_classes[asset_class] = AssetClassAggregate(
            asset_class=asset_class,
            loan_count=sum(len(cells[key]) for key in keys),
            outstanding=money_sum((cell_outstanding[key] for key in keys), currency),
            rate=policy.rate_for(asset_class),
            provision=money_sum((cell_provision[key] for key in keys), currency),
        )

    buckets = {}
    for bucket in DelinquencyBucket:
        keys = [key for key in cells if key[0] == bucket]
        rates = {policy.rate_for(key[1]) for key in keys}
        buckets[bucket] = BucketAggregate(
            bucket=bucket,
            loan_count=sum(len(cells[key]) for key in keys),
            outstanding=money_sum((cell_outstanding[key] for key in keys), currency),
            rate=rates.pop() if len(rates) == 1 else None,
            provision=money_sum((cell_provision[key] for key in keys), currency),
        )

    total_outstanding = money_sum((a.outstanding for a in asset_classes.values()), currency)
    total_provision = money_sum((a.provision for a in asset_classes.values()), currency)
    npa_outstanding = money_sum(
        (a.outstanding for c, a in asset_classes.items() if c != AssetClass.STANDARD), currency
    )

    gross_npa_ratio = Decimal("0") if total_outstanding.is_zero() else _ratio(npa_outstanding, total_outstanding)
    coverage_ratio = FULL_COVERAGE if npa_outstanding.is_zero() else _ratio(total_provision, npa_outstanding)

    report = ProvisioningReport(
        portfolio_id=portfolio_id,
        as_of=as_of,
        asset_classes=asset_classes,
        buckets=buckets,
        total_outstanding=total_outstanding,
        total_provision=total_provision,
        npa_outstanding=npa_outstanding,
        gross_npa_ratio=gross_npa_ratio,
        coverage_ratio=coverage_ratio,
        loan_count=loan_count,
        failed_loan_ids=tuple(sorted(failed_loan_ids)),
    )
    logger.info(
        "Provisioning %s as of %s: %d loans, outstanding %s, provision %s, coverage %s",
        portfolio_id,
        as_of,
        loan_count,
        total_outstanding,
        total_provision,
        coverage_ratio,
    )
    return report
