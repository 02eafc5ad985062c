"""Tests for portfolio provisioning."""

from datetime import date
from decimal import Decimal

import pytest

from lending_core.config import DelinquencyPolicy, ProvisioningPolicy
from lending_core.engine.provisioning import classify_asset, compute_provisioning
from lending_core.models import AssetClass, DelinquencyBucket, DelinquencyRecord, Money, money_sum

AS_OF = date(2024, 6, 30)


def _record(loan_id: str, dpd: int, outstanding: int) -> DelinquencyRecord:
    policy = DelinquencyPolicy()
    return DelinquencyRecord(
        loan_id=loan_id,
        as_of=AS_OF,
        dpd=dpd,
        bucket=policy.bucket_table.lookup(dpd),
        outstanding=Money.of(outstanding),
        overdue_amount=Money.zero(),
        is_npa=dpd >= policy.npa_threshold_days,
        schedule_version=1,
    )


@pytest.fixture
def policy() -> ProvisioningPolicy:
    return ProvisioningPolicy()


class TestClassifyAsset:
    """Tests for DPD to asset class mapping."""

    @pytest.mark.parametrize(
        "dpd,expected",
        [
            (0, AssetClass.STANDARD),
            (90, AssetClass.STANDARD),
            (91, AssetClass.SUBSTANDARD),
            (180, AssetClass.SUBSTANDARD),
            (181, AssetClass.DOUBTFUL),
            (365, AssetClass.DOUBTFUL),
            (366, AssetClass.LOSS),
        ],
    )
    def test_classes(self, policy: ProvisioningPolicy, dpd: int, expected: AssetClass) -> None:
        asset_class, _ = classify_asset(dpd, policy)
        assert asset_class == expected


class TestComputeProvisioning:
    """Tests for compute_provisioning."""

    def test_mixed_book(self, policy: ProvisioningPolicy) -> None:
        records = [
            _record("a", 0, 100000),
            _record("b", 100, 50000),
            _record("c", 200, 20000),
            _record("d", 400, 10000),
        ]

        report = compute_provisioning(records, policy, "retail", AS_OF)

        assert report.loan_count == 4
        assert report.total_outstanding == Money.of(180000)
        assert report.asset_classes[AssetClass.STANDARD].provision == Money.of(400)
        assert report.asset_classes[AssetClass.SUBSTANDARD].provision == Money.of(7500)
        assert report.asset_classes[AssetClass.DOUBTFUL].provision == Money.of(5000)
        assert report.asset_classes[AssetClass.LOSS].provision == Money.of(10000)
        assert report.total_provision == Money.of(22900)
        assert report.npa_outstanding == Money.of(80000)
        assert report.gross_npa_ratio == Decimal("0.4444")
        assert report.coverage_ratio == Decimal("0.2863")

    def test_bucket_aggregates(self, policy: ProvisioningPolicy) -> None:
        records = [_record("a", 0, 100), _record("b", 200, 50), _record("c", 400, 25)]

        report = compute_provisioning(records, policy, "retail", AS_OF)

        assert set(report.buckets) == set(DelinquencyBucket)
        assert report.buckets[DelinquencyBucket.DPD_180_PLUS].loan_count == 2
        assert report.buckets[DelinquencyBucket.DPD_180_PLUS].outstanding == Money.of(75)
        assert report.buckets[DelinquencyBucket.DPD_1_30].loan_count == 0

    def test_bucket_provision(self, policy: ProvisioningPolicy) -> None:
        """Test each bucket carries the provision on its own outstanding."""
        records = [
            _record("a", 0, 100000),
            _record("b", 100, 50000),
            _record("c", 200, 20000),
            _record("d", 400, 10000),
        ]

        report = compute_provisioning(records, policy, "retail", AS_OF)

        current = report.buckets[DelinquencyBucket.CURRENT]
        assert current.rate == Decimal("0.004")
        assert current.provision == Money.of(400)
        substandard = report.buckets[DelinquencyBucket.DPD_91_180]
        assert substandard.rate == Decimal("0.15")
        assert substandard.provision == Money.of(7500)
        # 181+ holds a doubtful and a loss loan
        oldest = report.buckets[DelinquencyBucket.DPD_180_PLUS]
        assert oldest.rate is None
        assert oldest.provision == Money.of(15000)
        empty = report.buckets[DelinquencyBucket.DPD_1_30]
        assert empty.rate is None
        assert empty.provision.is_zero()

    def test_bucket_provisions_sum_to_total(self, policy: ProvisioningPolicy) -> None:
        records = [_record(str(i), dpd, 1000 + i) for i, dpd in enumerate([0, 5, 45, 95, 190, 370, 20])]

        report = compute_provisioning(records, policy, "retail", AS_OF)

        assert money_sum(b.provision for b in report.buckets.values()) == report.total_provision
        assert money_sum(b.outstanding for b in report.buckets.values()) == report.total_outstanding

    def test_totals_match_class_sums(self, policy: ProvisioningPolicy) -> None:
        records = [_record(str(i), dpd, 1000 + i) for i, dpd in enumerate([0, 5, 45, 95, 190, 370, 20])]

        report = compute_provisioning(records, policy, "retail", AS_OF)

        assert report.total_outstanding == Money.of(sum(1000 + i for i in range(7)))
        assert sum(a.provision.minor_units for a in report.asset_classes.values()) == report.total_provision.minor_units
        assert sum(a.loan_count for a in report.asset_classes.values()) == 7

    def test_empty_book(self, policy: ProvisioningPolicy) -> None:
        """Test an empty book yields zero totals and full coverage."""
        report = compute_provisioning([], policy, "retail", AS_OF)

        assert report.loan_count == 0
        assert report.total_outstanding.is_zero()
        assert report.total_provision.is_zero()
        assert report.gross_npa_ratio == Decimal("0")
        assert report.coverage_ratio == Decimal("1")
        assert set(report.asset_classes) == set(AssetClass)

    def test_no_npa_has_full_coverage(self, policy: ProvisioningPolicy) -> None:
        report = compute_provisioning([_record("a", 10, 5000)], policy, "retail", AS_OF)

        assert report.npa_outstanding.is_zero()
        assert report.coverage_ratio == Decimal("1")
        assert report.total_provision == Money.of(20)

    def test_failed_ids_reported(self, policy: ProvisioningPolicy) -> None:
        report = compute_provisioning([], policy, "retail", AS_OF, failed_loan_ids=["z", "a"])
        assert report.failed_loan_ids == ("a", "z")

    def test_reporting_currency(self, policy: ProvisioningPolicy) -> None:
        report = compute_provisioning([], policy, "us", AS_OF, currency="USD")
        assert report.total_outstanding == Money.zero("USD")
