"""Configuration management for lending-core.

Every rule table used by the engine is declared here as plain rows and
compiled into a validated ``RangeTable`` when the owning policy is built, so a
gap or overlap is reported before the first loan is scored.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from lending_core.engine.tables import RangeTable
from lending_core.exceptions import ConfigurationError
from lending_core.models.enums import (
    AssetClass,
    CollectionStage,
    ContactChannel,
    DelinquencyBucket,
    EmploymentType,
    Intensity,
    LoanType,
    RiskLevel,
)
from lending_core.models.money import DEFAULT_CURRENCY, Money, currency_scale

MIN_SCORE = 300
MAX_SCORE = 900


def _check_monotonic(table: RangeTable, increasing: bool = True) -> None:
    values = table.values
    pairs = zip(values, values[1:])
    ok = all(a <= b for a, b in pairs) if increasing else all(a >= b for a, b in pairs)
    if not ok:
        direction = "non-decreasing" if increasing else "non-increasing"
        raise ConfigurationError(f"Range table '{table.name}' must be {direction}")


@dataclass
class ScoringPolicy:
    """Additive credit-score deltas.

    Income bands are keyed on whole major units of monthly income. Each band
    table must move in the favourable direction only, so the score is
    monotonic in every signal.
    """

    base_score: int = 600
    min_score: int = MIN_SCORE
    max_score: int = MAX_SCORE
    validity_days: int = 30
    employment_type_points: dict[EmploymentType, int] = field(
        default_factory=lambda: {
            EmploymentType.SALARIED: 40,
            EmploymentType.SELF_EMPLOYED: 20,
            EmploymentType.RETIRED: 10,
            EmploymentType.STUDENT: -20,
            EmploymentType.UNEMPLOYED: -60,
        }
    )
    employment_months_rows: list[tuple[int, int | None, int]] = field(
        default_factory=lambda: [(0, 11, 0), (12, 35, 15), (36, 59, 30), (60, None, 40)]
    )
    income_rows: list[tuple[int, int | None, int]] = field(
        default_factory=lambda: [
            (0, 14999, -30),
            (15000, 29999, 0),
            (30000, 59999, 30),
            (60000, 99999, 50),
            (100000, None, 70),
        ]
    )
    kyc_rows: list[tuple[int, int | None, int]] = field(
        default_factory=lambda: [(0, 0, -40), (1, 1, -20), (2, 2, 0), (3, 3, 20), (4, 4, 40)]
    )
    account_age_rows: list[tuple[int, int | None, int]] = field(
        default_factory=lambda: [(0, 89, -10), (90, 364, 0), (365, 1094, 15), (1095, None, 30)]
    )
    active_loans_rows: list[tuple[int, int | None, int]] = field(
        default_factory=lambda: [(0, 0, 10), (1, 2, 0), (3, 4, -25), (5, None, -50)]
    )
    income_verified_points: int = 20
    employer_verified_points: int = 10
    grade_rows: list[tuple[int, int | None, str]] = field(
        default_factory=lambda: [
            (300, 549, "E"),
            (550, 649, "D"),
            (650, 699, "C"),
            (700, 749, "B"),
            (750, 799, "A"),
            (800, 900, "A+"),
        ]
    )
    risk_rows: list[tuple[int, int | None, RiskLevel]] = field(
        default_factory=lambda: [
            (300, 549, RiskLevel.VERY_HIGH),
            (550, 649, RiskLevel.HIGH),
            (650, 749, RiskLevel.MEDIUM),
            (750, 900, RiskLevel.LOW),
        ]
    )

    employment_months_table: RangeTable = field(init=False, repr=False)
    income_table: RangeTable = field(init=False, repr=False)
    kyc_table: RangeTable = field(init=False, repr=False)
    account_age_table: RangeTable = field(init=False, repr=False)
    active_loans_table: RangeTable = field(init=False, repr=False)
    grade_table: RangeTable = field(init=False, repr=False)
    risk_table: RangeTable = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.min_score <= self.base_score <= self.max_score:
            raise ConfigurationError(
                f"base_score {self.base_score} outside [{self.min_score}, {self.max_score}]"
            )
        missing = set(EmploymentType) - set(self.employment_type_points)
        if missing:
            raise ConfigurationError(
                f"employment_type_points missing {sorted(m.value for m in missing)}"
            )

        self.employment_months_table = RangeTable("employment_months", self.employment_months_rows, domain_min=0)
        self.income_table = RangeTable("monthly_income", self.income_rows, domain_min=0)
        self.kyc_table = RangeTable("kyc_completed", self.kyc_rows, domain_min=0, domain_max=4)
        self.account_age_table = RangeTable("account_age_days", self.account_age_rows, domain_min=0)
        self.active_loans_table = RangeTable("active_loans", self.active_loans_rows, domain_min=0)
        self.grade_table = RangeTable("grade", self.grade_rows, self.min_score, self.max_score)
        self.risk_table = RangeTable("risk_level", self.risk_rows, self.min_score, self.max_score)

        for table in (self.employment_months_table, self.income_table, self.kyc_table, self.account_age_table):
            _check_monotonic(table, increasing=True)
        _check_monotonic(self.active_loans_table, increasing=False)


@dataclass(frozen=True)
class ProductTerms:
    """Pricing and eligibility terms for one loan type.

    Rates are annual fractions; amounts are in major units.
    """

    base_rate: Decimal
    min_rate: Decimal
    max_rate: Decimal
    income_multiple: Decimal
    min_amount: Decimal
    max_amount: Decimal
    min_tenure_months: int
    max_tenure_months: int
    processing_fee_rate: Decimal

    def validate(self, loan_type: LoanType) -> None:
        if not self.min_rate <= self.base_rate <= self.max_rate:
            raise ConfigurationError(f"{loan_type.value}: base rate outside [min_rate, max_rate]")
        if self.min_amount > self.max_amount:
            raise ConfigurationError(f"{loan_type.value}: min_amount exceeds max_amount")
        if not 0 < self.min_tenure_months <= self.max_tenure_months:
            raise ConfigurationError(f"{loan_type.value}: invalid tenure limits")
        if self.income_multiple <= 0:
            raise ConfigurationError(f"{loan_type.value}: income_multiple must be positive")


def _default_products() -> dict[LoanType, ProductTerms]:
    D = Decimal
    return {
        LoanType.PERSONAL: ProductTerms(D("0.12"), D("0.10"), D("0.24"), D("20"), D("10000"), D("500000"), 6, 60, D("0.02")),
        LoanType.HOME: ProductTerms(D("0.085"), D("0.08"), D("0.12"), D("60"), D("500000"), D("10000000"), 60, 360, D("0.005")),
        LoanType.BUSINESS: ProductTerms(D("0.14"), D("0.12"), D("0.24"), D("24"), D("50000"), D("2000000"), 12, 84, D("0.025")),
        LoanType.EDUCATION: ProductTerms(D("0.105"), D("0.09"), D("0.16"), D("30"), D("50000"), D("2000000"), 12, 180, D("0.015")),
        LoanType.VEHICLE: ProductTerms(D("0.095"), D("0.08"), D("0.16"), D("24"), D("100000"), D("2500000"), 12, 84, D("0.01")),
        LoanType.GOLD: ProductTerms(D("0.09"), D("0.08"), D("0.18"), D("20"), D("5000"), D("5000000"), 3, 36, D("0.01")),
        LoanType.SALARY_ADVANCE: ProductTerms(D("0.18"), D("0.14"), D("0.30"), D("1"), D("5000"), D("200000"), 1, 6, D("0.02")),
    }


@dataclass
class PricingPolicy:
    """Product terms plus tenure and score rate adjustments."""

    products: dict[LoanType, ProductTerms] = field(default_factory=_default_products)
    tenure_rows: list[tuple[int, int | None, Decimal]] = field(
        default_factory=lambda: [
            (1, 6, Decimal("0.01")),
            (7, 12, Decimal("0.005")),
            (13, 60, Decimal("0")),
            (61, 120, Decimal("0.0025")),
            (121, None, Decimal("0.005")),
        ]
    )
    score_rows: list[tuple[int, int | None, Decimal]] = field(
        default_factory=lambda: [
            (300, 549, Decimal("0.04")),
            (550, 649, Decimal("0.02")),
            (650, 699, Decimal("0")),
            (700, 749, Decimal("-0.0075")),
            (750, 900, Decimal("-0.015")),
        ]
    )
    gst_rate: Decimal = Decimal("0.18")
    prepayment_charge_rate: Decimal = Decimal("0.02")

    tenure_table: RangeTable = field(init=False, repr=False)
    score_table: RangeTable = field(init=False, repr=False)

    def __post_init__(self) -> None:
        for loan_type, terms in self.products.items():
            terms.validate(loan_type)
        self.tenure_table = RangeTable("tenure_months", self.tenure_rows, domain_min=1)
        self.score_table = RangeTable("score_adjustment", self.score_rows, MIN_SCORE, MAX_SCORE)

    def terms_for(self, loan_type: LoanType) -> ProductTerms:
        try:
            return self.products[loan_type]
        except KeyError:
            raise ConfigurationError(f"No product terms configured for {loan_type.value}") from None


@dataclass
class ApprovalPolicy:
    """Auto-approval guard: score threshold and amount ceiling (major units)."""

    auto_approval_score_threshold: int = 700
    auto_approval_ceiling: Decimal = Decimal("50000")

    def ceiling(self, currency: str = DEFAULT_CURRENCY) -> Money:
        return Money.of(self.auto_approval_ceiling, currency)


@dataclass
class DelinquencyPolicy:
    """DPD bucket table and NPA threshold."""

    bucket_rows: list[tuple[int, int | None, DelinquencyBucket]] = field(
        default_factory=lambda: [
            (0, 0, DelinquencyBucket.CURRENT),
            (1, 30, DelinquencyBucket.DPD_1_30),
            (31, 60, DelinquencyBucket.DPD_31_60),
            (61, 90, DelinquencyBucket.DPD_61_90),
            (91, 180, DelinquencyBucket.DPD_91_180),
            (181, None, DelinquencyBucket.DPD_180_PLUS),
        ]
    )
    npa_threshold_days: int = 91

    bucket_table: RangeTable = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.bucket_table = RangeTable("dpd_bucket", self.bucket_rows, domain_min=0)
        if self.npa_threshold_days <= 0:
            raise ConfigurationError("npa_threshold_days must be positive")


def _class_rows(npa_threshold_days: int) -> list[tuple[int, int | None, tuple[AssetClass, Decimal]]]:
    start = npa_threshold_days
    return [
        (0, start - 1, (AssetClass.STANDARD, Decimal("0.004"))),
        (start, start + 89, (AssetClass.SUBSTANDARD, Decimal("0.15"))),
        (start + 90, start + 274, (AssetClass.DOUBTFUL, Decimal("0.25"))),
        (start + 275, None, (AssetClass.LOSS, Decimal("1.00"))),
    ]


@dataclass
class ProvisioningPolicy:
    """DPD ranges mapped to an asset class and provisioning rate."""

    class_rows: list[tuple[int, int | None, tuple[AssetClass, Decimal]]] = field(
        default_factory=lambda: _class_rows(91)
    )

    class_table: RangeTable = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.class_table = RangeTable("asset_class", self.class_rows, domain_min=0)
        for _, rate in self.class_table.values:
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ConfigurationError(f"Provisioning rate {rate} outside [0, 1]")

    @classmethod
    def for_npa_threshold(cls, npa_threshold_days: int) -> "ProvisioningPolicy":
        """Default rates with the non-STANDARD classes starting at ``npa_threshold_days``."""
        return cls(class_rows=_class_rows(npa_threshold_days))

    @property
    def npa_start(self) -> int | None:
        """Lowest DPD provisioned as anything but STANDARD."""
        starts = [low for low, _, (asset_class, _) in self.class_rows if asset_class != AssetClass.STANDARD]
        return min(starts, default=None)

    def rate_for(self, asset_class: AssetClass) -> Decimal:
        for cls, rate in self.class_table.values:
            if cls == asset_class:
                return rate
        return Decimal("0")


@dataclass(frozen=True)
class StageStrategy:
    """Contact channels, base intensity and next step for a collection stage."""

    channels: tuple[ContactChannel, ...]
    intensity: Intensity
    next_action: str


def _default_strategies() -> dict[CollectionStage, StageStrategy]:
    return {
        CollectionStage.SOFT: StageStrategy(
            (ContactChannel.SMS, ContactChannel.EMAIL, ContactChannel.IVR),
            Intensity.LOW,
            "Send payment reminder",
        ),
        CollectionStage.HARD: StageStrategy(
            (ContactChannel.PHONE_CALL, ContactChannel.FIELD_VISIT),
            Intensity.MEDIUM,
            "Call borrower and negotiate repayment",
        ),
        CollectionStage.LEGAL: StageStrategy(
            (ContactChannel.LEGAL_NOTICE, ContactChannel.FIELD_VISIT),
            Intensity.HIGH,
            "Issue legal notice",
        ),
        CollectionStage.SETTLEMENT: StageStrategy(
            (ContactChannel.SETTLEMENT_OFFER, ContactChannel.FIELD_VISIT),
            Intensity.HIGH,
            "Offer one-time settlement",
        ),
    }


@dataclass
class CollectionPolicy:
    """Bucket-to-stage mapping and per-stage contact strategy."""

    stage_by_bucket: dict[DelinquencyBucket, CollectionStage] = field(
        default_factory=lambda: {
            DelinquencyBucket.DPD_1_30: CollectionStage.SOFT,
            DelinquencyBucket.DPD_31_60: CollectionStage.HARD,
            DelinquencyBucket.DPD_61_90: CollectionStage.HARD,
            DelinquencyBucket.DPD_91_180: CollectionStage.LEGAL,
            DelinquencyBucket.DPD_180_PLUS: CollectionStage.SETTLEMENT,
        }
    )
    strategies: dict[CollectionStage, StageStrategy] = field(default_factory=_default_strategies)
    max_attempts_per_stage: int = 5

    def __post_init__(self) -> None:
        delinquent = set(DelinquencyBucket) - {DelinquencyBucket.CURRENT}
        missing = delinquent - set(self.stage_by_bucket)
        if missing:
            raise ConfigurationError(
                f"stage_by_bucket missing {sorted(b.value for b in missing)}"
            )
        for bucket, stage in self.stage_by_bucket.items():
            if stage not in self.strategies:
                raise ConfigurationError(f"No strategy configured for stage {stage.value} ({bucket.value})")
        if self.max_attempts_per_stage <= 0:
            raise ConfigurationError("max_attempts_per_stage must be positive")


@dataclass
class ValuationConfig:
    """Batch valuation settings."""

    workers: int = 4
    portfolio_id: str = "default"

    def __post_init__(self) -> None:
        if self.workers <= 0:
            raise ConfigurationError("workers must be positive")


@dataclass
class LendingConfig:
    """Main configuration for lending-core."""

    currency: str = DEFAULT_CURRENCY
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
    pricing: PricingPolicy = field(default_factory=PricingPolicy)
    approval: ApprovalPolicy = field(default_factory=ApprovalPolicy)
    delinquency: DelinquencyPolicy = field(default_factory=DelinquencyPolicy)
    provisioning: ProvisioningPolicy = field(default_factory=ProvisioningPolicy)
    collection: CollectionPolicy = field(default_factory=CollectionPolicy)
    valuation: ValuationConfig = field(default_factory=ValuationConfig)
    seed: int | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        try:
            currency_scale(self.currency)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        # NPA status and non-STANDARD provisioning must start on the same day
        npa_start = self.provisioning.npa_start
        if npa_start != self.delinquency.npa_threshold_days:
            raise ConfigurationError(
                f"Provisioning classes start at DPD {npa_start} but "
                f"npa_threshold_days is {self.delinquency.npa_threshold_days}"
            )

    @classmethod
    def from_env(cls) -> "LendingConfig":
        """Create config from environment variables."""
        import os

        def _env(name: str, default: str, convert: Any) -> Any:
            raw = os.getenv(name, default)
            try:
                return convert(raw)
            except (ValueError, ArithmeticError) as e:
                raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e

        approval = ApprovalPolicy(
            auto_approval_score_threshold=_env("AUTO_APPROVAL_SCORE_THRESHOLD", "700", int),
            auto_approval_ceiling=_env("AUTO_APPROVAL_CEILING", "50000", Decimal),
        )

        delinquency = DelinquencyPolicy(
            npa_threshold_days=_env("NPA_THRESHOLD_DAYS", "91", int),
        )
        provisioning = ProvisioningPolicy.for_npa_threshold(delinquency.npa_threshold_days)

        valuation = ValuationConfig(
            workers=_env("VALUATION_WORKERS", "4", int),
            portfolio_id=os.getenv("PORTFOLIO_ID", "default"),
        )

        return cls(
            currency=os.getenv("LENDING_CURRENCY", DEFAULT_CURRENCY),
            approval=approval,
            delinquency=delinquency,
            provisioning=provisioning,
            valuation=valuation,
            seed=_env("SEED", "", int) if os.getenv("SEED") else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
