"""Enumeration types for lending entities."""

from enum import Enum


class LoanType(str, Enum):
    PERSONAL = "PERSONAL"
    HOME = "HOME"
    BUSINESS = "BUSINESS"
    EDUCATION = "EDUCATION"
    VEHICLE = "VEHICLE"
    GOLD = "GOLD"
    SALARY_ADVANCE = "SALARY_ADVANCE"


class LoanStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ON_HOLD = "ON_HOLD"
    DISBURSED = "DISBURSED"
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    NPA = "NPA"
    COMPLETED = "COMPLETED"
    WRITTEN_OFF = "WRITTEN_OFF"
    SETTLED = "SETTLED"


class PeriodUnit(str, Enum):
    WEEK = "WEEK"
    FORTNIGHT = "FORTNIGHT"
    MONTH = "MONTH"
    QUARTER = "QUARTER"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]


_PERIODS_PER_YEAR = {
    PeriodUnit.WEEK: 52,
    PeriodUnit.FORTNIGHT: 26,
    PeriodUnit.MONTH: 12,
    PeriodUnit.QUARTER: 4,
}


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class EmploymentType(str, Enum):
    SALARIED = "SALARIED"
    SELF_EMPLOYED = "SELF_EMPLOYED"
    RETIRED = "RETIRED"
    STUDENT = "STUDENT"
    UNEMPLOYED = "UNEMPLOYED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class Decision(str, Enum):
    AUTO_APPROVED = "AUTO_APPROVED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    REJECTED = "REJECTED"


class UnderwritingDecision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    HOLD = "HOLD"
    RESUME = "RESUME"


class DelinquencyBucket(str, Enum):
    CURRENT = "CURRENT"
    DPD_1_30 = "DPD_1_30"
    DPD_31_60 = "DPD_31_60"
    DPD_61_90 = "DPD_61_90"
    DPD_91_180 = "DPD_91_180"
    DPD_180_PLUS = "DPD_180_PLUS"

    @property
    def severity(self) -> int:
        return list(DelinquencyBucket).index(self)


class AssetClass(str, Enum):
    STANDARD = "STANDARD"
    SUBSTANDARD = "SUBSTANDARD"
    DOUBTFUL = "DOUBTFUL"
    LOSS = "LOSS"


class CollectionStage(str, Enum):
    SOFT = "SOFT"
    HARD = "HARD"
    LEGAL = "LEGAL"
    SETTLEMENT = "SETTLEMENT"
    CLOSED = "CLOSED"


class ContactChannel(str, Enum):
    SMS = "SMS"
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    IVR = "IVR"
    PHONE_CALL = "PHONE_CALL"
    FIELD_VISIT = "FIELD_VISIT"
    LEGAL_NOTICE = "LEGAL_NOTICE"
    SETTLEMENT_OFFER = "SETTLEMENT_OFFER"


class Intensity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    def escalate(self) -> "Intensity":
        members = list(Intensity)
        return members[min(members.index(self) + 1, len(members) - 1)]


class ActivityKind(str, Enum):
    OPENED = "OPENED"
    STAGE_CHANGED = "STAGE_CHANGED"
    CONTACT = "CONTACT"
    PROMISE_TO_PAY = "PROMISE_TO_PAY"
    AGENT_ASSIGNED = "AGENT_ASSIGNED"
    CLOSED = "CLOSED"
