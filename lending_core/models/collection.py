"""Collection case models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from lending_core.models.enums import (
    ActivityKind,
    CollectionStage,
    ContactChannel,
    DelinquencyBucket,
    Intensity,
)
from lending_core.models.money import Money


@dataclass(frozen=True)
class CollectionActivity:
    """One entry of a case's append-only activity log."""

    kind: ActivityKind
    at: datetime
    actor: str
    channel: ContactChannel | None = None
    notes: str = ""
    promise_to_pay_date: date | None = None


@dataclass
class CollectionCase:
    """Collection case for a delinquent loan."""

    case_id: str
    loan_id: str
    stage: CollectionStage
    bucket: DelinquencyBucket
    dpd: int
    outstanding: Money
    opened_on: date
    channels: tuple[ContactChannel, ...] = ()
    intensity: Intensity = Intensity.LOW
    assigned_agent: str | None = None
    last_contact_at: datetime | None = None
    promise_to_pay_date: date | None = None
    closed_on: date | None = None
    closure_reason: str | None = None
    activities: list[CollectionActivity] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.stage != CollectionStage.CLOSED

    def contact_attempts(self, current_stage_only: bool = False) -> int:
        """Count contacts, optionally only those made since the last stage change."""
        count = 0
        for activity in reversed(self.activities):
            if current_stage_only and activity.kind == ActivityKind.STAGE_CHANGED:
                break
            if activity.kind in (ActivityKind.CONTACT, ActivityKind.PROMISE_TO_PAY):
                count += 1
        return count


@dataclass(frozen=True)
class CollectionAction:
    """Next collection step for a case."""

    case_id: str
    loan_id: str
    stage: CollectionStage
    channels: tuple[ContactChannel, ...]
    intensity: Intensity
    next_action: str
    bucket: DelinquencyBucket
    dpd: int
    outstanding: Money
    last_contact_at: datetime | None
    assigned_agent: str | None
