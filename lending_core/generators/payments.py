"""Behavioral patterns for synthetic loan repayments."""

from __future__ import annotations

from datetime import date, timedelta

from lending_core.generators.base import BaseGenerator
from lending_core.models import PaymentEvent, Schedule

BEHAVIORS = ["good", "occasional_late", "chronic_late", "defaulter"]


class PaymentBehavior(BaseGenerator):
    """Simulate realistic repayment behavior against a schedule."""

    def choose_behavior(
        self,
        on_time_rate: float = 0.85,
        late_rate: float = 0.10,
        default_rate: float = 0.05,
    ) -> str:
        """Pick a borrower behavior type."""
        return self.rng.choices(
            BEHAVIORS,
            weights=[on_time_rate, late_rate * 0.7, late_rate * 0.3, default_rate],
            k=1,
        )[0]

    def payments_for(
        self,
        schedule: Schedule,
        behavior: str,
        reference_date: date | None = None,
    ) -> list[PaymentEvent]:
        """Payment events for the entries of ``schedule`` up to ``reference_date``.

        Parameters
        ----------
        schedule : Schedule
            Schedule being repaid.
        behavior : str
            One of ``good``, ``occasional_late``, ``chronic_late`` or
            ``defaulter``.
        reference_date : date | None
            Current date; payments dated after it have not happened yet.

        Returns
        -------
        list[PaymentEvent]
            Events in payment-date order, each for an entry's full amount.
        """
        if behavior not in BEHAVIORS:
            raise ValueError(f"Unknown payment behavior: {behavior}")
        if reference_date is None:
            reference_date = date.today()

        rng = self.rng
        stop_after = rng.randint(2, 6)
        events = []

        for entry in schedule.entries:
            if entry.due_date > reference_date:
                break

            if behavior == "good":
                # Pays on time or within 3 days
                days_late = rng.randint(0, 3)
            elif behavior == "occasional_late":
                # 80% on time, 20% late
                days_late = rng.randint(0, 5) if rng.random() < 0.8 else rng.randint(10, 30)
            elif behavior == "chronic_late":
                # Always pays, usually late
                days_late = rng.randint(5, 45)
            else:
                # Pays the first few, then stops
                if entry.sequence > stop_after:
                    break
                days_late = rng.randint(0, 15)

            paid_on = entry.due_date + timedelta(days=days_late)
            if paid_on > reference_date:
                break
            events.append(PaymentEvent(entry_id=entry.entry_id, amount=entry.total, paid_on=paid_on))

        return sorted(events, key=lambda e: e.paid_on)
