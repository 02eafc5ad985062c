"""Periodic batch valuation over the loan book."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable

from lending_core.models.delinquency import DelinquencyRecord

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Per-loan results of one valuation batch."""

    records: list[DelinquencyRecord] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)


class ValuationRunner:
    """Runs a per-loan valuation function across a pool of worker threads.

    Loans are independent, so they are valued in any order. A failing loan
    is logged and reported without stopping the batch. Setting
    ``cancel_event`` stops the batch between loans: a loan that has started
    always finishes, loans not yet started are reported as skipped.

    Parameters
    ----------
    workers : int
        Size of the thread pool.
    """

    def __init__(self, workers: int = 4) -> None:
        self.workers = workers

    def run(
        self,
        loan_ids: Iterable[str],
        value_loan: Callable[[str], DelinquencyRecord],
        cancel_event: threading.Event | None = None,
    ) -> BatchOutcome:
        """Value every loan in ``loan_ids`` with ``value_loan``."""
        cancel_event = cancel_event or threading.Event()
        loan_ids = list(loan_ids)
        outcome = BatchOutcome()
        t0 = time.perf_counter()

        def _guarded(loan_id: str) -> DelinquencyRecord | None:
            if cancel_event.is_set():
                return None
            return value_loan(loan_id)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {executor.submit(_guarded, loan_id): loan_id for loan_id in loan_ids}
            for future in as_completed(futures):
                loan_id = futures[future]
                try:
                    record = future.result()
                except Exception:
                    logger.exception("Valuation failed for loan %s", loan_id, extra={"loan_id": loan_id})
                    outcome.failed.append(loan_id)
                    continue
                if record is None:
                    outcome.skipped.append(loan_id)
                else:
                    outcome.records.append(record)

        outcome.records.sort(key=lambda r: r.loan_id)
        outcome.failed.sort()
        outcome.skipped.sort()
        logger.info(
            "Valued %d/%d loans in %.2fs (%d failed, %d skipped)",
            len(outcome.records),
            len(loan_ids),
            time.perf_counter() - t0,
            len(outcome.failed),
            len(outcome.skipped),
        )
        return outcome
