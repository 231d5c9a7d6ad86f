"""Per-run counters.

One accumulator per (query, location) run; counters only ever grow.
"""

import logging

from jobs_scraper.core.schemas import Metrics

logger = logging.getLogger(__name__)


class MetricsAccumulator:
    """Tallies processed/failed/missed/skipped for a single run.

    Usage::

        metrics = MetricsAccumulator()
        metrics.record_processed()
        events.emit(Event.METRICS, metrics.snapshot())
    """

    def __init__(self) -> None:
        self.processed = 0
        self.failed = 0
        self.missed = 0
        self.skipped = 0

    def record_processed(self) -> None:
        self.processed += 1

    def record_failed(self) -> None:
        self.failed += 1

    def record_skipped(self) -> None:
        self.skipped += 1

    def record_missed(self, count: int) -> None:
        """Add items that the nominal page size promised but were never reached."""
        if count < 0:
            logger.debug("Ignoring negative missed count %d", count)
            return
        self.missed += count

    def limit_reached(self, limit: int) -> bool:
        return self.processed >= limit

    def snapshot(self) -> Metrics:
        return Metrics(
            processed=self.processed,
            failed=self.failed,
            missed=self.missed,
            skipped=self.skipped,
        )
