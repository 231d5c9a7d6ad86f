"""Authenticated LinkedIn run strategy: the pagination state machine.

One call to ``run`` drives a single (query, location) pair:

  Idle → HomeNavigated → SessionVerified → CollectionLoaded → ItemLoop
       → PageExhausted → (Paginate → SessionVerified | Done)

Terminal states are Done (limit reached, pagination exhausted, or no result
list at all) and Aborted (invalid session on entry, or forced exit).

Rules:
  - The limit is checked before every item, not only at page boundaries.
  - A failing item increments ``failed`` and the loop moves on.
  - Data and error events are emitted outside the item's except block.
  - More items are awaited only when the page is under-filled.
  - Pagination timeout means exhaustion, never an error.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from jobs_scraper.core.config import Query
from jobs_scraper.core.dates import convert_to_date_string
from jobs_scraper.core.errors import FatalRunError
from jobs_scraper.core.events import Event, EventSink
from jobs_scraper.core.schemas import JobRecord, RunOutcome, RunResult
from jobs_scraper.pipeline.job_store import JobStore
from jobs_scraper.pipeline.metrics import MetricsAccumulator
from jobs_scraper.platforms.base import RunStrategy, StrategyKind
from jobs_scraper.platforms.linkedin.auth import is_authenticated, set_auth_cookie
from jobs_scraper.platforms.linkedin.parser import LinkedInExtractor
from jobs_scraper.platforms.linkedin.searcher import HOME_URL, RESULTS_PER_PAGE, with_offset

logger = logging.getLogger(__name__)


class _Skip(str, Enum):
    PROMOTED = "promoted"
    ALREADY_SEEN = "already seen"


class AuthenticatedStrategy(RunStrategy):
    """Scrapes search results with a logged-in session (``li_at`` cookie)."""

    def __init__(
        self,
        events: EventSink,
        *,
        auth_cookie: str | None = None,
        store: JobStore | None = None,
        should_exit: Callable[[], bool] | None = None,
        extractor_factory: Callable[[Any], LinkedInExtractor] = LinkedInExtractor,
        page_size: int = RESULTS_PER_PAGE,
    ) -> None:
        self._events = events
        self._auth_cookie = auth_cookie
        self._store = store
        self._should_exit = should_exit or (lambda: False)
        self._extractor_factory = extractor_factory
        self._page_size = page_size

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.AUTHENTICATED

    async def run(self, page: Any, url: str, query: Query, location: str) -> RunResult:
        options = query.options
        limit = options.limit
        tag = f"[{query.keyword}][{location}]"
        extractor = self._extractor_factory(page)
        metrics = MetricsAccumulator()
        pagination_index = options.page_offset
        page_size = self._page_size

        # Home page first, then the credential
        logger.debug("%s Opening %s", tag, HOME_URL)
        await page.goto(HOME_URL, wait_until="load")
        if self._auth_cookie:
            await set_auth_cookie(page, self._auth_cookie)

        search_url = with_offset(url, pagination_index * page_size)
        logger.info("%s Opening %s", tag, search_url)
        await page.goto(search_url, wait_until="load")

        if not await is_authenticated(page):
            logger.error(
                "%s The session cookie is invalid. Provide a valid li_at cookie.", tag,
            )
            self._events.emit(Event.INVALID_SESSION)
            return RunResult(outcome=RunOutcome.ABORTED)

        if not await extractor.wait_for_container():
            logger.info("%s No jobs found, skip", tag)
            return RunResult()

        # Pagination loop
        while not metrics.limit_reached(limit):
            if self._should_exit():
                return RunResult(outcome=RunOutcome.ABORTED, exit=True)

            if not await is_authenticated(page):
                logger.warning("%s Session is invalid, this may cause the scraper to fail.", tag)
                self._events.emit(Event.INVALID_SESSION)
            else:
                logger.info("%s Session is valid", tag)

            await extractor.dismiss_overlays(tag)

            job_index = 0
            jobs_tot = await extractor.count_items()
            if jobs_tot == 0:
                logger.info("%s No jobs found, skip", tag)
                break

            # Jobs loop
            while job_index < jobs_tot and not metrics.limit_reached(limit):
                if self._should_exit():
                    return RunResult(outcome=RunOutcome.ABORTED, exit=True)

                item_tag = f"[{query.keyword}][{location}][{pagination_index * page_size + job_index + 1}]"
                record: JobRecord | None = None
                skip: _Skip | None = None
                error: str | None = None

                try:
                    record, skip = await self._extract_item(extractor, query, location, job_index, item_tag)
                except Exception as exc:
                    if extractor.is_closed():
                        msg = f"{item_tag} Page closed during extraction"
                        raise FatalRunError(msg) from exc
                    error = f"{item_tag}\t{exc}"

                if error is not None:
                    logger.error("%s", error)
                    metrics.record_failed()
                    job_index += 1
                    self._events.emit(Event.ERROR, error)
                    continue

                if skip is not None:
                    logger.info("%s Skipped because %s", item_tag, skip.value)
                    metrics.record_skipped()
                else:
                    self._events.emit(Event.DATA, record)
                    metrics.record_processed()
                    logger.info("%s Processed", item_tag)
                job_index += 1

                # Under-filled page: more cards may still be rendering
                if not metrics.limit_reached(limit) and job_index == jobs_tot and jobs_tot < page_size:
                    grown = await extractor.wait_for_more_items(jobs_tot)
                    if grown.success:
                        jobs_tot = int(grown.value)

                if job_index == jobs_tot:
                    break

            logger.info("%s No more jobs to process in this page", tag)

            if metrics.limit_reached(limit):
                logger.info("%s Query limit reached!", tag)
                snapshot = metrics.snapshot()
                self._events.emit(Event.METRICS, snapshot)
                logger.info("%s Metrics: %s", tag, snapshot.model_dump())
                break

            metrics.record_missed(max(0, page_size - job_index))
            snapshot = metrics.snapshot()
            self._events.emit(Event.METRICS, snapshot)
            logger.info("%s Metrics: %s", tag, snapshot.model_dump())

            pagination_index += 1
            logger.info("%s Pagination requested [%d]", tag, pagination_index)
            if not await self._paginate(extractor, url, pagination_index * page_size, tag):
                logger.info("%s Couldn't find more jobs for the running query", tag)
                break

        return RunResult()

    async def _extract_item(
        self,
        extractor: LinkedInExtractor,
        query: Query,
        location: str,
        job_index: int,
        tag: str,
    ) -> tuple[JobRecord | None, _Skip | None]:
        """Extract one item. Returns (record, None) or (None, skip reason).

        Raises on any unrecoverable field error; the caller counts it as failed.
        """
        options = query.options
        record = JobRecord(query=query.keyword, location=location, job_index=job_index)

        logger.debug("%s Evaluating listing fields", tag)
        listing = await extractor.extract_listing(job_index)
        record = record.with_listing(listing)

        if options.skip_promoted_jobs and listing.is_promoted:
            return None, _Skip.PROMOTED

        if self._store is not None and self._store.contains(listing.job_id):
            return None, _Skip.ALREADY_SEEN

        details = await extractor.wait_for_details(listing.job_id)
        details.raise_for_failure()

        description, description_html = await extractor.extract_description(options.description_fn)
        record = record.model_copy(update={
            "description": description,
            "description_html": description_html,
        })

        # The listing view sometimes has no machine-readable date
        if not record.date:
            ago_text = await extractor.extract_date_ago()
            if ago_text:
                try:
                    record = record.model_copy(update={"date": convert_to_date_string(ago_text)})
                except ValueError:
                    logger.warning("%s Failed to parse secondary date: %s", tag, ago_text)

        record = record.model_copy(update={"insights": await extractor.extract_insights()})

        if options.apply_link:
            apply_link = await extractor.extract_apply_link(tag)
            if apply_link:
                record = record.model_copy(update={"apply_link": apply_link})

        return record, None

    async def _paginate(self, extractor: LinkedInExtractor, url: str, offset: int, tag: str) -> bool:
        """Navigate to ``offset`` and wait for cards. False means exhausted."""
        next_url = with_offset(url, offset)
        logger.info("%s Next offset: %d", tag, offset)
        logger.info("%s Opening %s", tag, next_url)
        await extractor.page.goto(next_url, wait_until="load")

        logger.info("%s Waiting for new jobs to load", tag)
        result = await extractor.wait_for_items()
        if not result.success:
            logger.debug("%s %s", tag, result.error)
        return result.success
