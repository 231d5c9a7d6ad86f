"""Scraper entry point: plan, initialize the browser once, run every query × location.

Data flow:
  1. Plan queries (fail fast on validation, before any navigation)
  2. Initialize the browser session (idempotent, concurrent callers wait)
  3. Under the run lock, for each query and location: fresh page → build URL → strategy run
  4. Emit END; on any escaping error emit ERROR, tear down, re-raise
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from jobs_scraper.browser.actions import poll_until
from jobs_scraper.browser.session import BrowserSession
from jobs_scraper.core.config import BrowserConfig, Query
from jobs_scraper.core.errors import ConfigError, FatalRunError, InitializeTimeoutError
from jobs_scraper.core.events import Event, EventSink, Listener
from jobs_scraper.pipeline.job_store import JobStore
from jobs_scraper.pipeline.planner import RawOptions, RawQuery, plan_queries
from jobs_scraper.platforms.base import RunStrategy, StrategyKind
from jobs_scraper.platforms.linkedin.adapter import AuthenticatedStrategy
from jobs_scraper.platforms.linkedin.searcher import build_url

logger = logging.getLogger(__name__)

INITIALIZE_TIMEOUT_MS = 10000
INITIALIZE_POLL_MS = 100


class ScraperState(str, Enum):
    NOT_INITIALIZED = "not_initialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"


class LinkedInScraper:
    """Runs queries against LinkedIn job search and reports through events.

    Usage::

        scraper = LinkedInScraper(BrowserConfig())
        scraper.on(Event.DATA, handle_record)
        await scraper.run({"query": "engineer", "options": {"limit": 5}})
        await scraper.close()
    """

    def __init__(
        self,
        config: BrowserConfig,
        *,
        store: JobStore | None = None,
        session_factory: Callable[[BrowserConfig], BrowserSession] = BrowserSession,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._session: BrowserSession | None = None
        self._state = ScraperState.NOT_INITIALIZED
        self._exit_requested = False
        self._run_lock = asyncio.Lock()
        self.events = EventSink()
        self.store = store
        self._strategy = self._select_strategy(_select_strategy_kind(config))

    @property
    def state(self) -> ScraperState:
        return self._state

    @property
    def strategy(self) -> RunStrategy:
        return self._strategy

    def on(self, event: Event, listener: Listener) -> None:
        self.events.on(event, listener)

    def request_exit(self) -> None:
        """Stop the run in progress after the current item; no further locations or queries run."""
        self._exit_requested = True

    async def run(self, queries: RawQuery | Sequence[RawQuery], options: RawOptions | None = None) -> None:
        """Scrape all queries sequentially.

        Concurrent calls share the browser session but their run loops are
        serialized: a later call starts once the earlier one has finished.

        Raises QueryValidationError before any navigation, or re-raises any
        error escaping the run loop after emitting it and closing the browser.
        """
        try:
            planned = plan_queries(queries, options)

            if self._state is ScraperState.NOT_INITIALIZED:
                await self._initialize()
            elif self._state is ScraperState.INITIALIZING:
                await self._wait_initialized()
        except Exception as exc:
            await self._fail(exc)
            raise

        async with self._run_lock:
            try:
                # An earlier run may have torn the session down while this one waited
                if self._state is not ScraperState.INITIALIZED:
                    await self._initialize()

                self._exit_requested = False
                await self._run(planned)
            except Exception as exc:
                await self._fail(exc)
                raise

    async def _fail(self, exc: Exception) -> None:
        """Report ``exc`` on ERROR and tear down, even if a listener raises."""
        try:
            self.events.emit(Event.ERROR, exc)
        except Exception:
            logger.exception("ERROR listener raised while reporting %r", exc)
        finally:
            await self.close()

    async def close(self) -> None:
        """Release the browser session. Safe to call repeatedly."""
        try:
            if self._session is not None:
                await self._session.close()
        finally:
            self._session = None
            self._state = ScraperState.NOT_INITIALIZED

    async def _initialize(self) -> None:
        self._state = ScraperState.INITIALIZING
        try:
            session = self._session_factory(self._config)
            await session.start()
        except Exception:
            self._state = ScraperState.NOT_INITIALIZED
            raise
        self._session = session
        self._state = ScraperState.INITIALIZED
        logger.info("Browser session initialized")

    async def _wait_initialized(self) -> None:
        async def _settled() -> bool:
            return self._state is not ScraperState.INITIALIZING

        result = await poll_until(
            _settled,
            interval_ms=INITIALIZE_POLL_MS,
            timeout_ms=INITIALIZE_TIMEOUT_MS,
            description="initialization",
        )
        if not result.success:
            msg = f"Initialize timeout exceeded: {INITIALIZE_TIMEOUT_MS}ms"
            raise InitializeTimeoutError(msg)
        if self._state is not ScraperState.INITIALIZED:
            msg = "Concurrent browser initialization failed"
            raise FatalRunError(msg)

    async def _run(self, queries: list[Query]) -> None:
        if self._session is None:
            msg = "Browser session is not initialized"
            raise RuntimeError(msg)

        for query in queries:
            options = query.options
            if options.optimize:
                logger.warning("Query option optimize=True: this could cause issues in jobs loading or pagination")

            for location in options.locations:
                tag = f"[{query.keyword}][{location}]"
                if self._exit_requested:
                    logger.warning("%s Forced termination", tag)
                    self.events.emit(Event.END)
                    return

                logger.info('%s Starting new query: query="%s" location="%s"', tag, query.keyword, location)
                logger.info("%s Query options %s", tag, options.model_dump(exclude_none=True))

                page = await self._session.new_page(optimize=options.optimize)
                try:
                    url = build_url(query.keyword, location, options)
                    result = await self._strategy.run(page, url, query, location)
                finally:
                    await page.close()

                if result.exit:
                    logger.warning("%s Forced termination", tag)
                    self.events.emit(Event.END)
                    return

        self.events.emit(Event.END)

    def _select_strategy(self, kind: StrategyKind) -> RunStrategy:
        if kind is StrategyKind.AUTHENTICATED:
            logger.info("Using %s", AuthenticatedStrategy.__name__)
            return AuthenticatedStrategy(
                self.events,
                auth_cookie=self._config.li_at_cookie,
                store=self.store,
                should_exit=lambda: self._exit_requested,
            )
        msg = f"Unsupported strategy {kind}"
        raise ConfigError(msg)


def _select_strategy_kind(config: BrowserConfig) -> StrategyKind:
    """Only the authenticated strategy exists: it needs some source of credentials."""
    if config.li_at_cookie or config.is_existing_browser or Path(config.cookies_path).exists():
        return StrategyKind.AUTHENTICATED
    msg = (
        "No LinkedIn session available: set LI_AT_COOKIE, provide a cookie file "
        f"at {config.cookies_path}, or connect to an existing browser with cdp_url"
    )
    raise ConfigError(msg)

