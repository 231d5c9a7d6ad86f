"""Browser session management using patchright.

Hard rules:
  - headless=False always (no config override)
  - Single browser context per session
  - An existing browser reached over CDP is never closed by us
  - patchright, not vanilla playwright
"""

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

from patchright.async_api import Browser, BrowserContext, Page, Playwright, Response, Route, async_playwright

from jobs_scraper.core.config import BrowserConfig

logger = logging.getLogger(__name__)

ALLOWED_DOMAINS: tuple[str, ...] = ("linkedin.com", "licdn.com")

BLOCKED_PATHS: tuple[str, ...] = (
    "li/track",
    "realtime.www.linkedin.com/realtime",
    "platform.linkedin.com/litms",
    "linkedin.com/sensorCollect",
    "linkedin.com/pixel/tracking",
)

OPTIMIZE_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "stylesheet", "media", "font", "imageset"})
OPTIMIZE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".css")


class BrowserSession:
    """Owns one patchright browser + context; hands out pages per run.

    Usage::

        async with BrowserSession(config) as session:
            page = await session.new_page(optimize=False)
            await page.goto("https://...")
    """

    def __init__(self, config: BrowserConfig) -> None:
        self._config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @property
    def context(self) -> BrowserContext:
        """The single browser context. Raises if not started."""
        if self._context is None:
            msg = "BrowserSession not started: use 'async with' or start()"
            raise RuntimeError(msg)
        return self._context

    @property
    def is_started(self) -> bool:
        return self._context is not None

    async def start(self) -> "BrowserSession":
        pw = await async_playwright().start()
        self._playwright = pw

        if self._config.is_existing_browser:
            logger.info("Connecting to existing browser at %s", self._config.cdp_url)
            self._browser = await pw.chromium.connect_over_cdp(self._config.cdp_url)
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else await self._browser.new_context()
        else:
            # headless=False is non-negotiable (anti-detection)
            self._browser = await pw.chromium.launch(headless=False, slow_mo=self._config.slow_mo_ms)
            self._context = await self._browser.new_context(bypass_csp=True)

        cookies = _load_cookies(self._config.cookies_path)
        if cookies:
            await self._context.add_cookies(cookies)
            logger.info("Loaded %d cookies from %s", len(cookies), self._config.cookies_path)
        else:
            logger.debug("No cookie file loaded from %s", self._config.cookies_path)

        self._context.set_default_timeout(self._config.timeout_ms)
        return self

    async def new_page(self, *, optimize: bool = False) -> Page:
        """Open a page with request blocking and response logging installed."""
        page = await self.context.new_page()

        async def _on_route(route: Route) -> None:
            request = route.request
            if should_block_request(request.url, request.resource_type, optimize=optimize):
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", _on_route)
        page.on("response", _log_response)
        return page

    async def close(self) -> None:
        try:
            if self._context is not None and not self._config.is_existing_browser:
                await self._context.close()
            if self._browser is not None and not self._config.is_existing_browser:
                await self._browser.close()
            if self._playwright is not None:
                await self._playwright.stop()
        finally:
            self._context = None
            self._browser = None
            self._playwright = None

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


def should_block_request(url: str, resource_type: str, *, optimize: bool = False) -> bool:
    """Decide whether an outgoing request is aborted.

    Tracking endpoints and third-party domains are always blocked; with
    ``optimize`` also images, stylesheets, media and fonts.
    """
    parsed = urlparse(url)
    if parsed.scheme in ("data", "blob"):
        return False

    target = f"{parsed.netloc}{parsed.path}"
    if any(blocked in target for blocked in BLOCKED_PATHS):
        return True

    domain = ".".join(parsed.hostname.split(".")[-2:]).lower() if parsed.hostname else ""
    if domain not in ALLOWED_DOMAINS:
        return True

    if optimize:
        if resource_type in OPTIMIZE_RESOURCE_TYPES:
            return True
        if any(ext in url for ext in OPTIMIZE_EXTENSIONS):
            return True

    return False


def _log_response(response: Response) -> None:
    if response.status == 429:
        logger.warning(
            "Error 429 too many requests. Consider a higher slow_mo_ms "
            "and fewer queries per run.",
        )
    elif response.status >= 400:
        logger.warning("%d Error for request %s", response.status, response.url)


def _load_cookies(path: str) -> list[Any]:
    """Load cookies from a JSON file. Returns empty list on any failure."""
    cookie_path = Path(path)
    if not cookie_path.exists():
        logger.debug("Cookie file not found: %s", path)
        return []
    try:
        data = json.loads(cookie_path.read_text())
        if isinstance(data, list):
            return data
        logger.warning("Cookie file is not a JSON array: %s", path)
        return []
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load cookies from %s: %s", path, e)
        return []
