"""LinkedIn field extraction: every read of the rendered document lives here.

All DOM access goes through ``page.evaluate(script, arg)`` with the script
constants below, so the pagination loop never touches selectors directly.

Design rules:
  - Missing optional fields come back as "" or None, never as an error.
  - A card without a link, or a detail panel without a description, is an
    ItemExtractionError: the item is abandoned, the run continues.
  - Readiness waits go through poll_until with fixed interval/timeout pairs.
"""

import logging
from typing import Any
from urllib.parse import urlparse, urlunparse

from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from jobs_scraper.browser.actions import poll_until
from jobs_scraper.core.errors import ItemExtractionError
from jobs_scraper.core.schemas import ListingFields, PollResult
from jobs_scraper.platforms.linkedin import selectors

logger = logging.getLogger(__name__)

CONTAINER_TIMEOUT_MS = 5000

ITEMS_GROWTH_INTERVAL_MS = 50
ITEMS_GROWTH_TIMEOUT_MS = 2000
DETAILS_INTERVAL_MS = 50
DETAILS_TIMEOUT_MS = 2000
PAGINATION_INTERVAL_MS = 100
PAGINATION_TIMEOUT_MS = 2000
APPLY_LINK_INTERVAL_MS = 100
APPLY_LINK_TIMEOUT_MS = 2000

# --- In-page scripts (each takes a single argument) ---

COUNT_ITEMS_JS = "(selector) => document.querySelectorAll(selector).length"

EXTRACT_LISTING_JS = """
(args) => {
    const job = document.querySelectorAll(args.jobs)[args.index];
    if (!job) return null;
    const link = job.querySelector(args.link);
    if (!link) return null;

    link.scrollIntoView();
    link.click();

    const absolute = (href) => href ? new URL(href, window.location.href).href : null;
    const text = (el) => el ? (el.innerText || "").trim() : "";

    let company = "";
    let companyLink = null;
    for (const selector of args.company) {
        const el = job.querySelector(selector);
        if (el) {
            company = text(el);
            companyLink = absolute(el.getAttribute("href"));
            break;
        }
    }

    const img = job.querySelector("img");
    const date = job.querySelector(args.date);
    const footer = text(job.querySelector(args.footer));
    const promotedItem = Array.from(job.querySelectorAll("li"))
        .some((e) => text(e) === "Promoted");

    return {
        job_id: job.getAttribute(args.jobIdAttr) || "",
        link: absolute(link.getAttribute("href")) || "",
        title: text(job.querySelector(args.title)),
        company: company,
        company_link: companyLink,
        company_img_link: img ? img.getAttribute("src") : null,
        place: text(job.querySelector(args.place)),
        date: date ? (date.getAttribute("datetime") || "") : "",
        is_promoted: promotedItem || footer.includes("Promoted"),
        is_easy_apply: footer.includes("Easy Apply"),
    };
}
"""

DETAILS_READY_JS = """
(args) => {
    const panel = document.querySelector(args.panel);
    if (!panel) return false;
    const description = document.querySelector(args.description);
    if (!description) return false;
    return !!(panel.innerHTML.includes(args.jobId) && description.innerText);
}
"""

DESCRIPTION_JS = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? [el.innerText, el.outerHTML] : null;
}
"""

DESCRIPTION_HTML_JS = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? el.outerHTML : "";
}
"""

DATE_AGO_JS = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? (el.innerText || "").trim() : "";
}
"""

INSIGHTS_JS = r"""
(selector) => Array.from(document.querySelectorAll(selector))
    .map((e) => (e.textContent || "").replace(/[\n\r\t ]+/g, " ").trim())
"""

CLICK_APPLY_JS = """
(selector) => {
    const button = document.querySelector(selector);
    if (!button) return false;
    button.click();
    return true;
}
"""

HIDE_CHAT_PANEL_JS = """
(selector) => {
    const div = document.querySelector(selector);
    if (div) div.style.display = "none";
}
"""

ACCEPT_COOKIES_JS = """
() => {
    const button = Array.from(document.querySelectorAll("button"))
        .find((e) => e.innerText.includes("Accept cookies"));
    if (button) button.click();
}
"""

ACCEPT_PRIVACY_JS = """
(selector) => {
    const button = Array.from(document.querySelectorAll(selector))
        .find((e) => e.innerText === "Accept");
    if (button) button.click();
}
"""


class LinkedInExtractor:
    """Reads job fields from the authenticated LinkedIn search page."""

    def __init__(self, page: Any) -> None:
        self._page = page

    @property
    def page(self) -> Any:
        return self._page

    def is_closed(self) -> bool:
        return bool(self._page.is_closed())

    async def wait_for_container(self, timeout_ms: int = CONTAINER_TIMEOUT_MS) -> bool:
        """Wait for the result list container. False means no results."""
        try:
            await self._page.wait_for_selector(selectors.CONTAINER, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def count_items(self) -> int:
        count = await self._page.evaluate(COUNT_ITEMS_JS, selectors.JOBS)
        return int(count or 0)

    async def dismiss_overlays(self, tag: str) -> None:
        """Hide chat and accept cookie/privacy prompts. Best effort."""
        steps = (
            ("hide chat panel", HIDE_CHAT_PANEL_JS, selectors.CHAT_PANEL),
            ("accept cookies", ACCEPT_COOKIES_JS, None),
            ("accept privacy", ACCEPT_PRIVACY_JS, selectors.PRIVACY_ACCEPT_BUTTON),
        )
        for name, script, arg in steps:
            try:
                await self._page.evaluate(script, arg)
            except Exception:
                logger.debug("%s Failed to %s", tag, name, exc_info=True)

    async def extract_listing(self, index: int) -> ListingFields:
        """Click the card at ``index`` and read its listing-level fields."""
        raw = await self._page.evaluate(EXTRACT_LISTING_JS, {
            "jobs": selectors.JOBS,
            "link": selectors.LINK,
            "title": selectors.TITLE,
            "company": list(selectors.COMPANY),
            "place": selectors.PLACE,
            "date": selectors.DATE,
            "footer": selectors.FOOTER,
            "jobIdAttr": selectors.JOB_ID_ATTR,
            "index": index,
        })
        if not raw:
            msg = f"Job card {index} not found or has no link"
            raise ItemExtractionError(msg)
        listing = ListingFields.model_validate(raw)
        if listing.link:
            listing = listing.model_copy(update={"link": _clean_url(listing.link)})
        return listing

    async def wait_for_more_items(self, current_count: int) -> PollResult:
        """Poll until more than ``current_count`` cards are rendered."""

        async def _grown() -> int:
            count = await self.count_items()
            return count if count > current_count else 0

        return await poll_until(
            _grown,
            interval_ms=ITEMS_GROWTH_INTERVAL_MS,
            timeout_ms=ITEMS_GROWTH_TIMEOUT_MS,
            description="loading jobs",
        )

    async def wait_for_details(self, job_id: str) -> PollResult:
        """Poll until the detail panel shows ``job_id`` with a description."""

        async def _ready() -> bool:
            return bool(await self._page.evaluate(DETAILS_READY_JS, {
                "panel": selectors.DETAILS_PANEL,
                "description": selectors.DESCRIPTION,
                "jobId": job_id,
            }))

        return await poll_until(
            _ready,
            interval_ms=DETAILS_INTERVAL_MS,
            timeout_ms=DETAILS_TIMEOUT_MS,
            description="loading job details",
        )

    async def wait_for_items(self) -> PollResult:
        """Poll until at least one card is rendered after a page change."""
        return await poll_until(
            self.count_items,
            interval_ms=PAGINATION_INTERVAL_MS,
            timeout_ms=PAGINATION_TIMEOUT_MS,
            description="pagination",
        )

    async def extract_description(self, description_fn: str | None = None) -> tuple[str, str]:
        """Return (plain text, outer HTML) of the description panel.

        ``description_fn`` is JS source of a zero-argument function whose
        return value replaces the plain text.
        """
        if description_fn:
            text = await self._page.evaluate(f"({description_fn})()")
            html = await self._page.evaluate(DESCRIPTION_HTML_JS, selectors.DESCRIPTION)
            return str(text or ""), str(html or "")

        result = await self._page.evaluate(DESCRIPTION_JS, selectors.DESCRIPTION)
        if not result:
            msg = "Job description not found"
            raise ItemExtractionError(msg)
        text, html = result
        return text or "", html or ""

    async def extract_date_ago(self) -> str:
        return str(await self._page.evaluate(DATE_AGO_JS, selectors.DATE_AGO) or "")

    async def extract_insights(self) -> list[str]:
        insights = await self._page.evaluate(INSIGHTS_JS, selectors.INSIGHTS)
        return [i for i in (insights or []) if i]

    async def extract_apply_link(self, tag: str) -> str | None:
        """Click "Apply" and capture the URL of the page it opens.

        The auxiliary page is closed once its URL is known. Returns None if
        there is no apply button or nothing opened in time.
        """
        try:
            logger.debug("%s Try extracting apply link", tag)
            current_url = self._page.url
            clicked = await self._page.evaluate(CLICK_APPLY_JS, selectors.APPLY_BUTTON)
            if not clicked:
                logger.debug("%s Apply button not found", tag)
                return None

            async def _new_target() -> str | None:
                for other in self._page.context.pages:
                    if other is self._page:
                        continue
                    url = other.url
                    if url and url not in ("about:blank", current_url):
                        await other.close()
                        return url
                return None

            result = await poll_until(
                _new_target,
                interval_ms=APPLY_LINK_INTERVAL_MS,
                timeout_ms=APPLY_LINK_TIMEOUT_MS,
                description="apply link",
            )
        except Exception:
            logger.warning("%s Failed to extract apply link", tag, exc_info=True)
            return None

        if not result.success:
            logger.debug("%s %s", tag, result.error)
            return None
        return str(result.value)


def _clean_url(href: str) -> str:
    """Strip tracking params: keep only scheme, netloc, path."""
    parsed = urlparse(href)
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))
