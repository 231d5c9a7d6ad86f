"""Shared fixtures: a fake LinkedIn search page driven by the extractor's scripts."""

import asyncio
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from jobs_scraper.platforms.linkedin import parser as li_parser

# ---------------------------------------------------------------------------
# Fake render surface
# ---------------------------------------------------------------------------


def make_job(job_id: str, **overrides: Any) -> dict[str, Any]:
    """Listing-level fields as returned by EXTRACT_LISTING_JS."""
    job: dict[str, Any] = {
        "job_id": job_id,
        "link": f"https://www.linkedin.com/jobs/view/{job_id}/?trackingId=xyz",
        "title": f"Engineer {job_id}",
        "company": "Acme",
        "company_link": "https://www.linkedin.com/company/acme/",
        "company_img_link": None,
        "place": "Remote",
        "date": "2026-10-01",
        "is_promoted": False,
        "is_easy_apply": False,
        # Fake-only keys, stripped before returning listing fields
        "_description": f"Description of {job_id}",
        "_date_ago": "",
        "_fail": False,
    }
    job.update(overrides)
    return job


class FakeContext:
    def __init__(self, *, authenticated: bool = True) -> None:
        self.cookie_names: list[str] = ["li_at"] if authenticated else []
        self.pages: list[Any] = []
        # Successive answers for the auth check; empty means use cookie_names
        self.auth_sequence: list[bool] = []

    async def cookies(self) -> list[dict[str, str]]:
        if self.auth_sequence:
            ok = self.auth_sequence.pop(0)
            return [{"name": "li_at", "value": "x"}] if ok else []
        return [{"name": name, "value": "x"} for name in self.cookie_names]

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        self.cookie_names.extend(c["name"] for c in cookies)


class FakePage:
    """Serves result pages keyed by the ``start`` offset of the current URL.

    ``pages`` maps offset → list of jobs. An offset that is absent renders
    no cards. ``container`` False makes the result list never appear.
    ``late`` maps offset → jobs appended to that page once its last
    visible card has been read, like cards rendered while scrolling.
    """

    def __init__(
        self,
        pages: dict[int, list[dict[str, Any]]] | None = None,
        *,
        authenticated: bool = True,
        container: bool = True,
        late: dict[int, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.late = late or {}
        # Offset of the page each card count was taken on
        self.count_offsets: list[int] = []
        self.context = FakeContext(authenticated=authenticated)
        self.context.pages.append(self)
        self.container = container
        self.url = "about:blank"
        self.visited: list[str] = []
        self.selected: dict[str, Any] | None = None
        self.closed = False
        self.listing_calls = 0

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.url = url
        self.visited.append(url)
        self.selected = None

    async def wait_for_selector(self, selector: str, *, timeout: int = 30000) -> object:
        if not self.container:
            msg = f"Timeout {timeout}ms exceeded waiting for {selector}"
            raise PlaywrightTimeoutError(msg)
        return object()

    def current_offset(self) -> int:
        return int(parse_qs(urlparse(self.url).query).get("start", ["0"])[0])

    def current_jobs(self) -> list[dict[str, Any]]:
        return self.pages.get(self.current_offset(), [])

    def visited_offsets(self) -> list[int]:
        return [
            int(parse_qs(urlparse(u).query).get("start", ["0"])[0])
            for u in self.visited
            if "/jobs/search" in u
        ]

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        jobs = self.current_jobs()

        if script == li_parser.COUNT_ITEMS_JS:
            self.count_offsets.append(self.current_offset())
            return len(jobs)

        if script == li_parser.EXTRACT_LISTING_JS:
            self.listing_calls += 1
            index = arg["index"]
            if index >= len(jobs):
                return None
            job = jobs[index]
            self.selected = job
            offset = self.current_offset()
            if index == len(jobs) - 1 and offset in self.late:
                jobs.extend(self.late.pop(offset))
            return {k: v for k, v in job.items() if not k.startswith("_")}

        if script == li_parser.DETAILS_READY_JS:
            job = self.selected
            return bool(job and not job["_fail"] and job["job_id"] == arg["jobId"])

        if script == li_parser.DESCRIPTION_JS:
            job = self.selected
            return [job["_description"], f"<div>{job['_description']}</div>"]

        if script == li_parser.DESCRIPTION_HTML_JS:
            return f"<div>{self.selected['_description']}</div>"

        if script == li_parser.DATE_AGO_JS:
            return self.selected["_date_ago"]

        if script == li_parser.INSIGHTS_JS:
            return ["Full-time", ""]

        if script in (
            li_parser.HIDE_CHAT_PANEL_JS,
            li_parser.ACCEPT_COOKIES_JS,
            li_parser.ACCEPT_PRIVACY_JS,
        ):
            return None

        if script == li_parser.CLICK_APPLY_JS:
            return False

        # Custom description function: "(<source>)()"
        return f"custom:{self.selected['job_id']}"


def make_page_set(*counts: int, prefix: str = "job") -> dict[int, list[dict[str, Any]]]:
    """Build result pages of the given sizes at offsets 0, 25, 50, ..."""
    pages: dict[int, list[dict[str, Any]]] = {}
    n = 0
    for page_number, count in enumerate(counts):
        jobs = []
        for _ in range(count):
            n += 1
            jobs.append(make_job(f"{prefix}{n}"))
        pages[page_number * 25] = jobs
    return pages


@pytest.fixture
def no_sleep() -> Iterator[AsyncMock]:
    """Patch asyncio.sleep to avoid real delays."""
    with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def job() -> Callable[..., dict[str, Any]]:
    return make_job


@pytest.fixture
def page_set() -> Callable[..., dict[int, list[dict[str, Any]]]]:
    return make_page_set


@pytest.fixture
def fake_page() -> type[FakePage]:
    return FakePage
