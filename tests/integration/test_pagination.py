"""Integration test: the authenticated pagination loop against a fake search page."""

import logging
import re
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock

import pytest

from jobs_scraper.core.db import init_db
from jobs_scraper.core.errors import FatalRunError
from jobs_scraper.core.events import Event, EventSink
from jobs_scraper.core.schemas import JobRecord, Metrics, RunOutcome
from jobs_scraper.pipeline.job_store import JobStore
from jobs_scraper.pipeline.planner import plan_queries
from jobs_scraper.platforms.linkedin.adapter import AuthenticatedStrategy
from jobs_scraper.platforms.linkedin.searcher import build_url


@pytest.fixture(autouse=True)
def _fast_polls(no_sleep: AsyncMock) -> Iterator[AsyncMock]:
    yield no_sleep


class Recorder:
    """Collects every event emitted on a sink, in order."""

    def __init__(self, events: EventSink) -> None:
        self.calls: list[tuple[Event, tuple[Any, ...]]] = []
        for event in Event:
            events.on(event, self._listener(event))

    def _listener(self, event: Event):  # type: ignore[no-untyped-def]
        def _record(*args: Any) -> None:
            self.calls.append((event, args))
        return _record

    def of(self, event: Event) -> list[tuple[Any, ...]]:
        return [args for e, args in self.calls if e is event]

    @property
    def records(self) -> list[JobRecord]:
        return [args[0] for args in self.of(Event.DATA)]

    @property
    def metrics(self) -> list[Metrics]:
        return [args[0] for args in self.of(Event.METRICS)]


async def _run(
    page: Any,
    options: dict[str, Any] | None = None,
    *,
    events: EventSink | None = None,
    **strategy_kwargs: Any,
) -> tuple[Any, Recorder]:
    events = events or EventSink()
    recorder = Recorder(events)
    query = plan_queries({"query": "python", "options": options or {}})[0]
    location = query.options.locations[0]
    strategy = AuthenticatedStrategy(events, **strategy_kwargs)
    result = await strategy.run(page, build_url(query.keyword, location, query.options), query, location)
    return result, recorder


# ---------------------------------------------------------------------------
# Limit handling
# ---------------------------------------------------------------------------


class TestLimit:
    async def test_limit_stops_mid_page(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(7))
        result, rec = await _run(page, {"limit": 5})

        assert result.outcome is RunOutcome.DONE
        assert [r.job_id for r in rec.records] == ["job1", "job2", "job3", "job4", "job5"]
        assert rec.metrics == [Metrics(processed=5)]
        assert page.visited_offsets() == [0]

    async def test_limit_zero_processes_nothing(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(3))
        _, rec = await _run(page, {"limit": 0})

        assert rec.records == []
        assert page.listing_calls == 0

    async def test_limit_spanning_pages(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        """25 + 3 items with limit 50: every item emitted, short page counted as missed."""
        page = fake_page(page_set(25, 3))
        result, rec = await _run(page, {"limit": 50})

        assert result.outcome is RunOutcome.DONE
        assert len(rec.records) == 28
        assert rec.metrics[-1] == Metrics(processed=28, missed=22)
        assert page.visited_offsets().count(25) == 1

    async def test_metrics_emitted_per_page(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(25, 3))
        _, rec = await _run(page, {"limit": 50})

        assert rec.metrics == [
            Metrics(processed=25, missed=0),
            Metrics(processed=28, missed=22),
        ]

    async def test_limit_reached_on_second_page(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(25, 25, 25))
        _, rec = await _run(page, {"limit": 30})

        assert len(rec.records) == 30
        assert rec.metrics[-1].processed == 30
        assert page.visited_offsets() == [0, 25]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class TestPagination:
    async def test_page_offset_sets_first_page(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = {50: page_set(3)[0]}
        page = fake_page(pages)
        _, rec = await _run(page, {"page_offset": 2, "limit": 10})

        assert len(rec.records) == 3
        assert page.visited_offsets() == [50, 75]

    async def test_empty_next_page_ends_run(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        """A pagination timeout is exhaustion, not an error."""
        page = fake_page(page_set(25))
        result, rec = await _run(page, {"limit": 100})

        assert result.outcome is RunOutcome.DONE
        assert len(rec.records) == 25
        assert rec.of(Event.ERROR) == []
        assert page.visited_offsets() == [0, 25]

    async def test_missing_container_skips_run(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(3), container=False)
        result, rec = await _run(page, {"limit": 10})

        assert result.outcome is RunOutcome.DONE
        assert rec.calls == []

    async def test_zero_cards_ends_run(self, fake_page) -> None:  # type: ignore[no-untyped-def]
        page = fake_page({})
        result, rec = await _run(page, {"limit": 10})

        assert result.outcome is RunOutcome.DONE
        assert rec.records == []
        assert rec.metrics == []

    async def test_item_tag_uses_absolute_index(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(25, 2)
        pages[25][1]["_fail"] = True
        page = fake_page(pages)
        _, rec = await _run(page, {"limit": 50})

        [(error,)] = rec.of(Event.ERROR)
        assert error.startswith("[python][Worldwide][27]\t")


# ---------------------------------------------------------------------------
# Item failures and skips
# ---------------------------------------------------------------------------


class TestItemOutcomes:
    async def test_failed_item_does_not_stop_run(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(4)
        pages[0][1]["_fail"] = True
        page = fake_page(pages)
        _, rec = await _run(page, {"limit": 10})

        assert [r.job_id for r in rec.records] == ["job1", "job3", "job4"]
        assert rec.metrics[-1] == Metrics(processed=3, failed=1, missed=21)

        [(error,)] = rec.of(Event.ERROR)
        tag, message = error.split("\t", 1)
        assert tag == "[python][Worldwide][2]"
        assert "Timeout on loading job details" in message

    async def test_card_without_link_is_failed(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(2)
        page = fake_page(pages)

        # A card that vanished between counting and extraction
        original = page.evaluate

        async def _evaluate(script: str, arg: Any = None) -> Any:
            if isinstance(arg, dict) and arg.get("index") == 0 and "jobIdAttr" in arg:
                return None
            return await original(script, arg)

        page.evaluate = _evaluate
        _, rec = await _run(page, {"limit": 10})

        assert [r.job_id for r in rec.records] == ["job2"]
        assert rec.metrics[-1].failed == 1

    async def test_skip_promoted(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(4)
        pages[0][1]["is_promoted"] = True
        page = fake_page(pages)
        _, rec = await _run(page, {"limit": 3, "skip_promoted_jobs": True})

        assert [r.job_id for r in rec.records] == ["job1", "job3", "job4"]
        assert rec.metrics == [Metrics(processed=3, skipped=1)]

    async def test_promoted_kept_by_default(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(2)
        pages[0][0]["is_promoted"] = True
        page = fake_page(pages)
        _, rec = await _run(page, {"limit": 2})

        assert rec.records[0].is_promoted is True
        assert len(rec.records) == 2

    async def test_already_seen_jobs_skipped(self, fake_page, page_set, tmp_path) -> None:  # type: ignore[no-untyped-def]
        store = JobStore(init_db(tmp_path / "jobs.db"))
        store.save(JobRecord(job_id="job2", title="Seen before"))
        page = fake_page(page_set(3))

        _, rec = await _run(page, {"limit": 10}, store=store)

        assert [r.job_id for r in rec.records] == ["job1", "job3"]
        assert rec.metrics[-1].skipped == 1

    async def test_listener_error_propagates(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        """A faulty data listener is not mistaken for an extraction failure."""
        events = EventSink()

        def _boom(record: JobRecord) -> None:
            raise RuntimeError("listener failed")

        events.on(Event.DATA, _boom)
        page = fake_page(page_set(3))

        with pytest.raises(RuntimeError, match="listener failed"):
            await _run(page, {"limit": 10}, events=events)


# ---------------------------------------------------------------------------
# Cards rendered after the first count
# ---------------------------------------------------------------------------


class TestGrowth:
    async def test_under_filled_page_picks_up_late_cards(self, fake_page, page_set, job) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(5), late={0: [job(f"job{n}") for n in (6, 7, 8)]})
        _, rec = await _run(page, {"limit": 20})

        assert [r.job_id for r in rec.records] == [f"job{n}" for n in range(1, 9)]
        assert rec.metrics == [Metrics(processed=8, missed=17)]
        assert page.count_offsets.count(0) > 1

    async def test_full_page_is_not_recounted(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(25))
        _, rec = await _run(page, {"limit": 100})

        assert len(rec.records) == 25
        assert rec.metrics == [Metrics(processed=25)]
        assert page.count_offsets.count(0) == 1

    async def test_skipped_last_card_still_waits_for_more(self, fake_page, page_set, job) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(5)
        pages[0][4]["is_promoted"] = True
        page = fake_page(pages, late={0: [job(f"job{n}") for n in (6, 7, 8)]})
        _, rec = await _run(page, {"limit": 20, "skip_promoted_jobs": True})

        assert [r.job_id for r in rec.records] == ["job1", "job2", "job3", "job4", "job6", "job7", "job8"]
        assert rec.metrics == [Metrics(processed=7, skipped=1, missed=17)]

    async def test_failed_last_card_does_not_wait_for_more(self, fake_page, page_set, job) -> None:  # type: ignore[no-untyped-def]
        pages = page_set(5)
        pages[0][4]["_fail"] = True
        page = fake_page(pages, late={0: [job(f"job{n}") for n in (6, 7, 8)]})
        _, rec = await _run(page, {"limit": 20})

        assert [r.job_id for r in rec.records] == ["job1", "job2", "job3", "job4"]
        assert rec.metrics == [Metrics(processed=4, failed=1, missed=20)]
        assert page.count_offsets.count(0) == 1


# ---------------------------------------------------------------------------
# Record contents
# ---------------------------------------------------------------------------


class TestRecordFields:
    async def test_fields_populated(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(1))
        _, rec = await _run(page, {"limit": 1, "locations": ["Berlin"]})

        [record] = rec.records
        assert record.query == "python"
        assert record.location == "Berlin"
        assert record.job_index == 0
        assert record.link == "https://www.linkedin.com/jobs/view/job1/"
        assert record.title == "Engineer job1"
        assert record.company == "Acme"
        assert record.date == "2026-10-01"
        assert record.description == "Description of job1"
        assert record.description_html == "<div>Description of job1</div>"
        assert record.insights == ["Full-time"]
        assert record.apply_link is None

    async def test_secondary_date_used_when_timestamp_missing(self, fake_page, job) -> None:  # type: ignore[no-untyped-def]
        page = fake_page({0: [job("a1", date="", _date_ago="Reposted 3 days ago")]})
        _, rec = await _run(page, {"limit": 1})

        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", rec.records[0].date)

    async def test_unparseable_secondary_date_keeps_item(self, fake_page, job) -> None:  # type: ignore[no-untyped-def]
        page = fake_page({0: [job("a1", date="", _date_ago="yesterday")]})
        _, rec = await _run(page, {"limit": 1})

        assert rec.records[0].date == ""
        assert rec.of(Event.ERROR) == []

    async def test_custom_description_function(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(1))
        _, rec = await _run(page, {"limit": 1, "description_fn": "() => 'custom'"})

        assert rec.records[0].description == "custom:job1"
        assert rec.records[0].description_html == "<div>Description of job1</div>"


# ---------------------------------------------------------------------------
# Session checks and forced exit
# ---------------------------------------------------------------------------


class TestSession:
    async def test_invalid_session_aborts_before_items(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(3), authenticated=False)
        result, rec = await _run(page, {"limit": 10})

        assert result.outcome is RunOutcome.ABORTED
        assert result.exit is False
        assert len(rec.of(Event.INVALID_SESSION)) == 1
        assert rec.records == []
        assert page.listing_calls == 0

    async def test_configured_cookie_is_installed(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(2), authenticated=False)
        result, rec = await _run(page, {"limit": 10}, auth_cookie="secret")

        assert result.outcome is RunOutcome.DONE
        assert len(rec.records) == 2
        assert rec.of(Event.INVALID_SESSION) == []

    async def test_mid_run_invalid_session_is_reported_and_run_continues(  # type: ignore[no-untyped-def]
        self, fake_page, page_set,
    ) -> None:
        page = fake_page(page_set(25, 2))
        # pre-run check, first page, second page
        page.context.auth_sequence = [True, False, True]
        _, rec = await _run(page, {"limit": 100})

        assert len(rec.of(Event.INVALID_SESSION)) == 1
        assert len(rec.records) == 27

    async def test_mid_run_invalid_session_logs_warning(  # type: ignore[no-untyped-def]
        self, fake_page, page_set, caplog,
    ) -> None:
        page = fake_page(page_set(2))
        page.context.auth_sequence = [True, False]
        with caplog.at_level(logging.WARNING, logger="jobs_scraper.platforms.linkedin.adapter"):
            await _run(page, {"limit": 10})
        assert "Session is invalid" in caplog.text

    async def test_forced_exit_stops_after_current_item(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        events = EventSink()
        stop = False

        def _on_data(record: JobRecord) -> None:
            nonlocal stop
            stop = True

        events.on(Event.DATA, _on_data)
        page = fake_page(page_set(5))
        result, rec = await _run(page, {"limit": 10}, events=events, should_exit=lambda: stop)

        assert result.outcome is RunOutcome.ABORTED
        assert result.exit is True
        assert len(rec.records) == 1

    async def test_closed_page_is_fatal(self, fake_page, page_set) -> None:  # type: ignore[no-untyped-def]
        page = fake_page(page_set(3))
        original = page.evaluate

        async def _evaluate(script: str, arg: Any = None) -> Any:
            if isinstance(arg, dict) and "jobIdAttr" in arg and arg["index"] == 1:
                page.closed = True
                raise RuntimeError("Target page, context or browser has been closed")
            return await original(script, arg)

        page.evaluate = _evaluate

        with pytest.raises(FatalRunError):
            await _run(page, {"limit": 10})
