"""Core data models for the scraper."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jobs_scraper.core.errors import ReadinessTimeoutError


class ListingFields(BaseModel):
    """Fields read from a result card in the listing view."""

    model_config = ConfigDict(frozen=True)

    job_id: str = ""
    link: str = ""
    title: str = ""
    company: str = ""
    company_link: str | None = None
    company_img_link: str | None = None
    place: str = ""
    date: str = ""
    is_promoted: bool = False
    is_easy_apply: bool = False


class JobRecord(BaseModel):
    """A job listing emitted on the data channel.

    Frozen: built empty when an item starts and populated through
    ``model_copy(update=...)`` as extraction proceeds.
    """

    model_config = ConfigDict(frozen=True)

    query: str = ""
    location: str = ""
    job_id: str = ""
    job_index: int = 0
    link: str = ""
    apply_link: str | None = None
    title: str = ""
    company: str = ""
    company_link: str | None = None
    company_img_link: str | None = None
    place: str = ""
    date: str = ""
    is_promoted: bool = False
    is_easy_apply: bool = False
    insights: list[str] = Field(default_factory=list)
    description: str = ""
    description_html: str = ""
    found_at: datetime = Field(default_factory=datetime.now)

    def with_listing(self, listing: ListingFields) -> "JobRecord":
        return self.model_copy(update=listing.model_dump())


class Metrics(BaseModel):
    """Snapshot of one run's counters."""

    model_config = ConfigDict(frozen=True)

    processed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    missed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


class RunOutcome(str, Enum):
    DONE = "done"
    ABORTED = "aborted"


class RunResult(BaseModel):
    """What a strategy run reports back to the scraper.

    ``exit`` is the forced-exit signal: no further locations or queries run.
    """

    model_config = ConfigDict(frozen=True)

    outcome: RunOutcome = RunOutcome.DONE
    exit: bool = False


class PollResult(BaseModel):
    """Outcome of a readiness poll."""

    model_config = ConfigDict(frozen=True)

    success: bool
    value: Any = None
    error: str = ""

    def raise_for_failure(self) -> None:
        if not self.success:
            raise ReadinessTimeoutError(self.error or "Readiness poll timed out")
