"""Run strategy contract and the strategy variants."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from jobs_scraper.core.config import Query
from jobs_scraper.core.schemas import RunResult


class StrategyKind(str, Enum):
    """Selected once when the scraper is built."""

    AUTHENTICATED = "authenticated"


class RunStrategy(ABC):
    """Base class that every run strategy must implement."""

    @property
    @abstractmethod
    def kind(self) -> StrategyKind:
        """Which variant this strategy implements."""

    @abstractmethod
    async def run(self, page: Any, url: str, query: Query, location: str) -> RunResult:
        """Scrape one (query, location) pair on ``page`` starting from ``url``."""
