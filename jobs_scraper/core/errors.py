"""Error taxonomy for the scraper.

Scope of each error:
  QueryValidationError:  whole batch, raised before any navigation
  (invalid session is reported on the event channel, never raised)
  ItemExtractionError:   one item, converted into the ``failed`` counter
  ReadinessTimeoutError: the operation that polled; callers decide
  FatalRunError:         escalated to the caller after forced teardown
"""


class ScraperError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(ScraperError):
    """Scraper cannot be constructed from the given configuration."""


class QueryValidationError(ScraperError):
    """A planned query failed schema validation."""

    def __init__(self, param: str, reason: str) -> None:
        self.param = param
        self.reason = reason
        super().__init__(f"Invalid query option '{param}': {reason}")


class ItemExtractionError(ScraperError):
    """A single listing could not be extracted."""


class ReadinessTimeoutError(ScraperError):
    """A readiness poll did not succeed within its timeout."""


class FatalRunError(ScraperError):
    """The automation surface is no longer usable."""


class InitializeTimeoutError(FatalRunError):
    """Waiting for a concurrent initialization took too long."""
