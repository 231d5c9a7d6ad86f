"""Readiness polling against the rendered page.

The page gives no "loaded" signal, so every wait is a bounded
sleep-then-check loop. Rules:
  - Sleep one interval before the first check (the render may not have started).
  - Return on the first truthy predicate value.
  - Predicate errors count as "not ready yet", never as failure.
  - Give up once the accumulated sleep reaches the timeout.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from jobs_scraper.core.schemas import PollResult

logger = logging.getLogger(__name__)

Predicate = Callable[[], Awaitable[Any]]


async def poll_until(
    predicate: Predicate,
    *,
    interval_ms: int,
    timeout_ms: int,
    description: str = "condition",
) -> PollResult:
    """Evaluate ``predicate`` until it returns a truthy value or time runs out.

    Args:
        predicate: Zero-argument coroutine function, usually a page.evaluate call.
        interval_ms: Delay between checks (and before the first one).
        timeout_ms: Total sleep allowed after the first check.
        description: Used in the failure message and debug logs.

    Returns:
        PollResult with the predicate's value on success, or an error message.
    """
    interval_s = interval_ms / 1000
    elapsed = 0

    await asyncio.sleep(interval_s)

    while True:
        try:
            value = await predicate()
        except Exception:
            logger.debug("Polling %s raised, treating as not ready", description, exc_info=True)
            value = None

        if value:
            return PollResult(success=True, value=value)

        if elapsed >= timeout_ms:
            break

        await asyncio.sleep(interval_s)
        elapsed += interval_ms

    logger.debug("Polling %s timed out after %dms", description, timeout_ms)
    return PollResult(success=False, error=f"Timeout on {description}")
