"""LinkedIn session checks: the ``li_at`` cookie is the authentication token."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "li_at"
AUTH_COOKIE_DOMAIN = ".www.linkedin.com"


async def is_authenticated(page: Any) -> bool:
    """Return True iff the page's browser context carries the auth cookie.

    Side-effect free; called before every run and at the top of every page.
    """
    cookies = await page.context.cookies()
    return any(cookie.get("name") == AUTH_COOKIE_NAME for cookie in cookies)


async def set_auth_cookie(page: Any, value: str) -> None:
    """Install the configured auth cookie on the page's browser context."""
    logger.info("Setting authentication cookie")
    await page.context.add_cookies([
        {"name": AUTH_COOKIE_NAME, "value": value, "domain": AUTH_COOKIE_DOMAIN, "path": "/"},
    ])
