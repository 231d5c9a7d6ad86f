"""LinkedIn search URL builder and pagination offset helpers.

Pure functions, no browser dependency.
"""

from enum import Enum
from urllib.parse import parse_qs, parse_qsl, quote_plus, urlencode, urlparse, urlunparse

from jobs_scraper.core.config import QueryOptions

HOME_URL = "https://www.linkedin.com"
JOBS_SEARCH_URL = "https://www.linkedin.com/jobs/search"

RESULTS_PER_PAGE = 25


def build_url(query: str, location: str, options: QueryOptions | None = None) -> str:
    """Build a LinkedIn jobs search URL.

    Args:
        query: Search keywords; omitted when empty.
        location: Location name; omitted when empty.
        options: Planned query options; only ``filters`` is read.

    Returns:
        Fully qualified search URL, always ending with ``start=0``. The
        pagination offset is rewritten later with :func:`with_offset`.
    """
    params: list[tuple[str, str]] = []
    if query:
        params.append(("keywords", query))
    if location:
        params.append(("location", location))

    filters = options.filters if options is not None else None
    if filters is not None:
        if filters.company_jobs_url:
            company_ids = parse_qs(urlparse(filters.company_jobs_url).query).get("f_C")
            if company_ids:
                params.append(("f_C", company_ids[0]))
        if filters.relevance:
            params.append(("sortBy", filters.relevance.value))
        if filters.time is not None and filters.time.value:
            params.append(("f_TPR", filters.time.value))
        if filters.type:
            params.append(("f_JT", _join(filters.type)))
        if filters.experience:
            params.append(("f_E", _join(filters.experience)))
        if filters.on_site_or_remote:
            params.append(("f_WT", _join(filters.on_site_or_remote)))

    params.append(("start", "0"))
    return f"{JOBS_SEARCH_URL}?{urlencode(params, quote_via=quote_plus)}"


def with_offset(url: str, offset: int) -> str:
    """Return ``url`` with its ``start`` parameter set to ``offset``.

    Other parameters keep their order; ``start`` is appended if missing.
    """
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    replaced = False
    updated: list[tuple[str, str]] = []
    for key, value in params:
        if key == "start":
            if replaced:
                continue
            updated.append(("start", str(offset)))
            replaced = True
        else:
            updated.append((key, value))
    if not replaced:
        updated.append(("start", str(offset)))
    query = urlencode(updated, quote_via=quote_plus)
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, parsed.params, query, parsed.fragment))


def _join(value: Enum | list[Enum]) -> str:
    """Single enum value passes through; a list becomes comma-joined tokens."""
    if isinstance(value, list):
        return ",".join(v.value for v in value)
    return value.value
