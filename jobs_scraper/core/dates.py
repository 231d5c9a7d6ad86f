"""Relative posting dates ("3 days ago") to ISO dates."""

import calendar
import re
from datetime import date, datetime, timedelta

_AGO_PATTERN = re.compile(
    r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\s*ago$",
    re.IGNORECASE,
)


def convert_to_date_string(text: str, now: datetime | None = None) -> str:
    """Convert an "N units ago" string into a ``YYYY-MM-DD`` date.

    A prefix such as "Reposted " is tolerated. Raises ValueError when the
    text does not end with a recognizable "N units ago" phrase.
    """
    match = _AGO_PATTERN.search(text.strip())
    if match is None:
        msg = f"Invalid input format for {text!r}"
        raise ValueError(msg)

    quantity = int(match.group(1))
    unit = match.group(2).lower()
    current = now or datetime.now()

    if unit == "month":
        return _shift_months(current.date(), -quantity).isoformat()
    if unit == "year":
        return _shift_months(current.date(), -12 * quantity).isoformat()

    delta = {
        "second": timedelta(seconds=quantity),
        "minute": timedelta(minutes=quantity),
        "hour": timedelta(hours=quantity),
        "day": timedelta(days=quantity),
        "week": timedelta(weeks=quantity),
    }[unit]
    return (current - delta).date().isoformat()


def _shift_months(d: date, months: int) -> date:
    """Move ``d`` by whole months, clamping the day to the target month's length."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
