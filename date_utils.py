"""
Calendar-date handling for daily grade records.

Every date that enters the application passes through normalize(). The date
part of a timestamp is cut out *before* anything looks at the time or zone,
so a stored 2025-03-14 can never be shifted to the 13th or 15th by a
timezone conversion. Display formatting uses fixed English name tables rather
than strftime, so the output does not depend on the process locale either.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from errors import InvalidDateFormat

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_WEEKDAYS_SHORT = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Date part ends at the first "T" or whitespace; what follows is time/zone.
_TIME_SEPARATOR = re.compile(r"[Tt\s]")


class DisplayStyle(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


def normalize(value: str | date | datetime) -> date:
    """Return the calendar date carried by *value*.

    Accepts ``YYYY-MM-DD``, an ISO timestamp such as
    ``2025-03-14T00:00:00.000Z``, a ``date`` or a naive/aware ``datetime``
    (its own calendar date, no conversion). Raises InvalidDateFormat otherwise.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateFormat(value, "expected a string")

    text = value.strip()
    if not text:
        raise InvalidDateFormat(value, "empty")

    date_part = _TIME_SEPARATOR.split(text, maxsplit=1)[0]
    parts = date_part.split("-")
    # isdigit() alone admits non-ASCII digits such as "²" that int() rejects.
    if len(parts) != 3 or not all(p.isascii() and p.isdigit() for p in parts):
        raise InvalidDateFormat(value, "expected YYYY-MM-DD")

    try:
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDateFormat(value, str(exc)) from exc


def to_iso(value: str | date | datetime) -> str:
    """Canonical ``YYYY-MM-DD`` string for API payloads and cache keys."""
    return normalize(value).isoformat()


def display(value: str | date | datetime, style: DisplayStyle | str = DisplayStyle.SHORT) -> str:
    """Human-readable label: ``Mar 14``, ``March 14, 2025`` or ``Fri, March 14, 2025``."""
    d = normalize(value)
    try:
        style = DisplayStyle(style)
    except ValueError:
        raise ValueError(f"Unknown display style: {style!r}") from None

    month = _MONTHS[d.month - 1]
    if style is DisplayStyle.SHORT:
        return f"{month[:3]} {d.day}"
    if style is DisplayStyle.MEDIUM:
        return f"{month} {d.day}, {d.year}"
    return f"{_WEEKDAYS_SHORT[d.weekday()]}, {month} {d.day}, {d.year}"


def today(tz_name: str | None = None) -> date:
    """Current calendar date, in *tz_name* when given (IANA name)."""
    if not tz_name:
        return date.today()
    try:
        return datetime.now(ZoneInfo(tz_name)).date()
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone: {tz_name}") from exc
