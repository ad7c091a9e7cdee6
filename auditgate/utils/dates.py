"""UTC date-time parsing for allowlist expiration fields.

All comparisons happen between timezone-aware UTC datetimes so the verdict does
not depend on the timezone of the CI runner.

Accepted forms (ISO 8601 extended format only):
  - ``2030-01-31``                    → midnight UTC on that day
  - ``2030-01-31T12:00``              → naive, interpreted as UTC
  - ``2030-01-31T12:00:00.5``         → fractions of 1-6 digits
  - ``2030-01-31T12:00:00Z``          → UTC
  - ``2030-01-31T12:00:00+02:00``     → converted to UTC

The grammar is matched here rather than left to ``datetime.fromisoformat``,
whose accepted inputs differ between Python versions. Anything else returns
None. Callers treat None as "no valid expiration", which never grants cover.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

_ISO_DATETIME = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,6}))?)?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})?)?",
    re.ASCII,
)


def parse_utc_datetime(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 date or date-time into an aware UTC datetime.

    ``datetime`` and ``date`` objects (as produced by YAML loaders) are accepted
    as-is. Strings are stripped; an empty string is not a date.

    Returns:
        Aware UTC datetime, or None if the value is not a parseable date-time.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None

    match = _ISO_DATETIME.fullmatch(value.strip())
    if match is None:
        return None

    fraction = match.group("fraction") or ""
    try:
        parsed = datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour") or 0),
            int(match.group("minute") or 0),
            int(match.group("second") or 0),
            int(fraction.ljust(6, "0")) if fraction else 0,
            tzinfo=_offset(match.group("tz")),
        )
    except ValueError:
        return None
    return ensure_utc(parsed)


def _offset(designator: Optional[str]) -> Optional[timezone]:
    if designator is None:
        return None
    if designator in ("Z", "z"):
        return timezone.utc
    hours, minutes = int(designator[1:3]), int(designator[4:6])
    if hours > 23 or minutes > 59:
        raise ValueError(f"UTC offset out of range: {designator}")
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if designator[0] == "-" else delta)


def ensure_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_utc(moment: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return ensure_utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")
