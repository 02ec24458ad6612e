"""
Datetime helpers.

Every timestamp is stored as a naive UTC `datetime` (the form PyMongo returns when
`tz_aware=False`). Values arriving from clients or legacy documents may be aware
datetimes, plain dates or ISO strings, and are normalised here before comparison.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every collection."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Any) -> Optional[datetime]:
    """
    Normalise a stored or client-supplied date value to a naive UTC datetime.

    Args:
        value: `datetime` (naive values are taken as UTC), `date`, ISO-8601 string or `None`.

    Returns:
        Optional[datetime]: The normalised value, or `None` for empty or unparseable input.

    Examples:
        >>> to_naive_utc("2024-05-01T10:00:00Z")
        datetime.datetime(2024, 5, 1, 10, 0)
        >>> to_naive_utc(date(2024, 5, 1))
        datetime.datetime(2024, 5, 1, 0, 0)
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_date(value: Any, zone_name: str) -> Optional[date]:
    """Calendar date of `value` in the given zone."""
    moment = to_naive_utc(value)
    if moment is None:
        return None
    return moment.replace(tzinfo=timezone.utc).astimezone(get_zone(zone_name)).date()


def start_of_local_day(now: datetime, zone_name: str) -> datetime:
    """Naive UTC instant at which the local calendar day containing `now` begins."""
    zone = get_zone(zone_name)
    today = local_date(now, zone_name)
    return datetime.combine(today, time.min, tzinfo=zone).astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value: Any) -> Optional[str]:
    """ISO string for datetimes, passthrough for anything else."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
