"""
Membership status classifier and event date bucketing.

The status band shown to members is derived on every read from the stored status,
the expiry date and the current time. It is never written back to storage.

Event bucketing compares calendar dates only: an event that happened earlier today
is still "upcoming" until midnight in `APP_TIMEZONE`.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from clubsphere.config import settings
from clubsphere.utils.datetime_utils import local_date, to_naive_utc, utcnow

SECONDS_PER_DAY = 24 * 60 * 60


class MembershipBand(str, Enum):
    """Presentation band of a membership."""

    ACTIVE = "active"
    EXPIRED = "expired"
    RENEW_SOON = "renew_soon"
    PENDING = "pending"


def classify_membership(status: Optional[str], expiry_date: Any, now: Optional[datetime] = None) -> str:
    """
    Map a stored membership to its presentation band.

    Rules, first match wins:
    1. stored `pending` -> `pending`
    2. stored `expired` -> `expired`
    3. expiry in the past -> `expired`
    4. expiry within one whole day (rounded up) -> `renew_soon`
    5. otherwise the stored status, `active` when unset

    Args:
        status: The stored `status` field.
        expiry_date: The stored `expiryDate` (`None` for memberships that never expire).
        now: Reference time. Defaults to the current UTC time.

    Returns:
        str: One of the `MembershipBand` values, or the stored status for values
            outside the band vocabulary (e.g. `cancelled`).
    """
    if status == MembershipBand.PENDING.value:
        return MembershipBand.PENDING.value
    if status == MembershipBand.EXPIRED.value:
        return MembershipBand.EXPIRED.value

    expiry = to_naive_utc(expiry_date)
    if expiry is not None:
        reference = to_naive_utc(now) if now is not None else utcnow()
        remaining = (expiry - reference).total_seconds()
        if remaining < 0:
            return MembershipBand.EXPIRED.value
        if math.ceil(remaining / SECONDS_PER_DAY) <= 1:
            return MembershipBand.RENEW_SOON.value

    return status or MembershipBand.ACTIVE.value


def classify_document(membership: dict, now: Optional[datetime] = None) -> str:
    """`classify_membership` applied to a stored membership document."""
    return classify_membership(membership.get("status"), membership.get("expiryDate"), now)


def is_past_event(event_date: Any, now: Optional[datetime] = None, zone_name: Optional[str] = None) -> bool:
    """
    Whether an event's calendar date is before today.

    Events without a usable date are never past.
    """
    zone_name = zone_name or settings.APP_TIMEZONE
    event_day = local_date(event_date, zone_name)
    if event_day is None:
        return False
    today = local_date(now if now is not None else utcnow(), zone_name)
    return event_day < today


def is_upcoming_event(event_date: Any, now: Optional[datetime] = None, zone_name: Optional[str] = None) -> bool:
    """Whether an event's calendar date is today or later."""
    zone_name = zone_name or settings.APP_TIMEZONE
    event_day = local_date(event_date, zone_name)
    if event_day is None:
        return False
    today = local_date(now if now is not None else utcnow(), zone_name)
    return event_day >= today
