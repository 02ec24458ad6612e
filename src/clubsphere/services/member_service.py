"""
Member Area Service.

The signed-in member's discovery feed, clubs, event registrations and payment
history. Status bands and upcoming/past buckets are derived on every read.
"""

import re
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from clubsphere.config import settings
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import to_object_id
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import EventStatus
from clubsphere.models.enrollment_models import (
    LIVE_MEMBERSHIP_STATUSES,
    MembershipStatus,
    RegistrationStatus,
    TransactionStatus,
)
from clubsphere.models.user_models import CurrentUser
from clubsphere.services.catalog_service import PUBLIC_CLUB_QUERY, club_view, event_view, membership_view, text_search
from clubsphere.services.fees import to_decimal
from clubsphere.services.membership_status import MembershipBand, classify_document, is_past_event, is_upcoming_event
from clubsphere.utils.datetime_utils import start_of_local_day, utcnow
from clubsphere.utils.serialization import serialize_document

logger = get_logger(prefix="[Member]")


class MembershipFilter(str, Enum):
    ALL = "All"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    PENDING = "Pending"


class EventTab(str, Enum):
    UPCOMING = "upcoming"
    WAITLIST = "waitlist"
    PAST = "past"
    CANCELLED = "cancelled"


class DiscoverFilter(str, Enum):
    ALL = "all"
    TRENDING = "trending"
    TODAY = "today"


BAND_FILTERS = {
    MembershipFilter.ACTIVE: {MembershipBand.ACTIVE.value, MembershipBand.RENEW_SOON.value},
    MembershipFilter.EXPIRED: {MembershipBand.EXPIRED.value},
    MembershipFilter.PENDING: {MembershipBand.PENDING.value},
}


def _matches(search: str, *values: Any) -> bool:
    needle = search.strip().lower()
    return any(isinstance(value, str) and needle in value.lower() for value in values)


class MemberService:
    def __init__(self, database: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.memberships = database["memberships"]
        self.registrations = database["registrations"]
        self.transactions = database["transactions"]
        self.clock = clock

    async def _by_id(self, collection, ids: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
        """Fetch documents by id in one query, keyed by string id."""
        oids = {oid for oid in (to_object_id(value) for value in ids) if oid is not None}
        if not oids:
            return {}
        documents = await collection.find({"_id": {"$in": list(oids)}}).to_list(length=None)
        return {str(document["_id"]): document for document in documents}

    @storage_guard("member discover")
    async def discover(
        self, user: CurrentUser, search: str = "", category: str = "", feed: DiscoverFilter = DiscoverFilter.ALL
    ) -> Dict[str, Any]:
        """
        The discovery feed: six club picks flagged with `isJoined`, events of today
        (`today`) or the coming week, and club counts per category.

        `trending` orders the picks by member count instead of recency.
        """
        now = self.clock()
        clauses: List[Dict[str, Any]] = [PUBLIC_CLUB_QUERY]
        if search:
            clauses.append(text_search(["name", "description"], search))
        if category and category.lower() != "all":
            clauses.append({"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}})
        sort_field = "memberCount" if feed == DiscoverFilter.TRENDING else "createdAt"
        clubs = await self.clubs.find({"$and": clauses}).sort(sort_field, -1).limit(6).to_list(length=None)

        memberships = await self.memberships.find(
            {"userId": user.user_id, "status": {"$in": list(LIVE_MEMBERSHIP_STATUSES)}},
            {"clubId": 1, "status": 1, "expiryDate": 1},
        ).to_list(length=None)
        joined = {
            str(m.get("clubId")) for m in memberships if classify_document(m, now) != MembershipBand.EXPIRED.value
        }
        top_picks = []
        for club in clubs:
            view = club_view(club)
            view["isJoined"] = view["id"] in joined
            top_picks.append(view)

        today = start_of_local_day(now, settings.APP_TIMEZONE)
        horizon = today + timedelta(days=1 if feed == DiscoverFilter.TODAY else 8)
        events = (
            await self.events.find(
                {"date": {"$gte": today, "$lt": horizon}, "status": {"$ne": EventStatus.CANCELLED.value}}
            )
            .sort("date", 1)
            .limit(10)
            .to_list(length=None)
        )
        event_views = []
        for event in events:
            view = event_view(event)
            view["registeredCount"] = event.get("registeredCount", 0)
            event_views.append(view)

        counts: Counter = Counter()
        async for club in self.clubs.find(PUBLIC_CLUB_QUERY, {"category": 1}):
            counts[club.get("category") or "Uncategorized"] += 1
        categories = [{"name": name, "count": count} for name, count in sorted(counts.items())]

        return {"topPicks": top_picks, "events": event_views, "categories": categories}

    @storage_guard("member clubs")
    async def my_clubs(
        self, user: CurrentUser, status: MembershipFilter = MembershipFilter.ALL, search: str = ""
    ) -> List[Dict[str, Any]]:
        """
        The caller's memberships joined with their clubs.

        The status filter compares against the derived band, so an `active` membership
        past its expiry date is listed under `Expired`.
        """
        now = self.clock()
        memberships = await self.memberships.find({"userId": user.user_id}).sort("joinDate", -1).to_list(length=None)
        clubs = await self._by_id(self.clubs, (m.get("clubId") for m in memberships))

        results = []
        for membership in memberships:
            club = clubs.get(str(membership.get("clubId")))
            if not club:
                continue
            if search and not _matches(search, club.get("name"), club.get("description")):
                continue
            view = membership_view(membership, now)
            if status != MembershipFilter.ALL and view["band"] not in BAND_FILTERS[status]:
                continue
            view["club"] = club_view(club)
            results.append(view)
        return results

    @storage_guard("member events")
    async def my_events(self, user: CurrentUser, tab: EventTab = EventTab.UPCOMING, search: str = "") -> Dict[str, Any]:
        """
        The caller's registrations for one tab, plus counts for every tab.

        `upcoming` and `past` split `registered` records by calendar date.
        """
        now = self.clock()
        registrations = (
            await self.registrations.find({"userId": user.user_id}).sort("registrationDate", -1).to_list(length=None)
        )
        events = await self._by_id(self.events, (r.get("eventId") for r in registrations))

        counts = {tab_name.value: 0 for tab_name in EventTab}
        selected = []
        for registration in registrations:
            event = events.get(str(registration.get("eventId")))
            status = registration.get("status")
            if status == RegistrationStatus.REGISTERED.value:
                if not event:
                    continue
                bucket = EventTab.PAST if is_past_event(event.get("date"), now) else EventTab.UPCOMING
            elif status == RegistrationStatus.WAITLISTED.value:
                bucket = EventTab.WAITLIST
            elif status == RegistrationStatus.CANCELLED.value:
                bucket = EventTab.CANCELLED
            else:
                continue
            counts[bucket.value] += 1

            if bucket != tab or not event:
                continue
            if search and not _matches(search, event.get("name"), event.get("description")):
                continue
            view = serialize_document(registration)
            view.pop("activeKey", None)
            view["event"] = event_view(event)
            view["isUpcoming"] = is_upcoming_event(event.get("date"), now)
            selected.append(view)

        return {"events": selected, "counts": counts}

    @storage_guard("member payments")
    async def my_payments(self, user: CurrentUser, limit: int = 50) -> Dict[str, Any]:
        """Transaction history, newest first, with the total successfully paid."""
        transactions = (
            await self.transactions.find({"userId": user.user_id}).sort("createdAt", -1).limit(limit).to_list(length=None)
        )
        paid = [t for t in transactions if t.get("status") in (TransactionStatus.SUCCESS.value, TransactionStatus.PAID.value)]
        total_paid = sum((to_decimal(t.get("amount")) for t in paid), to_decimal(0))
        active_memberships = await self.memberships.count_documents(
            {"userId": user.user_id, "status": MembershipStatus.ACTIVE.value}
        )
        return {
            "transactions": [serialize_document(t) for t in transactions],
            "totalPaid": float(total_paid),
            "activeMemberships": active_memberships,
        }
