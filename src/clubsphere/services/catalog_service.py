"""
Catalog Service.

Read-only queries behind the public club, event and category endpoints, plus the
views shared with the member, manager and admin areas.

Clubs are publicly visible when `status` is `active` or unset (documents written
before moderation existed). Events are listed when `status` is `active`.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from clubsphere.config import settings
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import id_variants, reference_predicate, to_object_id
from clubsphere.errors import NotFound
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import ClubSort, ClubStatus, EventStatus
from clubsphere.models.enrollment_models import LIVE_MEMBERSHIP_STATUSES, RegistrationStatus
from clubsphere.services.fees import club_fee, event_fee
from clubsphere.services.membership_status import classify_document
from clubsphere.utils.datetime_utils import start_of_local_day, utcnow
from clubsphere.utils.serialization import serialize_document, total_pages

logger = get_logger(prefix="[Catalog]")

SORT_FIELDS = {
    ClubSort.NEWEST: ("createdAt", -1),
    ClubSort.OLDEST: ("createdAt", 1),
    ClubSort.NAME: ("name", 1),
    ClubSort.MEMBERS: ("memberCount", -1),
}

PUBLIC_CLUB_QUERY: Dict[str, Any] = {
    "$or": [{"status": ClubStatus.ACTIVE.value}, {"status": {"$exists": False}}, {"status": None}]
}


def text_search(fields: List[str], search: str) -> Dict[str, Any]:
    """Case-insensitive substring match over several fields."""
    pattern = re.escape(search.strip())
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def club_view(club: Dict[str, Any]) -> Dict[str, Any]:
    """API projection of a club with its fee in major units."""
    data = serialize_document(club)
    data.pop("feeUnit", None)
    data["fee"] = float(club_fee(club))
    data["memberCount"] = club.get("memberCount", 0)
    data["status"] = club.get("status") or ClubStatus.ACTIVE.value
    data["hasDeletionRequest"] = bool((club.get("deletionRequest") or {}).get("status"))
    return data


def event_view(event: Dict[str, Any]) -> Dict[str, Any]:
    """API projection of an event with its fee resolved to major units."""
    data = serialize_document(event)
    for legacy in ("price", "amount", "feeUnit"):
        data.pop(legacy, None)
    fee = event_fee(event)
    data["fee"] = float(fee)
    data["isPaid"] = fee > 0
    data["clubId"] = str(event["clubId"]) if event.get("clubId") else None
    data["maxAttendees"] = event.get("maxAttendees") or None
    return data


def membership_view(membership: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Membership projection with its derived status band."""
    data = serialize_document(membership)
    data.pop("activeKey", None)
    data["clubId"] = str(membership.get("clubId"))
    data["band"] = classify_document(membership, now)
    return data


class CatalogService:
    """Public catalog queries."""

    def __init__(self, database: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.memberships = database["memberships"]
        self.registrations = database["registrations"]
        self.categories = database["categories"]
        self.clock = clock

    def _today_start(self) -> datetime:
        return start_of_local_day(self.clock(), settings.APP_TIMEZONE)

    async def _find_club(self, club_id: str) -> Dict[str, Any]:
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        return club

    @storage_guard("club listing")
    async def list_clubs(
        self,
        search: str = "",
        category: str = "",
        page: int = 1,
        limit: int = 12,
        sort: ClubSort = ClubSort.NEWEST,
    ) -> Dict[str, Any]:
        """Paginated list of publicly visible clubs."""
        clauses: List[Dict[str, Any]] = [PUBLIC_CLUB_QUERY]
        if category and category.lower() != "all":
            clauses.append({"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}})
        if search:
            clauses.append(text_search(["name", "description", "location"], search))
        query = {"$and": clauses}

        total = await self.clubs.count_documents(query)
        field, direction = SORT_FIELDS[sort]
        clubs = (
            await self.clubs.find(query)
            .sort(field, direction)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=None)
        )
        return {
            "clubs": [club_view(club) for club in clubs],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    @storage_guard("featured clubs")
    async def featured_clubs(self, limit: int = 6) -> List[Dict[str, Any]]:
        clubs = await self.clubs.find(PUBLIC_CLUB_QUERY).sort("memberCount", -1).limit(limit).to_list(length=None)
        return [club_view(club) for club in clubs]

    def _club_events_query(self, club: Dict[str, Any]) -> Dict[str, Any]:
        refs: List[Dict[str, Any]] = [{"clubId": {"$in": id_variants(club["_id"])}}]
        if club.get("name"):
            refs.append({"clubName": club["name"]})
        return {"$or": refs}

    @storage_guard("club lookup")
    async def get_club(self, club_id: str) -> Dict[str, Any]:
        """
        A single club with its upcoming event count.

        Raises:
            NotFound: Invalid or unknown id.
        """
        club = await self._find_club(club_id)
        upcoming = await self.events.count_documents(
            {
                "$and": [
                    self._club_events_query(club),
                    {"status": EventStatus.ACTIVE.value, "date": {"$gte": self._today_start()}},
                ]
            }
        )
        data = club_view(club)
        data["upcomingEventCount"] = upcoming
        return data

    @storage_guard("club events")
    async def club_events(self, club_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Upcoming active events of a club, earliest first."""
        club = await self._find_club(club_id)
        query = {
            "$and": [
                self._club_events_query(club),
                {"status": EventStatus.ACTIVE.value, "date": {"$gte": self._today_start()}},
            ]
        }
        events = await self.events.find(query).sort("date", 1).limit(limit).to_list(length=None)
        views = []
        for event in events:
            view = event_view(event)
            view["clubName"] = event.get("clubName") or club.get("name")
            view["clubId"] = view["clubId"] or str(club["_id"])
            views.append(view)
        return views

    @storage_guard("membership check")
    async def membership_for(self, user_id: Optional[str], club_id: str) -> Dict[str, Any]:
        """The caller's live membership of a club, if any."""
        if not user_id:
            return {"isMember": False, "membership": None}
        membership = await self.memberships.find_one(
            {
                "userId": user_id,
                **reference_predicate("clubId", club_id),
                "status": {"$in": list(LIVE_MEMBERSHIP_STATUSES)},
            }
        )
        if not membership:
            return {"isMember": False, "membership": None}
        return {"isMember": True, "membership": membership_view(membership, self.clock())}

    @storage_guard("event listing")
    async def list_events(
        self, search: str = "", club_id: str = "", page: int = 1, limit: int = 12, upcoming_only: bool = True
    ) -> Dict[str, Any]:
        clauses: List[Dict[str, Any]] = [{"status": EventStatus.ACTIVE.value}]
        if upcoming_only:
            clauses.append({"date": {"$gte": self._today_start()}})
        if club_id:
            clauses.append(reference_predicate("clubId", club_id))
        if search:
            clauses.append(text_search(["name", "description", "location", "clubName"], search))
        query = {"$and": clauses}

        total = await self.events.count_documents(query)
        events = (
            await self.events.find(query).sort("date", 1).skip((page - 1) * limit).limit(limit).to_list(length=None)
        )
        return {
            "events": [event_view(event) for event in events],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    @storage_guard("upcoming events")
    async def upcoming_events(self, limit: int = 6) -> List[Dict[str, Any]]:
        """Active events dated today or later, earliest first."""
        events = (
            await self.events.find({"status": EventStatus.ACTIVE.value, "date": {"$gte": self._today_start()}})
            .sort("date", 1)
            .limit(limit)
            .to_list(length=None)
        )
        views = []
        for event in events:
            view = event_view(event)
            if not view["clubId"] and event.get("clubName"):
                club = await self.clubs.find_one({"name": event["clubName"]}, {"_id": 1})
                view["clubId"] = str(club["_id"]) if club else None
            views.append(view)
        return views

    @storage_guard("event lookup")
    async def get_event(self, event_id: str) -> Dict[str, Any]:
        """
        A single event with its club name and current registration count.

        Raises:
            NotFound: Unknown or cancelled event.
        """
        oid = to_object_id(event_id)
        event = await self.events.find_one({"_id": oid}) if oid else None
        if not event or event.get("status") == EventStatus.CANCELLED.value:
            raise NotFound("Event not found")

        view = event_view(event)
        club = None
        club_oid = to_object_id(event.get("clubId"))
        if club_oid:
            club = await self.clubs.find_one({"_id": club_oid})
        elif event.get("clubName"):
            club = await self.clubs.find_one({"name": event["clubName"]})
        if club:
            view["clubId"] = str(club["_id"])
            view["clubName"] = event.get("clubName") or club.get("name", "")
            view["clubImage"] = club.get("image")

        view["registeredCount"] = await self.registrations.count_documents(
            {**reference_predicate("eventId", event["_id"]), "status": RegistrationStatus.REGISTERED.value}
        )
        return view

    @storage_guard("category listing")
    async def list_categories(self) -> List[Dict[str, Any]]:
        categories = await self.categories.find({}).sort("name", 1).to_list(length=None)
        return [
            {
                "id": str(category["_id"]),
                "name": category["name"],
                "displayName": category.get("displayName") or category["name"],
                "createdAt": category.get("createdAt"),
            }
            for category in categories
        ]
