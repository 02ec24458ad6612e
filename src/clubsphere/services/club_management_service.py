"""
Club Management Service.

Operations behind the manager area: a club manager edits the clubs they own
(matched by `managerEmail`), their events, and reviews members and registrations.
Admins pass every ownership check, so the admin event endpoints reuse these operations.

Events are stored with `clubId` as a string and the denormalised `clubName`. Fees
are written in major units with `feeUnit: "major"`.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import id_variants, reference_predicate, to_object_id
from clubsphere.errors import Forbidden, NotFound
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import (
    ClubStatus,
    CreateClubRequest,
    CreateEventRequest,
    EventStatus,
    UpdateClubRequest,
    UpdateEventRequest,
)
from clubsphere.models.enrollment_models import RegistrationStatus
from clubsphere.models.user_models import CurrentUser, UserRole
from clubsphere.services.catalog_service import club_view, event_view, text_search
from clubsphere.services.fees import fee_fields
from clubsphere.services.membership_status import classify_document, is_past_event
from clubsphere.utils.datetime_utils import to_naive_utc, utcnow
from clubsphere.utils.serialization import serialize_document, serialize_value, total_pages

logger = get_logger(prefix="[ClubManagement]")

CLUB_EDITABLE_FIELDS = ("name", "description", "image", "category", "schedule", "location")
EVENT_EDITABLE_FIELDS = ("name", "description", "time", "location", "image")


class ClubManagementService:
    """Manager-area operations on owned clubs and their events."""

    def __init__(self, database: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.users = database["users"]
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.memberships = database["memberships"]
        self.registrations = database["registrations"]
        self.clock = clock

    async def _owned_club(self, manager: CurrentUser, club_id: Any) -> Dict[str, Any]:
        """
        Load a club and check that the caller manages it.

        Raises:
            NotFound: Invalid or unknown id.
            Forbidden: The club belongs to another manager and the caller is not an admin.
        """
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        if manager.role != UserRole.ADMIN and club.get("managerEmail") != manager.email:
            logger.warning(f"{manager.email} denied access to club {club_id}")
            raise Forbidden("You do not manage this club")
        return club

    async def _owned_event(self, manager: CurrentUser, event_id: str):
        oid = to_object_id(event_id)
        event = await self.events.find_one({"_id": oid}) if oid else None
        if not event:
            raise NotFound("Event not found")

        club_oid = to_object_id(event.get("clubId"))
        if club_oid:
            club = await self.clubs.find_one({"_id": club_oid})
        else:
            club = await self.clubs.find_one({"name": event.get("clubName")}) if event.get("clubName") else None
        if manager.role == UserRole.ADMIN:
            return event, club
        if not club or club.get("managerEmail") != manager.email:
            logger.warning(f"{manager.email} denied access to event {event_id}")
            raise Forbidden("Access denied")
        return event, club

    async def _users_by_id(self, user_ids: List[Any]) -> Dict[str, Dict[str, Any]]:
        oids = [oid for oid in (to_object_id(value) for value in user_ids) if oid is not None]
        if not oids:
            return {}
        users = await self.users.find({"_id": {"$in": oids}}, {"passwordHash": 0, "password": 0}).to_list(length=None)
        return {str(user["_id"]): user for user in users}

    @staticmethod
    def _person(user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "userId": str(user["_id"]),
            "name": user.get("name", ""),
            "email": user.get("email"),
            "photoURL": user.get("photoURL"),
            "memberId": f"#{str(user['_id'])[-4:]}",
        }

    # Clubs

    @storage_guard("manager club listing")
    async def list_clubs(self, manager: CurrentUser, search: str = "", category: str = "") -> List[Dict[str, Any]]:
        clauses: List[Dict[str, Any]] = [{"managerEmail": manager.email}]
        if search:
            clauses.append(text_search(["name", "description"], search))
        if category and category.lower() != "all":
            clauses.append({"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}})
        clubs = await self.clubs.find({"$and": clauses}).sort("createdAt", -1).to_list(length=None)
        return [club_view(club) for club in clubs]

    @storage_guard("club creation")
    async def create_club(self, manager: CurrentUser, request: CreateClubRequest) -> Dict[str, Any]:
        """Create a club owned by the caller. It stays `pending` until an admin approves it."""
        now = self.clock()
        club = {
            "name": request.name,
            "description": request.description,
            "image": request.image,
            "category": request.category,
            "schedule": request.schedule,
            "location": request.location,
            **fee_fields(request.fee),
            "managerEmail": manager.email,
            "status": ClubStatus.PENDING.value,
            "memberCount": 0,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.clubs.insert_one(club)
        club["_id"] = result.inserted_id
        logger.info(f"Club {result.inserted_id} ({request.name}) created by {manager.email}")
        return club_view(club)

    @storage_guard("club update")
    async def update_club(self, manager: CurrentUser, club_id: str, request: UpdateClubRequest) -> Dict[str, Any]:
        """
        Update the editable fields of an owned club.

        Raises:
            NotFound: Unknown club.
            Forbidden: The caller does not manage the club.
        """
        club = await self._owned_club(manager, club_id)
        changes = request.model_dump(include=set(CLUB_EDITABLE_FIELDS), exclude_none=True)
        if request.fee is not None:
            changes.update(fee_fields(request.fee))
        changes["updatedAt"] = self.clock()

        await self.clubs.update_one({"_id": club["_id"]}, {"$set": changes})
        if "name" in changes and changes["name"] != club.get("name"):
            # Keep the denormalised name on events in step
            await self.events.update_many(
                {"clubId": {"$in": id_variants(club["_id"])}}, {"$set": {"clubName": changes["name"]}}
            )
        club.update(changes)
        logger.info(f"Club {club['_id']} updated by {manager.email}: {sorted(changes)}")
        return club_view(club)

    @storage_guard("club members")
    async def club_members(
        self, manager: CurrentUser, club_id: str, page: int = 1, limit: int = 10, search: str = ""
    ) -> Dict[str, Any]:
        """Members of an owned club with their status bands, newest first."""
        club = await self._owned_club(manager, club_id)
        now = self.clock()
        query = reference_predicate("clubId", club["_id"])

        total = await self.memberships.count_documents(query)
        memberships = (
            await self.memberships.find(query)
            .sort("joinDate", -1)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=None)
        )
        users = await self._users_by_id([m.get("userId") for m in memberships])

        members = []
        bands = {"active": 0, "renew_soon": 0, "expired": 0, "pending": 0}
        for membership in memberships:
            user = users.get(str(membership.get("userId")))
            if not user:
                continue
            if search:
                needle = search.strip().lower()
                if needle not in (user.get("name") or "").lower() and needle not in (user.get("email") or "").lower():
                    continue
            band = classify_document(membership, now)
            bands[band] = bands.get(band, 0) + 1
            members.append(
                {
                    "id": str(membership["_id"]),
                    **self._person(user),
                    "status": membership.get("status"),
                    "band": band,
                    "joinDate": serialize_value(membership.get("joinDate")),
                    "expiryDate": serialize_value(membership.get("expiryDate")),
                }
            )

        return {
            "members": members,
            "stats": bands,
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    # Events

    @storage_guard("manager event listing")
    async def list_events(self, manager: CurrentUser, search: str = "", when: str = "all") -> List[Dict[str, Any]]:
        """Events of every club the caller manages. `when` is `all`, `upcoming` or `past`."""
        clubs = await self.clubs.find({"managerEmail": manager.email}, {"_id": 1, "name": 1}).to_list(length=None)
        if not clubs:
            return []
        refs: List[Any] = []
        for club in clubs:
            refs.extend(id_variants(club["_id"]))
        clauses: List[Dict[str, Any]] = [{"clubId": {"$in": refs}}]
        if search:
            clauses.append(text_search(["name", "description", "location"], search))

        now = self.clock()
        events = await self.events.find({"$and": clauses}).sort("date", -1).to_list(length=None)
        views = []
        for event in events:
            past = is_past_event(event.get("date"), now)
            if (when == "upcoming" and past) or (when == "past" and not past):
                continue
            view = event_view(event)
            view["isPast"] = past
            view["registeredCount"] = event.get("registeredCount", 0)
            views.append(view)
        return views

    @storage_guard("event creation")
    async def create_event(self, manager: CurrentUser, request: CreateEventRequest) -> Dict[str, Any]:
        """
        Create an event for an owned club.

        Raises:
            NotFound: Unknown club.
            Forbidden: The caller does not manage the club.
        """
        club = await self._owned_club(manager, request.club_id)
        now = self.clock()
        event = {
            "name": request.name,
            "description": request.description,
            "date": to_naive_utc(request.date),
            "time": request.time,
            "location": request.location,
            "image": request.image,
            **fee_fields(request.fee),
            "maxAttendees": request.max_attendees,
            "clubId": str(club["_id"]),
            "clubName": club.get("name", ""),
            "status": EventStatus.ACTIVE.value,
            "registeredCount": 0,
            "createdBy": manager.email,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.events.insert_one(event)
        event["_id"] = result.inserted_id
        logger.info(f"Event {result.inserted_id} ({request.name}) created for club {club['_id']} by {manager.email}")
        return event_view(event)

    @storage_guard("event lookup")
    async def get_event(self, manager: CurrentUser, event_id: str) -> Dict[str, Any]:
        """An accessible event, cancelled ones included, with its club and seat count."""
        event, club = await self._owned_event(manager, event_id)
        view = event_view(event)
        if club:
            view["clubId"] = str(club["_id"])
            view["clubName"] = club.get("name", "")
            view["clubImage"] = club.get("image")
        view["registeredCount"] = event.get("registeredCount", 0)
        view["isPast"] = is_past_event(event.get("date"), self.clock())
        return view

    @storage_guard("event update")
    async def update_event(self, manager: CurrentUser, event_id: str, request: UpdateEventRequest) -> Dict[str, Any]:
        event, _club = await self._owned_event(manager, event_id)
        changes = request.model_dump(include=set(EVENT_EDITABLE_FIELDS), exclude_none=True)
        unset: Dict[str, str] = {}
        if request.date is not None:
            changes["date"] = to_naive_utc(request.date)
        if request.fee is not None:
            changes.update(fee_fields(request.fee))
            # A written fee supersedes legacy price fields
            unset = {"price": "", "amount": ""}
        if request.max_attendees is not None:
            changes["maxAttendees"] = request.max_attendees
        if request.status is not None:
            changes["status"] = request.status.value
        changes["updatedAt"] = self.clock()

        update: Dict[str, Any] = {"$set": changes}
        if unset:
            update["$unset"] = unset
        await self.events.update_one({"_id": event["_id"]}, update)

        event.update(changes)
        for key in unset:
            event.pop(key, None)
        logger.info(f"Event {event['_id']} updated by {manager.email}: {sorted(changes)}")
        return event_view(event)

    @storage_guard("event deletion")
    async def delete_event(self, manager: CurrentUser, event_id: str) -> Dict[str, Any]:
        """Delete an owned event. Its registrations are removed first."""
        event, _club = await self._owned_event(manager, event_id)
        registrations = await self.registrations.delete_many(reference_predicate("eventId", event["_id"]))
        await self.events.delete_one({"_id": event["_id"]})
        logger.info(
            f"Event {event['_id']} deleted by {manager.email} with {registrations.deleted_count} registrations"
        )
        return {"message": "Event deleted successfully", "deletedRegistrations": registrations.deleted_count}

    @storage_guard("event registrations")
    async def event_registrations(
        self,
        manager: CurrentUser,
        event_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[RegistrationStatus] = None,
    ) -> Dict[str, Any]:
        """Registrations of an owned event with attendee details, newest first."""
        event, _club = await self._owned_event(manager, event_id)
        query = reference_predicate("eventId", event["_id"])
        if status is not None:
            query["status"] = status.value

        total = await self.registrations.count_documents(query)
        registrations = (
            await self.registrations.find(query)
            .sort("registrationDate", -1)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=None)
        )
        users = await self._users_by_id([r.get("userId") for r in registrations])

        items = []
        for registration in registrations:
            user = users.get(str(registration.get("userId")))
            if not user:
                continue
            view = serialize_document(registration)
            view.pop("activeKey", None)
            view.update(self._person(user))
            items.append(view)

        return {
            "event": event_view(event),
            "registrations": items,
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }
