"""
Club Deletion Service.

A club manager requests deletion; an admin approves or rejects the request.

```
none --request--> deletionRequest{status: pending} --approve--> club removed
                                                    --reject---> none
```

Approval removes everything that references the club, in this order:

1. resolve the club's events (by string id, `ObjectId` or denormalised club name)
2. delete registrations of those events
3. delete those events
4. delete memberships of the club
5. delete the club

When the deployment supports multi-document transactions the five steps run inside
a single transaction. Otherwise they run sequentially; every step is an idempotent
delete and the club goes last, so re-running a failed approval finishes the job.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from clubsphere.database import db_manager
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import id_variants, many_reference_predicate, reference_predicate, to_object_id
from clubsphere.errors import CascadeDeletionError, Conflict, Forbidden, NotFound, PreconditionFailed
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import CascadeDeletionResponse, DeletionRequestResponse, DeletionRequestStatus
from clubsphere.models.user_models import CurrentUser
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[ClubDeletion]")

STEP_RESOLVE_EVENTS = "resolve_events"
STEP_DELETE_REGISTRATIONS = "delete_registrations"
STEP_DELETE_EVENTS = "delete_events"
STEP_DELETE_MEMBERSHIPS = "delete_memberships"
STEP_DELETE_CLUB = "delete_club"


class ClubDeletionService:
    """Deletion request state machine and the cascade it triggers."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        transactions_supported: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.memberships = database["memberships"]
        self.registrations = database["registrations"]
        self.transactions_supported = transactions_supported
        self.clock = clock

    async def _get_club(self, club_id: str) -> Dict[str, Any]:
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        return club

    @staticmethod
    def _has_pending_request(club: Dict[str, Any]) -> bool:
        request = club.get("deletionRequest") or {}
        return request.get("status") == DeletionRequestStatus.PENDING.value

    @storage_guard("deletion request")
    async def request_deletion(self, manager: CurrentUser, club_id: str) -> DeletionRequestResponse:
        """
        Record a pending deletion request for a club the caller manages.

        Raises:
            NotFound: Unknown club.
            Forbidden: The caller does not manage the club.
            Conflict: A request is already pending.
        """
        club = await self._get_club(club_id)
        if club.get("managerEmail") != manager.email:
            logger.warning(f"Deletion request for club {club_id} refused: {manager.email} is not its manager")
            raise Forbidden("You do not manage this club")
        if self._has_pending_request(club):
            raise Conflict("A deletion request is already pending for this club")

        result = await self.clubs.update_one(
            {"_id": club["_id"], "deletionRequest.status": {"$ne": DeletionRequestStatus.PENDING.value}},
            {
                "$set": {
                    "deletionRequest": {
                        "status": DeletionRequestStatus.PENDING.value,
                        "requestedAt": self.clock(),
                        "requestedBy": manager.email,
                    },
                    "updatedAt": self.clock(),
                }
            },
        )
        if result.modified_count == 0:
            raise Conflict("A deletion request is already pending for this club")

        logger.info(f"Deletion requested for club {club['_id']} by {manager.email}")
        return DeletionRequestResponse(
            message="Deletion request submitted. An admin will review it.",
            club_id=str(club["_id"]),
            status=DeletionRequestStatus.PENDING.value,
        )

    @storage_guard("deletion rejection")
    async def reject_deletion(self, admin: CurrentUser, club_id: str) -> DeletionRequestResponse:
        """
        Clear a pending deletion request. The club is left untouched otherwise.

        Raises:
            NotFound: Unknown club.
            PreconditionFailed: No pending request.
        """
        club = await self._get_club(club_id)
        if not self._has_pending_request(club):
            raise PreconditionFailed("No pending deletion request for this club")

        await self.clubs.update_one(
            {"_id": club["_id"]},
            {"$unset": {"deletionRequest": ""}, "$set": {"updatedAt": self.clock()}},
        )
        logger.info(f"Deletion request for club {club['_id']} rejected by {admin.email}")
        return DeletionRequestResponse(
            message="Deletion request rejected", club_id=str(club["_id"]), status="rejected"
        )

    async def approve_deletion(self, admin: CurrentUser, club_id: str) -> CascadeDeletionResponse:
        """
        Approve a pending deletion request and remove the club with its dependents.

        Raises:
            NotFound: Unknown club.
            PreconditionFailed: No pending request.
            CascadeDeletionError: A step failed. The error names the failed step and the
                steps already applied. Retrying the approval is safe.
        """
        try:
            club = await self._get_club(club_id)
        except PyMongoError as e:
            raise CascadeDeletionError(STEP_RESOLVE_EVENTS, []) from e
        if not self._has_pending_request(club):
            raise PreconditionFailed("No pending deletion request for this club")

        logger.info(f"Admin {admin.email} approved deletion of club {club['_id']} ({club.get('name')})")
        if self.transactions_supported:
            counts = await self._cascade_in_transaction(club)
        else:
            counts = await self._cascade(club)

        return CascadeDeletionResponse(
            message="Club and all related data deleted",
            club_id=str(club["_id"]),
            **counts,
        )

    async def _cascade_in_transaction(self, club: Dict[str, Any]) -> Dict[str, int]:
        client = self.database.client
        try:
            async with await client.start_session() as session:
                async with session.start_transaction():
                    return await self._cascade(club, session=session)
        except CascadeDeletionError as e:
            # The transaction was aborted, nothing was applied
            raise CascadeDeletionError(e.failed_step, []) from e.__cause__
        except PyMongoError as e:
            # Commit failure
            raise CascadeDeletionError(STEP_DELETE_CLUB, []) from e

    async def _cascade(self, club: Dict[str, Any], session: Optional[Any] = None) -> Dict[str, int]:
        """Run the ordered deletes. Raises `CascadeDeletionError` on the first failing step."""
        opts = {"session": session} if session is not None else {}
        completed: List[str] = []
        step = STEP_RESOLVE_EVENTS
        club_id = club["_id"]
        collection_name, query = "events", {"$or": [{"clubId": {"$in": id_variants(club_id)}}]}
        try:
            if club.get("name"):
                query["$or"].append({"clubName": club["name"]})
            events = await self.events.find(query, {"_id": 1}, **opts).to_list(length=None)
            event_ids = [event["_id"] for event in events]
            completed.append(step)
            logger.info(f"[{club_id}] resolved {len(event_ids)} events")

            step = STEP_DELETE_REGISTRATIONS
            collection_name, query = "registrations", many_reference_predicate("eventId", event_ids)
            deleted_registrations = 0
            if event_ids:
                result = await self.registrations.delete_many(query, **opts)
                deleted_registrations = result.deleted_count
            completed.append(step)
            logger.info(f"[{club_id}] deleted {deleted_registrations} registrations")

            step = STEP_DELETE_EVENTS
            collection_name, query = "events", {"_id": {"$in": event_ids}}
            deleted_events = 0
            if event_ids:
                result = await self.events.delete_many(query, **opts)
                deleted_events = result.deleted_count
            completed.append(step)
            logger.info(f"[{club_id}] deleted {deleted_events} events")

            step = STEP_DELETE_MEMBERSHIPS
            collection_name, query = "memberships", reference_predicate("clubId", club_id)
            result = await self.memberships.delete_many(query, **opts)
            deleted_memberships = result.deleted_count
            completed.append(step)
            logger.info(f"[{club_id}] deleted {deleted_memberships} memberships")

            step = STEP_DELETE_CLUB
            collection_name, query = "clubs", {"_id": club_id}
            await self.clubs.delete_one(query, **opts)
            completed.append(step)
            logger.info(f"[{club_id}] deleted club document")
        except PyMongoError as e:
            db_manager.log_query_error(collection_name, step, e, query)
            logger.error(
                f"Cascade deletion of club {club_id} failed at {step} after {completed}: {e}", exc_info=True
            )
            raise CascadeDeletionError(step, completed) from e

        return {
            "deleted_events": deleted_events,
            "deleted_registrations": deleted_registrations,
            "deleted_memberships": deleted_memberships,
        }
