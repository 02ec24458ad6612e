"""
Enrollment Service.

Creates and cancels memberships (user to club) and registrations (user to event).

**Free path**: `join_club_free`, `register_event_free`. Allowed only for zero-fee targets.

**Paid path** (two phases):
1. `create_club_intent` / `create_event_intent` compute `fee + serviceFee` server-side
   and open a payment intent tagged with `{targetId, userId, kind, fee, serviceFee, total}`.
   Nothing is written yet.
2. `confirm_club_payment` / `confirm_event_payment` re-fetch the intent, require
   `succeeded` and matching metadata, then write the record with amounts taken from the
   intent metadata and append a transaction record.

Live-relationship uniqueness and event capacity are enforced by the store:
a sparse unique index on `activeKey`, a sparse unique index on `paymentIntentId`,
and a conditional increment of the event's `registeredCount` seat counter.

A membership whose `expiryDate` has passed no longer counts as live. The next join
or confirmed renewal retires it (`status=expired`, `activeKey` unset) before the new
record is written.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from clubsphere.config import settings
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import reference_predicate, to_object_id
from clubsphere.errors import (
    Conflict,
    NotFound,
    PaymentIncomplete,
    PaymentMismatch,
    PreconditionFailed,
    WrongPaymentPath,
)
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import BLOCKING_CLUB_STATUSES, EventStatus
from clubsphere.models.enrollment_models import (
    LIVE_MEMBERSHIP_STATUSES,
    CancellationResult,
    EnrollmentKind,
    EnrollmentPaymentStatus,
    MembershipDocument,
    MembershipResult,
    MembershipStatus,
    RegistrationDocument,
    RegistrationResult,
    RegistrationStatus,
    TransactionDocument,
    TransactionType,
    active_key,
)
from clubsphere.models.payment_models import IntentResponse, IntentStatusResponse, PaymentIntent
from clubsphere.models.user_models import CurrentUser
from clubsphere.services.fees import (
    ZERO,
    club_fee,
    event_fee,
    fee_breakdown,
    from_minor_units,
    to_decimal,
    to_minor_units,
)
from clubsphere.services.membership_status import is_past_event
from clubsphere.services.payment_bridge import PaymentBridge
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[Enrollment]")


class EnrollmentService:
    """
    Membership and registration lifecycle.

    Args:
        database: Connected Motor database.
        bridge: Payment bridge used by the paid path.
        clock: Returns the current naive UTC time. Overridable in tests.
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        bridge: Optional[PaymentBridge] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.memberships = database["memberships"]
        self.registrations = database["registrations"]
        self.transactions = database["transactions"]
        self.bridge = bridge
        self.clock = clock

    # ------------------------------------------------------------------
    # Lookups and preconditions
    # ------------------------------------------------------------------

    async def _get_club(self, club_id: str) -> Dict[str, Any]:
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        return club

    async def _get_event(self, event_id: str) -> Dict[str, Any]:
        oid = to_object_id(event_id)
        event = await self.events.find_one({"_id": oid}) if oid else None
        if not event:
            raise NotFound("Event not found")
        return event

    @staticmethod
    def _ensure_club_open(club: Dict[str, Any]):
        status = club.get("status")
        if status and status in BLOCKING_CLUB_STATUSES:
            logger.warning(f"Join refused: club {club['_id']} is {status}")
            raise PreconditionFailed("Club is not accepting members")

    @staticmethod
    def _ensure_event_open(event: Dict[str, Any]):
        if event.get("status") == EventStatus.CANCELLED.value:
            logger.warning(f"Registration refused: event {event['_id']} is cancelled")
            raise PreconditionFailed("Event is cancelled")

    @staticmethod
    def _live_membership_query(user_id: str, club_id: str, now: datetime) -> Dict[str, Any]:
        """Active or pending memberships that have not reached their expiry date."""
        return {
            "userId": user_id,
            **reference_predicate("clubId", club_id),
            "status": {"$in": list(LIVE_MEMBERSHIP_STATUSES)},
            "$or": [{"expiryDate": None}, {"expiryDate": {"$gte": now}}],
        }

    async def _ensure_no_live_membership(self, user_id: str, club_id: str, now: datetime):
        existing = await self.memberships.find_one(self._live_membership_query(user_id, club_id, now))
        if existing:
            logger.warning(f"Duplicate membership refused for user {user_id} in club {club_id}")
            raise Conflict("You are already a member of this club")

    async def _retire_lapsed_memberships(self, user_id: str, club_id: str, now: datetime) -> int:
        """
        Mark the caller's date-expired memberships of a club as `expired` and release
        their `activeKey`, so a renewal can take the key.

        Returns:
            int: Number of memberships retired.
        """
        result = await self.memberships.update_many(
            {
                "userId": user_id,
                **reference_predicate("clubId", club_id),
                "status": {"$in": list(LIVE_MEMBERSHIP_STATUSES)},
                "expiryDate": {"$lt": now},
            },
            {
                "$set": {"status": MembershipStatus.EXPIRED.value, "updatedAt": now},
                "$unset": {"activeKey": ""},
            },
        )
        if result.modified_count:
            logger.info(f"Retired {result.modified_count} lapsed membership(s) of user {user_id} in club {club_id}")
        return result.modified_count

    async def _ensure_no_live_registration(self, user_id: str, event_id: str):
        existing = await self.registrations.find_one(
            {
                "userId": user_id,
                **reference_predicate("eventId", event_id),
                "status": RegistrationStatus.REGISTERED.value,
            }
        )
        if existing:
            logger.warning(f"Duplicate registration refused for user {user_id} on event {event_id}")
            raise Conflict("You are already registered for this event")

    async def _ensure_intent_unused(self, collection, intent_id: str):
        if await collection.find_one({"paymentIntentId": intent_id}):
            logger.warning(f"Payment intent {intent_id} already applied")
            raise Conflict("This payment has already been applied")

    # ------------------------------------------------------------------
    # Event seat counter
    # ------------------------------------------------------------------

    async def registered_count(self, event: Dict[str, Any]) -> int:
        """Current number of `registered` registrations for an event."""
        if isinstance(event.get("registeredCount"), int):
            return event["registeredCount"]
        return await self.registrations.count_documents(
            {**reference_predicate("eventId", event["_id"]), "status": RegistrationStatus.REGISTERED.value}
        )

    async def _seed_seat_counter(self, event: Dict[str, Any]):
        """Initialise `registeredCount` for events written before the counter existed."""
        if isinstance(event.get("registeredCount"), int):
            return
        count = await self.registrations.count_documents(
            {**reference_predicate("eventId", event["_id"]), "status": RegistrationStatus.REGISTERED.value}
        )
        await self.events.update_one(
            {"_id": event["_id"], "registeredCount": {"$exists": False}},
            {"$set": {"registeredCount": count}},
        )

    async def _reserve_seat(self, event: Dict[str, Any]):
        """
        Take one seat on the event.

        Raises:
            Conflict: If `maxAttendees` is set and every seat is taken.
        """
        await self._seed_seat_counter(event)
        capacity = int(event.get("maxAttendees") or 0)
        query: Dict[str, Any] = {"_id": event["_id"]}
        if capacity > 0:
            query["registeredCount"] = {"$lt": capacity}
        result = await self.events.update_one(query, {"$inc": {"registeredCount": 1}})
        if result.modified_count == 0:
            logger.warning(f"Event {event['_id']} is full ({capacity} seats)")
            raise Conflict("Event is full")

    async def _release_seat(self, event_oid: ObjectId):
        await self.events.update_one(
            {"_id": event_oid, "registeredCount": {"$gt": 0}},
            {"$inc": {"registeredCount": -1}},
        )

    # ------------------------------------------------------------------
    # Record writers
    # ------------------------------------------------------------------

    async def _insert_membership(self, document: MembershipDocument) -> str:
        try:
            result = await self.memberships.insert_one(document.to_document())
        except DuplicateKeyError as e:
            logger.warning(f"Concurrent duplicate membership for key {document.active_key}: {e}")
            raise Conflict("You are already a member of this club") from e
        return str(result.inserted_id)

    async def _insert_registration(self, document: RegistrationDocument, event_oid: ObjectId) -> str:
        try:
            result = await self.registrations.insert_one(document.to_document())
        except DuplicateKeyError as e:
            await self._release_seat(event_oid)
            logger.warning(f"Concurrent duplicate registration for key {document.active_key}: {e}")
            raise Conflict("You are already registered for this event") from e
        except PyMongoError:
            await self._release_seat(event_oid)
            raise
        return str(result.inserted_id)

    # ------------------------------------------------------------------
    # Free path
    # ------------------------------------------------------------------

    @storage_guard("free club join")
    async def join_club_free(self, user: CurrentUser, club_id: str) -> MembershipResult:
        """
        Join a free club.

        The membership is `active`, `paymentStatus=free` and never expires. The club's
        `memberCount` is incremented by one unless the join replaces a lapsed membership.

        Raises:
            NotFound: Unknown club.
            PreconditionFailed: Club pending, rejected or inactive.
            WrongPaymentPath: The club charges a fee.
            Conflict: The user already has an active or pending membership.
        """
        club = await self._get_club(club_id)
        self._ensure_club_open(club)
        if club_fee(club) > ZERO:
            raise WrongPaymentPath("This club has a membership fee; use the payment flow")

        canonical_id = str(club["_id"])
        now = self.clock()
        await self._ensure_no_live_membership(user.user_id, canonical_id, now)
        renewed = await self._retire_lapsed_memberships(user.user_id, canonical_id, now)

        membership = MembershipDocument(
            user_id=user.user_id,
            club_id=canonical_id,
            status=MembershipStatus.ACTIVE,
            payment_status=EnrollmentPaymentStatus.FREE,
            join_date=now,
            expiry_date=None,
            active_key=active_key(user.user_id, canonical_id),
            created_at=now,
            updated_at=now,
        )
        membership_id = await self._insert_membership(membership)
        if not renewed:
            await self.clubs.update_one({"_id": club["_id"]}, {"$inc": {"memberCount": 1}})

        logger.info(f"User {user.user_id} joined free club {canonical_id} (membership {membership_id})")
        return MembershipResult(
            membership_id=membership_id,
            club_id=canonical_id,
            status=MembershipStatus.ACTIVE.value,
            payment_status=EnrollmentPaymentStatus.FREE.value,
        )

    @storage_guard("free event registration")
    async def register_event_free(self, user: CurrentUser, event_id: str) -> RegistrationResult:
        """
        Register for a free event.

        Raises:
            NotFound: Unknown event.
            PreconditionFailed: Event cancelled.
            WrongPaymentPath: The event charges a fee.
            Conflict: Already registered, or the event is full.
        """
        event = await self._get_event(event_id)
        self._ensure_event_open(event)
        if event_fee(event) > ZERO:
            raise WrongPaymentPath("Event is not free; use the payment flow")

        canonical_id = str(event["_id"])
        await self._ensure_no_live_registration(user.user_id, canonical_id)
        await self._reserve_seat(event)

        now = self.clock()
        registration = RegistrationDocument(
            user_id=user.user_id,
            event_id=canonical_id,
            club_id=str(event["clubId"]) if event.get("clubId") else None,
            status=RegistrationStatus.REGISTERED,
            payment_status=EnrollmentPaymentStatus.FREE,
            registration_date=now,
            active_key=active_key(user.user_id, canonical_id),
            created_at=now,
            updated_at=now,
        )
        registration_id = await self._insert_registration(registration, event["_id"])

        logger.info(f"User {user.user_id} registered for free event {canonical_id} (registration {registration_id})")
        return RegistrationResult(
            registration_id=registration_id,
            event_id=canonical_id,
            status=RegistrationStatus.REGISTERED.value,
            payment_status=EnrollmentPaymentStatus.FREE.value,
        )

    # ------------------------------------------------------------------
    # Paid path: intent creation
    # ------------------------------------------------------------------

    async def _open_intent(self, user: CurrentUser, kind: EnrollmentKind, target_id: str, fee) -> IntentResponse:
        fee, charge, total = fee_breakdown(fee)
        metadata = {
            "targetId": target_id,
            "userId": user.user_id,
            "kind": kind.value,
            "fee": str(fee),
            "serviceFee": str(charge),
            "total": str(total),
        }
        intent = await self.bridge.create_intent(to_minor_units(total), settings.PAYMENT_CURRENCY, metadata)
        logger.info(f"Opened {kind.value} intent {intent.intent_id} for user {user.user_id} on {target_id}: {total}")
        return IntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.intent_id,
            key_id=self.bridge.key_id,
            amount=float(total),
            fee=float(fee),
            service_fee=float(charge),
            currency=intent.currency or settings.PAYMENT_CURRENCY,
        )

    @storage_guard("club payment intent")
    async def create_club_intent(self, user: CurrentUser, club_id: str) -> IntentResponse:
        """
        Open a payment intent for a paid club membership.

        Raises:
            NotFound, PreconditionFailed, Conflict: As for the free path.
            WrongPaymentPath: The club is free.
            UpstreamFailure: The payment provider failed.
        """
        club = await self._get_club(club_id)
        self._ensure_club_open(club)
        fee = club_fee(club)
        if fee <= ZERO:
            raise WrongPaymentPath("This club is free; join directly")

        canonical_id = str(club["_id"])
        await self._ensure_no_live_membership(user.user_id, canonical_id, self.clock())
        return await self._open_intent(user, EnrollmentKind.CLUB, canonical_id, fee)

    @storage_guard("event payment intent")
    async def create_event_intent(self, user: CurrentUser, event_id: str) -> IntentResponse:
        """
        Open a payment intent for a paid event registration.

        A full event is refused here so the user is not charged for a seat that does not
        exist. The seat itself is only taken at confirmation.
        """
        event = await self._get_event(event_id)
        self._ensure_event_open(event)
        fee = event_fee(event)
        if fee <= ZERO:
            raise WrongPaymentPath("Event is free; register directly")

        canonical_id = str(event["_id"])
        await self._ensure_no_live_registration(user.user_id, canonical_id)

        capacity = int(event.get("maxAttendees") or 0)
        if capacity > 0 and await self.registered_count(event) >= capacity:
            logger.warning(f"Intent refused: event {canonical_id} is full")
            raise Conflict("Event is full")

        return await self._open_intent(user, EnrollmentKind.EVENT, canonical_id, fee)

    # ------------------------------------------------------------------
    # Paid path: confirmation
    # ------------------------------------------------------------------

    async def _verified_intent(
        self, user: CurrentUser, intent_id: str, kind: EnrollmentKind, target_id: str
    ) -> PaymentIntent:
        intent = await self.bridge.retrieve_intent(intent_id)
        if not intent.succeeded:
            logger.warning(f"Confirmation refused: intent {intent_id} is {intent.status}")
            raise PaymentIncomplete("Payment not completed")

        oid = to_object_id(target_id)
        requested_target = str(oid) if oid else str(target_id)
        metadata = intent.metadata
        if (
            metadata.get("targetId") != requested_target
            or metadata.get("userId") != user.user_id
            or metadata.get("kind") != kind.value
        ):
            logger.warning(
                f"Intent {intent_id} mismatch: metadata {metadata.get('kind')}/{metadata.get('targetId')}/"
                f"{metadata.get('userId')} vs request {kind.value}/{requested_target}/{user.user_id}"
            )
            raise PaymentMismatch("Payment intent does not match this request")
        return intent

    async def _record_transaction(
        self, user: CurrentUser, kind: TransactionType, reference_id: str, intent: PaymentIntent, description: str
    ):
        """
        Write the audit record of a settled intent, once per intent.

        Confirmation writes it before the membership or registration, so a retry after a
        failed record insert still finds the audit entry in place and does not add a second.
        """
        transaction = TransactionDocument(
            user_id=user.user_id,
            user_email=user.email,
            type=kind,
            reference_id=reference_id,
            amount=float(to_decimal(intent.metadata.get("total"))),
            currency=intent.currency or settings.PAYMENT_CURRENCY,
            payment_intent_id=intent.intent_id,
            description=description,
            created_at=self.clock(),
        )
        document = transaction.to_document()
        document.pop("paymentIntentId", None)
        try:
            await self.transactions.update_one(
                {"paymentIntentId": intent.intent_id}, {"$setOnInsert": document}, upsert=True
            )
        except DuplicateKeyError:
            # A concurrent confirmation of the same intent wrote it first
            logger.debug(f"Transaction for intent {intent.intent_id} already recorded")

    @storage_guard("club payment confirmation")
    async def confirm_club_payment(self, user: CurrentUser, intent_id: str, club_id: str) -> MembershipResult:
        """
        Create a paid membership from a succeeded intent.

        The membership expires `MEMBERSHIP_DURATION_DAYS` after joining. A lapsed membership
        of the same club is retired first, which makes this the renewal path. Amounts come
        from the intent metadata, never from the request.

        Raises:
            PaymentIncomplete: Intent not succeeded.
            PaymentMismatch: Intent issued for another user, club or kind.
            Conflict: Intent already applied, or an active membership exists.
            NotFound: Club no longer exists.
        """
        intent = await self._verified_intent(user, intent_id, EnrollmentKind.CLUB, club_id)
        await self._ensure_intent_unused(self.memberships, intent.intent_id)

        club = await self._get_club(club_id)
        canonical_id = str(club["_id"])
        now = self.clock()
        await self._ensure_no_live_membership(user.user_id, canonical_id, now)

        await self._record_transaction(
            user, TransactionType.CLUB_MEMBERSHIP, canonical_id, intent, f"Membership: {club.get('name', '')}"
        )
        renewed = await self._retire_lapsed_memberships(user.user_id, canonical_id, now)
        membership = MembershipDocument(
            user_id=user.user_id,
            club_id=canonical_id,
            status=MembershipStatus.ACTIVE,
            payment_status=EnrollmentPaymentStatus.PAID,
            join_date=now,
            expiry_date=now + timedelta(days=settings.MEMBERSHIP_DURATION_DAYS),
            amount=float(to_decimal(intent.metadata.get("total"))),
            membership_fee=float(to_decimal(intent.metadata.get("fee"))),
            service_fee=float(to_decimal(intent.metadata.get("serviceFee"))),
            payment_intent_id=intent.intent_id,
            active_key=active_key(user.user_id, canonical_id),
            created_at=now,
            updated_at=now,
        )
        membership_id = await self._insert_membership(membership)
        if not renewed:
            await self.clubs.update_one({"_id": club["_id"]}, {"$inc": {"memberCount": 1}})

        action = "renewed" if renewed else "joined"
        logger.info(f"User {user.user_id} {action} paid club {canonical_id} via intent {intent.intent_id}")
        return MembershipResult(
            membership_id=membership_id,
            club_id=canonical_id,
            status=MembershipStatus.ACTIVE.value,
            payment_status=EnrollmentPaymentStatus.PAID.value,
            expiry_date=membership.expiry_date,
        )

    @storage_guard("event payment confirmation")
    async def confirm_event_payment(self, user: CurrentUser, intent_id: str, event_id: str) -> RegistrationResult:
        """
        Create a paid registration from a succeeded intent.

        Raises:
            PaymentIncomplete: Intent not succeeded.
            PaymentMismatch: Intent issued for another user, event or kind.
            Conflict: Intent already applied, already registered, or the event filled up
                since the intent was opened.
            NotFound: Event no longer exists.
        """
        intent = await self._verified_intent(user, intent_id, EnrollmentKind.EVENT, event_id)
        await self._ensure_intent_unused(self.registrations, intent.intent_id)

        event = await self._get_event(event_id)
        canonical_id = str(event["_id"])
        await self._ensure_no_live_registration(user.user_id, canonical_id)
        await self._record_transaction(
            user, TransactionType.EVENT_REGISTRATION, canonical_id, intent, f"Event: {event.get('name', '')}"
        )
        await self._reserve_seat(event)

        now = self.clock()
        registration = RegistrationDocument(
            user_id=user.user_id,
            event_id=canonical_id,
            club_id=str(event["clubId"]) if event.get("clubId") else None,
            status=RegistrationStatus.REGISTERED,
            payment_status=EnrollmentPaymentStatus.PAID,
            registration_date=now,
            amount=float(to_decimal(intent.metadata.get("total"))),
            event_fee=float(to_decimal(intent.metadata.get("fee"))),
            service_fee=float(to_decimal(intent.metadata.get("serviceFee"))),
            payment_intent_id=intent.intent_id,
            active_key=active_key(user.user_id, canonical_id),
            created_at=now,
            updated_at=now,
        )
        registration_id = await self._insert_registration(registration, event["_id"])

        logger.info(f"User {user.user_id} registered for paid event {canonical_id} via intent {intent.intent_id}")
        return RegistrationResult(
            registration_id=registration_id,
            event_id=canonical_id,
            status=RegistrationStatus.REGISTERED.value,
            payment_status=EnrollmentPaymentStatus.PAID.value,
        )

    async def intent_status(self, user: CurrentUser, intent_id: str) -> IntentStatusResponse:
        """
        The bridge view of one of the caller's intents, amount in major units.

        Raises:
            NotFound: Unknown intent, or opened by another user.
            UpstreamFailure: The payment provider failed.
        """
        intent = await self.bridge.retrieve_intent(intent_id)
        if intent.metadata.get("userId") != user.user_id:
            logger.warning(f"User {user.user_id} asked for intent {intent_id} of another user")
            raise NotFound("Payment intent not found")
        return IntentStatusResponse(
            status=intent.status,
            amount=float(from_minor_units(intent.amount_minor)),
            currency=intent.currency,
            metadata=intent.metadata,
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @storage_guard("registration cancellation")
    async def cancel_registration(self, user: CurrentUser, registration_id: str) -> CancellationResult:
        """
        Cancel one of the caller's registrations.

        Cancelling twice is an error, not a no-op. No refund is issued.

        Raises:
            NotFound: Unknown registration, or owned by someone else.
            Conflict: Already cancelled.
            PreconditionFailed: The event's date is before today.
        """
        oid = to_object_id(registration_id)
        registration = await self.registrations.find_one({"_id": oid, "userId": user.user_id}) if oid else None
        if not registration:
            raise NotFound("Registration not found")

        if registration.get("status") == RegistrationStatus.CANCELLED.value:
            logger.warning(f"Registration {registration_id} already cancelled")
            raise Conflict("Registration is already cancelled")

        event = None
        event_oid = to_object_id(registration.get("eventId"))
        if event_oid:
            event = await self.events.find_one({"_id": event_oid})
        if event and is_past_event(event.get("date"), now=self.clock()):
            logger.warning(f"Cancellation refused: event {event_oid} is in the past")
            raise PreconditionFailed("Cannot cancel registration for past events")

        now = self.clock()
        result = await self.registrations.update_one(
            {"_id": oid, "status": {"$ne": RegistrationStatus.CANCELLED.value}},
            {
                "$set": {"status": RegistrationStatus.CANCELLED.value, "cancelledAt": now, "updatedAt": now},
                "$unset": {"activeKey": ""},
            },
        )
        if result.modified_count == 0:
            raise Conflict("Registration is already cancelled")

        if event and registration.get("status") == RegistrationStatus.REGISTERED.value:
            await self._release_seat(event["_id"])

        logger.info(f"User {user.user_id} cancelled registration {registration_id}")
        return CancellationResult(registration_id=str(oid), cancelled_at=now)
