"""
Admin Service.

Moderation and oversight for administrators: users and roles, clubs and their
approval, the platform-wide event list, the category vocabulary and the transaction
ledger, each with its headline stats. Approving or rejecting a club *deletion request*
lives in `ClubDeletionService`; creating, editing and deleting single events reuses
`ClubManagementService`, where admins pass every ownership check.
"""

import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from clubsphere.config import settings
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import id_variants, to_object_id
from clubsphere.errors import Conflict, NotFound, PreconditionFailed, ValidationFailed
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import (
    AdminCreateClubRequest,
    AdminUpdateClubRequest,
    CategoryCreateRequest,
    ClubStatus,
    DeletionRequestStatus,
    EventFeeFilter,
    EventStatus,
)
from clubsphere.models.enrollment_models import TransactionStatus, TransactionType
from clubsphere.models.user_models import CurrentUser, UserRole
from clubsphere.services.auth_service import public_user
from clubsphere.services.catalog_service import club_view, event_view, text_search
from clubsphere.services.club_management_service import CLUB_EDITABLE_FIELDS
from clubsphere.services.fees import ZERO, fee_fields, to_decimal
from clubsphere.utils.datetime_utils import start_of_local_day, utcnow
from clubsphere.utils.serialization import serialize_document, total_pages

logger = get_logger(prefix="[Admin]")

SETTLED_TRANSACTION_STATUSES = (TransactionStatus.SUCCESS.value, TransactionStatus.PAID.value)

# Event revenue also counts ledger entries written by the previous platform
EVENT_TRANSACTION_TYPES = (TransactionType.EVENT_REGISTRATION.value, "event", "Event Ticket")

PAID_EVENT_CLAUSES: List[Dict[str, Any]] = [
    {"fee": {"$gt": 0}},
    {"price": {"$gt": 0}},
    {"type": "Paid", "amount": {"$gt": 0}},
]


class AdminService:
    def __init__(self, database: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.users = database["users"]
        self.clubs = database["clubs"]
        self.events = database["events"]
        self.transactions = database["transactions"]
        self.categories = database["categories"]
        self.clock = clock

    # Users

    @storage_guard("user listing")
    async def list_users(
        self, search: str = "", role: Optional[UserRole] = None, page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if search:
            query.update(text_search(["name", "email"], search))
        if role is not None:
            query["role"] = role.value

        total = await self.users.count_documents(query)
        users = (
            await self.users.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit).to_list(length=None)
        )
        return {
            "users": [public_user(user).model_dump(by_alias=True) for user in users],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    @storage_guard("role update")
    async def update_role(self, admin: CurrentUser, user_id: str, role: UserRole) -> Dict[str, Any]:
        """
        Change a user's role.

        Raises:
            NotFound: Unknown user.
            PreconditionFailed: An admin tried to change their own role.
        """
        oid = to_object_id(user_id)
        user = await self.users.find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFound("User not found")
        if str(user["_id"]) == admin.user_id:
            raise PreconditionFailed("Admins cannot change their own role")

        await self.users.update_one({"_id": oid}, {"$set": {"role": role.value, "updatedAt": self.clock()}})
        user["role"] = role.value
        logger.info(f"Admin {admin.email} changed role of {user['email']} to {role.value}")
        return public_user(user).model_dump(by_alias=True)

    @storage_guard("user deletion")
    async def delete_user(self, admin: CurrentUser, user_id: str) -> Dict[str, str]:
        """
        Remove a user account. Their memberships, registrations and transactions stay
        as history.

        Raises:
            NotFound: Unknown user.
            PreconditionFailed: An admin tried to delete their own account.
        """
        oid = to_object_id(user_id)
        user = await self.users.find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFound("User not found")
        if str(user["_id"]) == admin.user_id:
            raise PreconditionFailed("Admins cannot delete their own account")

        await self.users.delete_one({"_id": oid})
        logger.info(f"Admin {admin.email} deleted user {user['email']}")
        return {"message": "User deleted successfully"}

    # Clubs

    async def _require_manager(self, email: str) -> str:
        email = email.lower()
        if not await self.users.find_one({"email": email}, {"_id": 1}):
            raise ValidationFailed("Manager email not found. User must be registered first.")
        return email

    @storage_guard("admin club lookup")
    async def get_club(self, club_id: str) -> Dict[str, Any]:
        """Any club regardless of status, with its event count."""
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        view = club_view(club)
        view["eventCount"] = await self.events.count_documents({"clubId": {"$in": id_variants(club["_id"])}})
        return view

    @storage_guard("admin club creation")
    async def create_club(self, admin: CurrentUser, request: AdminCreateClubRequest) -> Dict[str, Any]:
        """
        Create a club on behalf of a registered manager. It starts `active`.

        Raises:
            ValidationFailed: The manager email belongs to no user.
        """
        manager_email = await self._require_manager(request.manager_email)
        now = self.clock()
        club = {
            "name": request.name,
            "description": request.description,
            "image": request.image,
            "category": request.category,
            "schedule": request.schedule,
            "location": request.location,
            **fee_fields(request.fee),
            "managerEmail": manager_email,
            "status": ClubStatus.ACTIVE.value,
            "memberCount": 0,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.clubs.insert_one(club)
        club["_id"] = result.inserted_id
        logger.info(f"Admin {admin.email} created club {result.inserted_id} ({request.name}) for {manager_email}")
        return club_view(club)

    @storage_guard("admin club update")
    async def update_club(self, admin: CurrentUser, club_id: str, request: AdminUpdateClubRequest) -> Dict[str, Any]:
        """
        Edit any club, including its status and manager.

        Raises:
            NotFound: Unknown club.
            ValidationFailed: The new manager email belongs to no user.
        """
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")

        changes = request.model_dump(include=set(CLUB_EDITABLE_FIELDS), exclude_none=True)
        if request.fee is not None:
            changes.update(fee_fields(request.fee))
        if request.status is not None:
            changes["status"] = request.status.value
        if request.manager_email is not None:
            changes["managerEmail"] = await self._require_manager(request.manager_email)
        changes["updatedAt"] = self.clock()

        await self.clubs.update_one({"_id": oid}, {"$set": changes})
        if "name" in changes and changes["name"] != club.get("name"):
            await self.events.update_many(
                {"clubId": {"$in": id_variants(oid)}}, {"$set": {"clubName": changes["name"]}}
            )
        club.update(changes)
        logger.info(f"Admin {admin.email} updated club {club_id}: {sorted(changes)}")
        return club_view(club)

    @storage_guard("club stats")
    async def club_stats(self) -> Dict[str, Any]:
        """Pending and active counts plus clubs created this calendar month (UTC) against last."""
        now = self.clock()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        last_month_start = (month_start - timedelta(days=1)).replace(day=1)

        new_this_month = await self.clubs.count_documents({"createdAt": {"$gte": month_start}})
        new_last_month = await self.clubs.count_documents(
            {"createdAt": {"$gte": last_month_start, "$lt": month_start}}
        )
        growth = round((new_this_month - new_last_month) / new_last_month * 100) if new_last_month else 0
        return {
            "pending": await self.clubs.count_documents({"status": ClubStatus.PENDING.value}),
            "active": await self.clubs.count_documents({"status": ClubStatus.ACTIVE.value}),
            "newThisMonth": new_this_month,
            "newGrowth": growth,
        }

    @storage_guard("admin club listing")
    async def list_clubs(
        self, status: Optional[ClubStatus] = None, search: str = "", page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        """
        Every club regardless of status.

        Clubs with a pending deletion request carry `hasDeletionRequest: true` and are
        listed first.
        """
        clauses: List[Dict[str, Any]] = []
        if status is not None:
            clauses.append({"status": status.value})
        if search:
            clauses.append(text_search(["name", "description", "managerEmail"], search))
        query = {"$and": clauses} if clauses else {}

        total = await self.clubs.count_documents(query)
        clubs = (
            await self.clubs.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit).to_list(length=None)
        )
        views = [club_view(club) for club in clubs]
        views.sort(key=lambda view: not view["hasDeletionRequest"])
        pending_deletions = await self.clubs.count_documents(
            {"deletionRequest.status": DeletionRequestStatus.PENDING.value}
        )
        return {
            "clubs": views,
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
            "pendingDeletionRequests": pending_deletions,
        }

    async def _set_club_status(self, admin: CurrentUser, club_id: str, status: ClubStatus) -> Dict[str, Any]:
        oid = to_object_id(club_id)
        club = await self.clubs.find_one({"_id": oid}) if oid else None
        if not club:
            raise NotFound("Club not found")
        now = self.clock()
        await self.clubs.update_one({"_id": oid}, {"$set": {"status": status.value, "updatedAt": now}})
        club.update(status=status.value, updatedAt=now)
        logger.info(f"Admin {admin.email} set club {club_id} ({club.get('name')}) to {status.value}")
        return club_view(club)

    @storage_guard("club approval")
    async def approve_club(self, admin: CurrentUser, club_id: str) -> Dict[str, Any]:
        return await self._set_club_status(admin, club_id, ClubStatus.ACTIVE)

    @storage_guard("club rejection")
    async def reject_club(self, admin: CurrentUser, club_id: str) -> Dict[str, Any]:
        return await self._set_club_status(admin, club_id, ClubStatus.REJECTED)

    # Events

    @storage_guard("admin event listing")
    async def list_events(
        self,
        search: str = "",
        status: Optional[EventStatus] = None,
        fee_filter: EventFeeFilter = EventFeeFilter.ALL,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """Every event on the platform, latest date first."""
        clauses: List[Dict[str, Any]] = []
        if search:
            clauses.append(text_search(["name", "clubName"], search))
        if status is not None:
            clauses.append({"status": status.value})
        if fee_filter == EventFeeFilter.PAID:
            clauses.append({"$or": PAID_EVENT_CLAUSES})
        elif fee_filter == EventFeeFilter.FREE:
            clauses.append({"$nor": PAID_EVENT_CLAUSES})
        query = {"$and": clauses} if clauses else {}

        total = await self.events.count_documents(query)
        events = (
            await self.events.find(query).sort("date", -1).skip((page - 1) * limit).limit(limit).to_list(length=None)
        )
        views = []
        for event in events:
            view = event_view(event)
            view["registeredCount"] = event.get("registeredCount", 0)
            views.append(view)
        return {"events": views, "total": total, "page": page, "totalPages": total_pages(total, limit)}

    @storage_guard("event stats")
    async def event_stats(self) -> Dict[str, Any]:
        """Event count, active events from today on, and settled event revenue."""
        today = start_of_local_day(self.clock(), settings.APP_TIMEZONE)
        revenue = await self._settled_revenue({"type": {"$in": list(EVENT_TRANSACTION_TYPES)}})
        return {
            "total": await self.events.count_documents({}),
            "upcoming": await self.events.count_documents(
                {"status": EventStatus.ACTIVE.value, "date": {"$gte": today}}
            ),
            "revenue": float(revenue),
        }

    # Categories

    @storage_guard("category listing")
    async def list_categories(self) -> List[Dict[str, Any]]:
        categories = await self.categories.find({}).sort("displayName", 1).to_list(length=None)
        return [
            {
                "id": str(category["_id"]),
                "name": category["name"],
                "displayName": category.get("displayName") or category["name"],
                "createdAt": category.get("createdAt"),
            }
            for category in categories
        ]

    @storage_guard("category creation")
    async def create_category(self, admin: CurrentUser, request: CategoryCreateRequest) -> Dict[str, Any]:
        """
        Add a category. Names are stored lowercased.

        Raises:
            Conflict: A category with the same name or display name exists.
        """
        display_name = (request.display_name or request.name.title()).strip()
        existing = await self.categories.find_one(
            {
                "$or": [
                    {"name": request.name},
                    {"displayName": {"$regex": f"^{re.escape(display_name)}$", "$options": "i"}},
                ]
            }
        )
        if existing:
            raise Conflict("Category with this name or display name already exists")

        now = self.clock()
        category = {"name": request.name, "displayName": display_name, "createdAt": now, "updatedAt": now}
        try:
            result = await self.categories.insert_one(category)
        except DuplicateKeyError as e:
            raise Conflict("Category with this name or display name already exists") from e
        logger.info(f"Admin {admin.email} created category {request.name}")
        return {"id": str(result.inserted_id), "name": request.name, "displayName": display_name, "createdAt": now}

    @storage_guard("category deletion")
    async def delete_category(self, admin: CurrentUser, category_id: str) -> Dict[str, str]:
        """
        Remove a category that no club uses.

        Raises:
            NotFound: Unknown category.
            PreconditionFailed: Clubs still reference the category.
        """
        oid = to_object_id(category_id)
        category = await self.categories.find_one({"_id": oid}) if oid else None
        if not category:
            raise NotFound("Category not found")

        in_use = await self.clubs.count_documents(
            {"category": {"$regex": f"^{re.escape(category['name'])}$", "$options": "i"}}
        )
        if in_use:
            raise PreconditionFailed(
                f"Cannot delete category. It is being used by {in_use} club(s). "
                "Please reassign those clubs to another category first."
            )

        await self.categories.delete_one({"_id": oid})
        logger.info(f"Admin {admin.email} deleted category {category['name']}")
        return {"message": "Category deleted successfully"}

    # Finances

    @storage_guard("finance listing")
    async def finances(
        self,
        search: str = "",
        status: Optional[TransactionStatus] = None,
        transaction_type: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """Paginated transaction ledger with revenue totals over the whole filter."""
        query: Dict[str, Any] = {}
        if search:
            query.update(text_search(["userEmail", "description"], search))
        if status is not None:
            query["status"] = status.value
        if transaction_type:
            query["type"] = transaction_type

        total = await self.transactions.count_documents(query)
        page_items = (
            await self.transactions.find(query)
            .sort("createdAt", -1)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=None)
        )

        revenue = ZERO
        pending = 0
        async for transaction in self.transactions.find(query, {"amount": 1, "status": 1}):
            if transaction.get("status") in SETTLED_TRANSACTION_STATUSES:
                revenue += to_decimal(transaction.get("amount"))
            elif transaction.get("status") == TransactionStatus.PENDING.value:
                pending += 1

        transactions = []
        for transaction in page_items:
            view = serialize_document(transaction)
            view["amount"] = float(to_decimal(transaction.get("amount")))
            transactions.append(view)

        return {
            "transactions": transactions,
            "totalRevenue": float(revenue),
            "pendingPayments": pending,
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    async def _settled_revenue(self, query: Optional[Dict[str, Any]] = None) -> Decimal:
        revenue: Decimal = ZERO
        async for transaction in self.transactions.find(
            {**(query or {}), "status": {"$in": list(SETTLED_TRANSACTION_STATUSES)}}, {"amount": 1}
        ):
            revenue += to_decimal(transaction.get("amount"))
        return revenue

    @storage_guard("finance stats")
    async def finance_stats(self) -> Dict[str, Any]:
        """Ledger totals independent of any listing filter."""
        revenue = await self._settled_revenue()
        return {
            "totalRevenue": float(revenue),
            "pendingPayments": await self.transactions.count_documents({"status": TransactionStatus.PENDING.value}),
            "transactions30d": await self.transactions.count_documents(
                {"createdAt": {"$gte": self.clock() - timedelta(days=30)}}
            ),
        }

    @storage_guard("dashboard stats")
    async def dashboard_stats(self) -> Dict[str, Any]:
        """Headline counts for the admin dashboard."""
        now = self.clock()
        revenue = await self._settled_revenue()

        return {
            "totalUsers": await self.users.count_documents({}),
            "pendingClubs": await self.clubs.count_documents({"status": ClubStatus.PENDING.value}),
            "activeClubs": await self.clubs.count_documents({"status": ClubStatus.ACTIVE.value}),
            "pendingDeletionRequests": await self.clubs.count_documents(
                {"deletionRequest.status": DeletionRequestStatus.PENDING.value}
            ),
            "activeEvents": await self.events.count_documents(
                {"status": EventStatus.ACTIVE.value, "date": {"$gte": now}}
            ),
            "transactions30d": await self.transactions.count_documents(
                {"createdAt": {"$gte": now - timedelta(days=30)}}
            ),
            "totalRevenue": float(revenue),
        }
