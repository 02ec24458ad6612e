"""
Tests for the manager area and admin moderation.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from bson import ObjectId
from factories import FIXED_NOW, clock, make_user
import pytest

from clubsphere.errors import Conflict, Forbidden, NotFound, PreconditionFailed, ValidationFailed
from clubsphere.models.club_models import (
    AdminCreateClubRequest,
    AdminUpdateClubRequest,
    CategoryCreateRequest,
    ClubStatus,
    CreateClubRequest,
    CreateEventRequest,
    EventFeeFilter,
    UpdateClubRequest,
    UpdateEventRequest,
)
from clubsphere.models.enrollment_models import RegistrationStatus
from clubsphere.models.user_models import UserRole
from clubsphere.services.admin_service import AdminService
from clubsphere.services.club_management_service import ClubManagementService


@pytest.fixture
def management(database):
    return ClubManagementService(database, clock=clock)


@pytest.fixture
def admin_service(database):
    return AdminService(database, clock=clock)


class TestManagerClubs:
    @pytest.mark.asyncio
    async def test_create_club_is_pending_with_major_fee(self, management, database, manager):
        view = await management.create_club(manager, CreateClubRequest(name="  Bakers ", fee=Decimal("12.5")))

        assert view["status"] == "pending"
        assert view["fee"] == 12.5
        stored = await database["clubs"].find_one({"_id": ObjectId(view["id"])})
        assert stored["feeUnit"] == "major"
        assert stored["name"] == "Bakers"
        assert stored["managerEmail"] == manager.email
        assert stored["memberCount"] == 0

    @pytest.mark.asyncio
    async def test_list_only_own_clubs(self, management, manager, insert_club):
        await insert_club(name="Mine")
        await insert_club(name="Theirs", managerEmail="someone@example.com")

        clubs = await management.list_clubs(manager)

        assert [c["name"] for c in clubs] == ["Mine"]

    @pytest.mark.asyncio
    async def test_rename_propagates_to_events(self, management, database, manager, insert_club, insert_event):
        club = await insert_club(name="Old Name")
        event = await insert_event(club)

        view = await management.update_club(manager, str(club["_id"]), UpdateClubRequest(name="New Name", fee=3))

        assert view["name"] == "New Name"
        assert view["fee"] == 3.0
        refreshed = await database["events"].find_one({"_id": event["_id"]})
        assert refreshed["clubName"] == "New Name"

    @pytest.mark.asyncio
    async def test_update_foreign_club_forbidden(self, management, insert_club):
        club = await insert_club(managerEmail="someone@example.com")

        with pytest.raises(Forbidden):
            await management.update_club(
                make_user(UserRole.CLUB_MANAGER, "manager@example.com"), str(club["_id"]), UpdateClubRequest(name="X")
            )

    @pytest.mark.asyncio
    async def test_members_with_bands(self, management, database, manager, insert_club, insert_user):
        club = await insert_club()
        fresh = await insert_user(make_user(), name="Fresh")
        lapsed = await insert_user(make_user(), name="Lapsed")
        await database["memberships"].insert_many(
            [
                {"userId": fresh.user_id, "clubId": str(club["_id"]), "status": "active",
                 "joinDate": FIXED_NOW, "expiryDate": None},
                {"userId": lapsed.user_id, "clubId": club["_id"], "status": "active",
                 "joinDate": FIXED_NOW - timedelta(days=400), "expiryDate": FIXED_NOW - timedelta(days=35)},
            ]
        )

        result = await management.club_members(manager, str(club["_id"]))

        assert result["total"] == 2
        assert result["stats"] == {"active": 1, "renew_soon": 0, "expired": 1, "pending": 0}
        first = result["members"][0]
        assert first["name"] == "Fresh"
        assert first["memberId"] == f"#{fresh.user_id[-4:]}"
        assert first["joinDate"] == FIXED_NOW.isoformat()


class TestManagerEvents:
    @pytest.mark.asyncio
    async def test_create_event_for_owned_club(self, management, database, manager, insert_club):
        club = await insert_club(name="Chess Circle")

        view = await management.create_event(
            manager,
            CreateEventRequest(
                name="Open Night", date=datetime(2024, 7, 1, 18, 0), club_id=str(club["_id"]), fee=5, max_attendees=30
            ),
        )

        stored = await database["events"].find_one({"_id": ObjectId(view["id"])})
        assert stored["clubId"] == str(club["_id"])
        assert stored["clubName"] == "Chess Circle"
        assert stored["registeredCount"] == 0
        assert stored["feeUnit"] == "major"
        assert view["isPaid"] is True
        assert view["maxAttendees"] == 30

    @pytest.mark.asyncio
    async def test_create_event_for_foreign_club(self, management, manager, insert_club):
        club = await insert_club(managerEmail="someone@example.com")

        with pytest.raises(Forbidden):
            await management.create_event(
                manager, CreateEventRequest(name="Nope", date=datetime(2024, 7, 1), club_id=str(club["_id"]))
            )

    @pytest.mark.asyncio
    async def test_fee_update_drops_legacy_price(self, management, database, manager, insert_club, insert_event):
        club = await insert_club()
        event = await insert_event(club, fee=None, feeUnit=None, price=5000)

        view = await management.update_event(manager, str(event["_id"]), UpdateEventRequest(fee=20))

        assert view["fee"] == 20.0
        refreshed = await database["events"].find_one({"_id": event["_id"]})
        assert "price" not in refreshed
        assert refreshed["feeUnit"] == "major"

    @pytest.mark.asyncio
    async def test_event_owned_through_club_name(self, management, manager, insert_club, insert_event):
        await insert_club(name="Name Only")
        event = await insert_event(None, clubName="Name Only")

        view = await management.update_event(manager, str(event["_id"]), UpdateEventRequest(location="Hall B"))

        assert view["location"] == "Hall B"

    @pytest.mark.asyncio
    async def test_list_events_past_filter(self, management, manager, insert_club, insert_event):
        club = await insert_club()
        await insert_event(club, name="Future")
        await insert_event(club, name="Gone", date=FIXED_NOW - timedelta(days=2))

        past = await management.list_events(manager, when="past")
        upcoming = await management.list_events(manager, when="upcoming")

        assert [e["name"] for e in past] == ["Gone"]
        assert past[0]["isPast"] is True
        assert [e["name"] for e in upcoming] == ["Future"]

    @pytest.mark.asyncio
    async def test_delete_event_removes_registrations(self, management, database, manager, insert_club, insert_event):
        club = await insert_club()
        event = await insert_event(club)
        await database["registrations"].insert_many(
            [
                {"userId": "a", "eventId": str(event["_id"]), "status": "registered"},
                {"userId": "b", "eventId": event["_id"], "status": "cancelled"},
            ]
        )

        result = await management.delete_event(manager, str(event["_id"]))

        assert result["deletedRegistrations"] == 2
        assert await database["events"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_registrations_filtered_by_status(
        self, management, database, manager, insert_club, insert_event, insert_user
    ):
        club = await insert_club()
        event = await insert_event(club)
        attendee = await insert_user(make_user(), name="Attendee")
        dropout = await insert_user(make_user(), name="Dropout")
        await database["registrations"].insert_many(
            [
                {"userId": attendee.user_id, "eventId": str(event["_id"]), "status": "registered",
                 "registrationDate": FIXED_NOW, "activeKey": "k1"},
                {"userId": dropout.user_id, "eventId": str(event["_id"]), "status": "cancelled",
                 "registrationDate": FIXED_NOW},
            ]
        )

        result = await management.event_registrations(
            manager, str(event["_id"]), status=RegistrationStatus.REGISTERED
        )

        assert result["total"] == 1
        assert [r["name"] for r in result["registrations"]] == ["Attendee"]
        assert "activeKey" not in result["registrations"][0]

    @pytest.mark.asyncio
    async def test_unknown_event(self, management, manager):
        with pytest.raises(NotFound):
            await management.delete_event(manager, str(ObjectId()))


class TestAdmin:
    @pytest.mark.asyncio
    async def test_role_update(self, admin_service, database, admin, insert_user):
        target = await insert_user(make_user(), name="Target")

        updated = await admin_service.update_role(admin, target.user_id, UserRole.CLUB_MANAGER)

        assert updated["role"] == "clubManager"
        stored = await database["users"].find_one({"_id": ObjectId(target.user_id)})
        assert stored["role"] == "clubManager"

    @pytest.mark.asyncio
    async def test_admin_cannot_change_own_role(self, admin_service, admin, insert_user):
        await insert_user(admin)

        with pytest.raises(PreconditionFailed):
            await admin_service.update_role(admin, admin.user_id, UserRole.MEMBER)

    @pytest.mark.asyncio
    async def test_role_update_unknown_user(self, admin_service, admin):
        with pytest.raises(NotFound):
            await admin_service.update_role(admin, str(ObjectId()), UserRole.MEMBER)

    @pytest.mark.asyncio
    async def test_list_users_hides_password_hash(self, admin_service, database, insert_user):
        user = await insert_user(make_user(), name="Hidden")
        await database["users"].update_one({"_id": ObjectId(user.user_id)}, {"$set": {"passwordHash": "x"}})

        result = await admin_service.list_users(search="hidden")

        assert result["total"] == 1
        assert "passwordHash" not in result["users"][0]

    @pytest.mark.asyncio
    async def test_approve_and_reject_club(self, admin_service, database, admin, insert_club):
        club = await insert_club(status="pending")

        approved = await admin_service.approve_club(admin, str(club["_id"]))
        assert approved["status"] == "active"

        rejected = await admin_service.reject_club(admin, str(club["_id"]))
        assert rejected["status"] == "rejected"
        stored = await database["clubs"].find_one({"_id": club["_id"]})
        assert stored["status"] == ClubStatus.REJECTED.value

    @pytest.mark.asyncio
    async def test_deletion_requests_listed_first(self, admin_service, insert_club):
        await insert_club(name="Newest", createdAt=FIXED_NOW)
        await insert_club(name="Leaving", createdAt=FIXED_NOW - timedelta(days=90),
                          deletionRequest={"status": "pending", "requestedBy": "manager@example.com"})

        result = await admin_service.list_clubs()

        assert [c["name"] for c in result["clubs"]] == ["Leaving", "Newest"]
        assert result["pendingDeletionRequests"] == 1

    @pytest.mark.asyncio
    async def test_category_lifecycle(self, admin_service, admin, insert_club):
        created = await admin_service.create_category(admin, CategoryCreateRequest(name=" Cooking "))
        assert created["name"] == "cooking"
        assert created["displayName"] == "Cooking"

        with pytest.raises(Conflict):
            await admin_service.create_category(admin, CategoryCreateRequest(name="cooking"))
        with pytest.raises(Conflict):
            await admin_service.create_category(admin, CategoryCreateRequest(name="food", display_name="COOKING"))

        await insert_club(category="Cooking")
        with pytest.raises(PreconditionFailed):
            await admin_service.delete_category(admin, created["id"])

    @pytest.mark.asyncio
    async def test_unused_category_deleted(self, admin_service, database, admin):
        created = await admin_service.create_category(admin, CategoryCreateRequest(name="knitting"))

        await admin_service.delete_category(admin, created["id"])

        assert await database["categories"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_finances_totals(self, admin_service, database):
        await database["transactions"].insert_many(
            [
                {"userEmail": "a@example.com", "amount": 6.5, "status": "success", "type": "club_membership",
                 "createdAt": FIXED_NOW},
                {"userEmail": "b@example.com", "amount": 27.5, "status": "paid", "type": "event_registration",
                 "createdAt": FIXED_NOW - timedelta(days=1)},
                {"userEmail": "c@example.com", "amount": 10, "status": "pending", "type": "event_registration",
                 "createdAt": FIXED_NOW - timedelta(days=2)},
            ]
        )

        everything = await admin_service.finances(limit=2)
        events_only = await admin_service.finances(transaction_type="event_registration")

        assert everything["totalRevenue"] == 34.0
        assert everything["pendingPayments"] == 1
        assert everything["total"] == 3
        assert everything["totalPages"] == 2
        assert len(everything["transactions"]) == 2
        assert events_only["totalRevenue"] == 27.5

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, admin_service, database, insert_club, insert_event, insert_user):
        await insert_user(make_user())
        await insert_club(status="pending")
        await insert_club()
        await insert_event()
        await database["transactions"].insert_one({"amount": 6.5, "status": "success", "createdAt": FIXED_NOW})

        stats = await admin_service.dashboard_stats()

        assert stats["totalUsers"] == 1
        assert stats["pendingClubs"] == 1
        assert stats["activeClubs"] == 1
        assert stats["activeEvents"] == 1
        assert stats["transactions30d"] == 1
        assert stats["totalRevenue"] == 6.5


class TestAdminUsersAndClubs:
    @pytest.mark.asyncio
    async def test_delete_user_keeps_history(self, admin_service, database, admin, insert_user):
        target = await insert_user(make_user(), name="Leaver")
        await database["memberships"].insert_one({"userId": target.user_id, "clubId": "c1", "status": "active"})

        result = await admin_service.delete_user(admin, target.user_id)

        assert result["message"] == "User deleted successfully"
        assert await database["users"].count_documents({}) == 0
        assert await database["memberships"].count_documents({"userId": target.user_id}) == 1

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, admin_service, database, admin, insert_user):
        await insert_user(admin)

        with pytest.raises(PreconditionFailed):
            await admin_service.delete_user(admin, admin.user_id)
        with pytest.raises(NotFound):
            await admin_service.delete_user(admin, str(ObjectId()))
        assert await database["users"].count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_create_club_requires_registered_manager(self, admin_service, database, admin, insert_user):
        with pytest.raises(ValidationFailed):
            await admin_service.create_club(
                admin, AdminCreateClubRequest(name="Runners", manager_email="ghost@example.com")
            )

        await insert_user(make_user(UserRole.CLUB_MANAGER, "coach@example.com"))
        club = await admin_service.create_club(
            admin, AdminCreateClubRequest(name="Runners", fee=Decimal("3"), manager_email="Coach@Example.com")
        )

        assert club["status"] == "active"
        assert club["managerEmail"] == "coach@example.com"
        assert club["fee"] == 3.0
        assert await database["clubs"].count_documents({"status": "active"}) == 1

    @pytest.mark.asyncio
    async def test_update_club_status_manager_and_name(
        self, admin_service, database, admin, insert_club, insert_event, insert_user
    ):
        club = await insert_club(status="pending")
        event = await insert_event(club)
        await insert_user(make_user(UserRole.CLUB_MANAGER, "new.lead@example.com"))

        with pytest.raises(ValidationFailed):
            await admin_service.update_club(
                admin, str(club["_id"]), AdminUpdateClubRequest(manager_email="nobody@example.com")
            )

        updated = await admin_service.update_club(
            admin,
            str(club["_id"]),
            AdminUpdateClubRequest(name="Chess Society", status=ClubStatus.INACTIVE, manager_email="new.lead@example.com"),
        )

        assert updated["status"] == "inactive"
        assert updated["managerEmail"] == "new.lead@example.com"
        stored_event = await database["events"].find_one({"_id": event["_id"]})
        assert stored_event["clubName"] == "Chess Society"

    @pytest.mark.asyncio
    async def test_get_club_with_event_count(self, admin_service, insert_club, insert_event):
        club = await insert_club(status="rejected")
        await insert_event(club)
        await insert_event(club, name="Rapid Night")

        view = await admin_service.get_club(str(club["_id"]))

        assert view["status"] == "rejected"
        assert view["eventCount"] == 2
        with pytest.raises(NotFound):
            await admin_service.get_club("not-an-id")

    @pytest.mark.asyncio
    async def test_club_stats_growth(self, admin_service, insert_club):
        await insert_club(name="June", createdAt=FIXED_NOW - timedelta(days=2))
        await insert_club(name="May A", createdAt=datetime(2024, 5, 10))
        await insert_club(name="May B", status="pending", createdAt=datetime(2024, 5, 20))
        await insert_club(name="April", createdAt=datetime(2024, 4, 30))

        stats = await admin_service.club_stats()

        assert stats["newThisMonth"] == 1
        assert stats["newGrowth"] == -50
        assert stats["pending"] == 1
        assert stats["active"] == 3

    @pytest.mark.asyncio
    async def test_club_stats_without_last_month(self, admin_service, insert_club):
        await insert_club(createdAt=FIXED_NOW)

        stats = await admin_service.club_stats()

        assert stats["newThisMonth"] == 1
        assert stats["newGrowth"] == 0


class TestAdminEventsAndFinances:
    @pytest.mark.asyncio
    async def test_list_events_by_fee_and_club_name(self, admin_service, insert_club, insert_event):
        chess = await insert_club()
        runners = await insert_club(name="Runners")
        await insert_event(chess, name="Paid Blitz", fee=10.0, date=FIXED_NOW + timedelta(days=3))
        await insert_event(chess, name="Legacy Rapid", fee=None, price=500, date=FIXED_NOW + timedelta(days=2))
        await insert_event(runners, name="Park Run", date=FIXED_NOW + timedelta(days=1))

        paid = await admin_service.list_events(fee_filter=EventFeeFilter.PAID)
        free = await admin_service.list_events(fee_filter=EventFeeFilter.FREE)
        by_club = await admin_service.list_events(search="runn")

        assert [e["name"] for e in paid["events"]] == ["Paid Blitz", "Legacy Rapid"]
        assert paid["events"][1]["fee"] == 5.0
        assert [e["name"] for e in free["events"]] == ["Park Run"]
        assert by_club["total"] == 1

    @pytest.mark.asyncio
    async def test_event_stats(self, admin_service, database, insert_event):
        await insert_event()
        await insert_event(name="Old", date=FIXED_NOW - timedelta(days=3))
        await insert_event(name="Called off", status="cancelled")
        await database["transactions"].insert_many(
            [
                {"amount": 27.5, "status": "success", "type": "event_registration", "createdAt": FIXED_NOW},
                {"amount": 12, "status": "paid", "type": "Event Ticket", "createdAt": FIXED_NOW},
                {"amount": 6.5, "status": "success", "type": "club_membership", "createdAt": FIXED_NOW},
                {"amount": 99, "status": "pending", "type": "event_registration", "createdAt": FIXED_NOW},
            ]
        )

        stats = await admin_service.event_stats()

        assert stats == {"total": 3, "upcoming": 1, "revenue": 39.5}

    @pytest.mark.asyncio
    async def test_finance_stats_ignore_filters(self, admin_service, database):
        await database["transactions"].insert_many(
            [
                {"amount": 6.5, "status": "success", "createdAt": FIXED_NOW},
                {"amount": 10, "status": "pending", "createdAt": FIXED_NOW - timedelta(days=2)},
                {"amount": 3, "status": "paid", "createdAt": FIXED_NOW - timedelta(days=45)},
            ]
        )

        stats = await admin_service.finance_stats()

        assert stats == {"totalRevenue": 9.5, "pendingPayments": 1, "transactions30d": 2}

    @pytest.mark.asyncio
    async def test_admin_manages_any_club_events(self, management, database, admin, insert_club):
        club = await insert_club(managerEmail="someone.else@example.com")

        created = await management.create_event(
            admin,
            CreateEventRequest(name="Open Day", date=FIXED_NOW + timedelta(days=4), club_id=str(club["_id"])),
        )
        fetched = await management.get_event(admin, created["id"])
        updated = await management.update_event(admin, created["id"], UpdateEventRequest(location="Hall B"))

        assert fetched["clubName"] == "Chess Circle"
        assert fetched["registeredCount"] == 0
        assert updated["location"] == "Hall B"

        await database["registrations"].insert_one({"userId": "u", "eventId": created["id"], "status": "registered"})
        result = await management.delete_event(admin, created["id"])

        assert result["deletedRegistrations"] == 1
        assert await database["events"].count_documents({}) == 0
        assert await database["registrations"].count_documents({}) == 0
