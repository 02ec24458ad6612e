"""
HTTP-level tests: status codes, role gates and camelCase payloads.
"""

from datetime import timedelta

from factories import FIXED_NOW
from httpx import ASGITransport, AsyncClient
import pytest
import pytest_asyncio

from clubsphere.main import app
from clubsphere.routes.dependencies import get_database, get_payment_bridge
from clubsphere.services.auth_service import create_access_token
from clubsphere.utils.datetime_utils import utcnow


def auth_header(user):
    token = create_access_token(user.user_id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(database, bridge):
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_payment_bridge] = lambda: bridge
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


class TestAuthRoutes:
    @pytest.mark.asyncio
    async def test_register_login_me(self, client):
        response = await client.post(
            "/api/auth/register", json={"email": "ana@example.com", "password": "s3cret-pass", "name": "Ana"}
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "member"

        login = await client.post("/api/auth/login", json={"email": "ana@example.com", "password": "s3cret-pass"})
        assert login.status_code == 200
        token = login.json()["token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "ana@example.com"
        assert "passwordHash" not in me.json()

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_409(self, client):
        body = {"email": "ana@example.com", "password": "s3cret-pass", "name": "Ana"}
        await client.post("/api/auth/register", json=body)

        response = await client.post("/api/auth/register", json=body)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_bad_credentials_are_401(self, client):
        response = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_and_garbage_tokens(self, client):
        assert (await client.get("/api/auth/me")).status_code == 401
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"


class TestRoleGates:
    @pytest.mark.asyncio
    async def test_member_cannot_reach_admin_or_manager(self, client, member):
        assert (await client.get("/api/admin/users", headers=auth_header(member))).status_code == 403
        assert (await client.get("/api/manager/clubs", headers=auth_header(member))).status_code == 403

    @pytest.mark.asyncio
    async def test_manager_cannot_reach_admin(self, client, manager):
        assert (await client.get("/api/admin/dashboard/stats", headers=auth_header(manager))).status_code == 403

    @pytest.mark.asyncio
    async def test_admin_reaches_admin(self, client, admin):
        response = await client.get("/api/admin/dashboard/stats", headers=auth_header(admin))

        assert response.status_code == 200
        assert response.json()["totalUsers"] == 0


class TestPublicCatalog:
    @pytest.mark.asyncio
    async def test_clubs_listing_is_public(self, client, insert_club):
        await insert_club(name="Open Club")

        response = await client.get("/api/clubs")

        assert response.status_code == 200
        assert [c["name"] for c in response.json()["clubs"]] == ["Open Club"]

    @pytest.mark.asyncio
    async def test_unknown_club_is_404(self, client):
        assert (await client.get("/api/clubs/65a1f0c2e4b0a1b2c3d4e5f6")).status_code == 404
        assert (await client.get("/api/clubs/not-an-id")).status_code == 404

    @pytest.mark.asyncio
    async def test_membership_check_anonymous(self, client, insert_club):
        club = await insert_club()

        response = await client.get(f"/api/clubs/{club['_id']}/membership")

        assert response.status_code == 200
        assert response.json()["isMember"] is False


class TestPaymentRoutes:
    @pytest.mark.asyncio
    async def test_free_join_then_duplicate(self, client, member, insert_club):
        club = await insert_club()
        body = {"clubId": str(club["_id"])}

        first = await client.post("/api/payments/join-free", json=body, headers=auth_header(member))
        second = await client.post("/api/payments/join-free", json=body, headers=auth_header(member))

        assert first.status_code == 201
        assert first.json()["paymentStatus"] == "free"
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_paid_club_on_free_path_is_412(self, client, member, insert_club):
        club = await insert_club(fee=500, feeUnit=None)

        response = await client.post(
            "/api/payments/join-free", json={"clubId": str(club["_id"])}, headers=auth_header(member)
        )

        assert response.status_code == 412

    @pytest.mark.asyncio
    async def test_paid_flow(self, client, bridge, database, member, insert_club):
        club = await insert_club(fee=500, feeUnit=None)
        headers = auth_header(member)

        intent = await client.post("/api/payments/create-intent", json={"clubId": str(club["_id"])}, headers=headers)
        assert intent.status_code == 200
        body = intent.json()
        assert body["amount"] == 6.5
        assert body["serviceFee"] == 1.5
        assert body["keyId"] == "rzp_test_fake"

        confirm_body = {"paymentIntentId": body["paymentIntentId"], "clubId": str(club["_id"])}
        unpaid = await client.post("/api/payments/confirm", json=confirm_body, headers=headers)
        assert unpaid.status_code == 402

        bridge.mark_paid(body["paymentIntentId"])
        confirmed = await client.post("/api/payments/confirm", json=confirm_body, headers=headers)
        assert confirmed.status_code == 200
        assert confirmed.json()["membershipId"]

        again = await client.post("/api/payments/confirm", json=confirm_body, headers=headers)
        assert again.status_code == 409
        assert await database["memberships"].count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_intent_request_needs_exactly_one_target(self, client, member):
        response = await client.post(
            "/api/payments/create-intent", json={"clubId": "a", "eventId": "b"}, headers=auth_header(member)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancel_registration(self, client, member, insert_event):
        event = await insert_event(maxAttendees=1, date=utcnow() + timedelta(days=7))
        headers = auth_header(member)
        registered = await client.post(
            "/api/payments/register-free", json={"eventId": str(event["_id"])}, headers=headers
        )
        registration_id = registered.json()["registrationId"]

        cancelled = await client.delete(f"/api/member/events/{registration_id}/cancel", headers=headers)
        twice = await client.delete(f"/api/member/events/{registration_id}/cancel", headers=headers)

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert twice.status_code == 409


class TestDeletionRoutes:
    @pytest.mark.asyncio
    async def test_request_and_approve(self, client, database, manager, admin, insert_club, insert_event):
        club = await insert_club()
        await insert_event(club, date=FIXED_NOW + timedelta(days=3))

        requested = await client.delete(f"/api/manager/clubs/{club['_id']}", headers=auth_header(manager))
        assert requested.status_code == 200
        assert requested.json()["status"] == "pending"

        listing = await client.get("/api/admin/clubs", headers=auth_header(admin))
        assert listing.json()["clubs"][0]["hasDeletionRequest"] is True

        approved = await client.put(f"/api/admin/clubs/{club['_id']}/approve-deletion", headers=auth_header(admin))
        assert approved.status_code == 200
        assert approved.json()["deletedEvents"] == 1
        assert await database["clubs"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_approve_without_request_is_412(self, client, admin, insert_club):
        club = await insert_club()

        response = await client.put(f"/api/admin/clubs/{club['_id']}/approve-deletion", headers=auth_header(admin))

        assert response.status_code == 412


class TestAdminRoutes:
    @pytest.mark.asyncio
    async def test_stats_paths_are_not_ids(self, client, admin, insert_club):
        await insert_club(status="pending", createdAt=utcnow())

        clubs = await client.get("/api/admin/clubs/stats", headers=auth_header(admin))
        events = await client.get("/api/admin/events/stats", headers=auth_header(admin))
        finances = await client.get("/api/admin/finances/stats", headers=auth_header(admin))

        assert clubs.status_code == 200
        assert clubs.json()["pending"] == 1
        assert clubs.json()["newThisMonth"] == 1
        assert events.json() == {"total": 0, "upcoming": 0, "revenue": 0.0}
        assert finances.json()["pendingPayments"] == 0

    @pytest.mark.asyncio
    async def test_club_create_requires_known_manager(self, client, database, admin, manager, insert_user):
        body = {"name": "Runners", "managerEmail": manager.email}

        unknown = await client.post("/api/admin/clubs", json=body, headers=auth_header(admin))
        await insert_user(manager)
        created = await client.post("/api/admin/clubs", json=body, headers=auth_header(admin))

        assert unknown.status_code == 400
        assert created.status_code == 201
        club_id = created.json()["club"]["id"]
        fetched = await client.get(f"/api/admin/clubs/{club_id}", headers=auth_header(admin))
        assert fetched.json()["club"]["status"] == "active"
        assert fetched.json()["club"]["eventCount"] == 0

        updated = await client.put(
            f"/api/admin/clubs/{club_id}", json={"status": "inactive"}, headers=auth_header(admin)
        )
        assert updated.json()["club"]["status"] == "inactive"

    @pytest.mark.asyncio
    async def test_event_lifecycle(self, client, database, admin, insert_club):
        club = await insert_club(managerEmail="someone.else@example.com")
        body = {"name": "Open Day", "date": (utcnow() + timedelta(days=5)).isoformat(), "clubId": str(club["_id"]),
                "fee": 12}

        created = await client.post("/api/admin/events", json=body, headers=auth_header(admin))
        assert created.status_code == 201
        event_id = created.json()["event"]["id"]

        listing = await client.get("/api/admin/events?type=paid", headers=auth_header(admin))
        assert [e["name"] for e in listing.json()["events"]] == ["Open Day"]

        updated = await client.put(f"/api/admin/events/{event_id}", json={"location": "Hall B"},
                                   headers=auth_header(admin))
        assert updated.json()["event"]["location"] == "Hall B"

        await database["registrations"].insert_one({"userId": "u", "eventId": event_id, "status": "registered"})
        deleted = await client.delete(f"/api/admin/events/{event_id}", headers=auth_header(admin))
        assert deleted.json()["deletedRegistrations"] == 1
        assert (await client.get(f"/api/admin/events/{event_id}", headers=auth_header(admin))).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_user(self, client, database, admin, member, insert_user):
        await insert_user(admin)
        await insert_user(member)

        itself = await client.delete(f"/api/admin/users/{admin.user_id}", headers=auth_header(admin))
        other = await client.delete(f"/api/admin/users/{member.user_id}", headers=auth_header(admin))

        assert itself.status_code == 412
        assert other.status_code == 200
        assert await database["users"].count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_manager_cannot_use_admin_events(self, client, manager):
        assert (await client.get("/api/admin/events", headers=auth_header(manager))).status_code == 403


class TestMemberRoutes:
    @pytest.mark.asyncio
    async def test_discover(self, client, member, insert_club, insert_event):
        await insert_club()
        await insert_event(date=utcnow() + timedelta(days=2))

        response = await client.get("/api/member/discover", headers=auth_header(member))

        assert response.status_code == 200
        body = response.json()
        assert body["topPicks"][0]["isJoined"] is False
        assert [e["name"] for e in body["events"]] == ["Blitz Night"]
        assert body["categories"] == [{"name": "gaming", "count": 1}]

    @pytest.mark.asyncio
    async def test_settings_round(self, client, member, insert_user):
        await insert_user(member, name="Ana")

        initial = await client.get("/api/member/settings", headers=auth_header(member))
        profile = await client.put("/api/member/settings/profile", json={"location": "Dhaka"},
                                   headers=auth_header(member))
        switches = await client.put("/api/member/settings/notifications", json={"emailDigests": True},
                                    headers=auth_header(member))
        two_factor = await client.put("/api/member/settings/security/2fa", json={"enabled": True},
                                      headers=auth_header(member))
        password = await client.put("/api/member/settings/password", json={"newPassword": "short"},
                                    headers=auth_header(member))

        assert initial.json()["notifications"]["eventReminders"] is True
        assert profile.status_code == 200
        assert "token" not in profile.json()
        assert switches.json()["notifications"]["eventReminders"] is False
        assert two_factor.json() == {"twoFactorEnabled": True}
        assert password.status_code == 422
        final = await client.get("/api/member/settings", headers=auth_header(member))
        assert final.json()["profile"]["location"] == "Dhaka"

    @pytest.mark.asyncio
    async def test_settings_need_a_session(self, client):
        assert (await client.get("/api/member/settings")).status_code == 401
