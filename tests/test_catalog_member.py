"""
Tests for the public catalog and the member area.
"""

from datetime import timedelta

from factories import FIXED_NOW, clock
import pytest

from clubsphere.errors import NotFound
from clubsphere.services.catalog_service import CatalogService
from clubsphere.services.member_service import DiscoverFilter, EventTab, MemberService, MembershipFilter


@pytest.fixture
def catalog(database):
    return CatalogService(database, clock=clock)


@pytest.fixture
def members(database):
    return MemberService(database, clock=clock)


class TestCatalog:
    @pytest.mark.asyncio
    async def test_only_public_clubs_are_listed(self, catalog, insert_club):
        await insert_club(name="Active")
        await insert_club(name="Legacy without status", status=None)
        await insert_club(name="Awaiting approval", status="pending")
        await insert_club(name="Turned down", status="rejected")

        result = await catalog.list_clubs()

        assert sorted(c["name"] for c in result["clubs"]) == ["Active", "Legacy without status"]
        assert result["total"] == 2

    @pytest.mark.asyncio
    async def test_legacy_club_fee_reported_in_major_units(self, catalog, insert_club):
        club = await insert_club(fee=500, feeUnit=None)

        view = await catalog.get_club(str(club["_id"]))

        assert view["fee"] == 5.0
        assert "feeUnit" not in view

    @pytest.mark.asyncio
    async def test_category_filter_is_case_insensitive(self, catalog, insert_club):
        await insert_club(name="Runners", category="Sports")
        await insert_club(name="Coders", category="tech")

        result = await catalog.list_clubs(category="sports")

        assert [c["name"] for c in result["clubs"]] == ["Runners"]

    @pytest.mark.asyncio
    async def test_club_events_include_every_reference_style(self, catalog, insert_club, insert_event):
        club = await insert_club(name="Photo Walkers")
        await insert_event(club, name="By string")
        await insert_event(None, name="By ObjectId", clubId=club["_id"])
        await insert_event(None, name="By name", clubName="Photo Walkers")
        await insert_event(club, name="Yesterday", date=FIXED_NOW - timedelta(days=1))

        events = await catalog.club_events(str(club["_id"]))

        assert sorted(e["name"] for e in events) == ["By ObjectId", "By name", "By string"]
        assert all(e["clubId"] == str(club["_id"]) for e in events)

    @pytest.mark.asyncio
    async def test_event_earlier_today_is_upcoming(self, catalog, insert_event):
        await insert_event(name="This morning", date=FIXED_NOW - timedelta(hours=6))

        events = await catalog.upcoming_events()

        assert [e["name"] for e in events] == ["This morning"]

    @pytest.mark.asyncio
    async def test_cancelled_event_is_not_found(self, catalog, insert_event):
        event = await insert_event(status="cancelled")

        with pytest.raises(NotFound):
            await catalog.get_event(str(event["_id"]))

    @pytest.mark.asyncio
    async def test_event_price_resolved(self, catalog, insert_event):
        event = await insert_event(fee=None, price=1999)

        view = await catalog.get_event(str(event["_id"]))

        assert view["fee"] == 19.99
        assert view["isPaid"] is True
        assert "price" not in view

    @pytest.mark.asyncio
    async def test_membership_for_anonymous_and_member(self, catalog, database, member, insert_club):
        club = await insert_club()
        await database["memberships"].insert_one(
            {
                "userId": member.user_id,
                "clubId": str(club["_id"]),
                "status": "active",
                "expiryDate": FIXED_NOW + timedelta(hours=5),
                "activeKey": f"{member.user_id}:{club['_id']}",
            }
        )

        assert await catalog.membership_for(None, str(club["_id"])) == {"isMember": False, "membership": None}
        result = await catalog.membership_for(member.user_id, str(club["_id"]))
        assert result["isMember"] is True
        assert result["membership"]["band"] == "renew_soon"
        assert "activeKey" not in result["membership"]


class TestMemberArea:
    @pytest.mark.asyncio
    async def test_my_clubs_filters_by_derived_band(self, members, database, member, insert_club):
        soon = await insert_club(name="Soon")
        lapsed = await insert_club(name="Lapsed")
        waiting = await insert_club(name="Waiting")
        await database["memberships"].insert_many(
            [
                {"userId": member.user_id, "clubId": str(soon["_id"]), "status": "active",
                 "expiryDate": FIXED_NOW + timedelta(hours=3), "joinDate": FIXED_NOW - timedelta(days=1)},
                {"userId": member.user_id, "clubId": str(lapsed["_id"]), "status": "active",
                 "expiryDate": FIXED_NOW - timedelta(days=3), "joinDate": FIXED_NOW - timedelta(days=2)},
                {"userId": member.user_id, "clubId": str(waiting["_id"]), "status": "pending",
                 "joinDate": FIXED_NOW - timedelta(days=3)},
            ]
        )

        active = await members.my_clubs(member, MembershipFilter.ACTIVE)
        expired = await members.my_clubs(member, MembershipFilter.EXPIRED)
        everything = await members.my_clubs(member)

        assert [m["club"]["name"] for m in active] == ["Soon"]
        assert [m["club"]["name"] for m in expired] == ["Lapsed"]
        assert [m["band"] for m in everything] == ["renew_soon", "expired", "pending"]

    @pytest.mark.asyncio
    async def test_my_events_tabs(self, members, database, member, insert_event):
        upcoming = await insert_event(name="Next week")
        past = await insert_event(name="Last week", date=FIXED_NOW - timedelta(days=7))
        dropped = await insert_event(name="Dropped")
        await database["registrations"].insert_many(
            [
                {"userId": member.user_id, "eventId": str(upcoming["_id"]), "status": "registered",
                 "registrationDate": FIXED_NOW},
                {"userId": member.user_id, "eventId": past["_id"], "status": "registered",
                 "registrationDate": FIXED_NOW - timedelta(days=10)},
                {"userId": member.user_id, "eventId": str(dropped["_id"]), "status": "cancelled",
                 "registrationDate": FIXED_NOW - timedelta(days=1)},
            ]
        )

        result = await members.my_events(member, EventTab.PAST)

        assert result["counts"] == {"upcoming": 1, "waitlist": 0, "past": 1, "cancelled": 1}
        assert [r["event"]["name"] for r in result["events"]] == ["Last week"]

    @pytest.mark.asyncio
    async def test_my_payments_totals_settled_transactions(self, members, database, member):
        await database["transactions"].insert_many(
            [
                {"userId": member.user_id, "amount": 6.5, "status": "success", "createdAt": FIXED_NOW},
                {"userId": member.user_id, "amount": 10, "status": "paid", "createdAt": FIXED_NOW},
                {"userId": member.user_id, "amount": 99, "status": "failed", "createdAt": FIXED_NOW},
                {"userId": "someone-else", "amount": 50, "status": "success", "createdAt": FIXED_NOW},
            ]
        )

        result = await members.my_payments(member)

        assert result["totalPaid"] == 16.5
        assert len(result["transactions"]) == 3

    @pytest.mark.asyncio
    async def test_discover_feed(self, members, database, member, insert_club, insert_event):
        chess = await insert_club(memberCount=20)
        runners = await insert_club(name="Runners", category="sports", memberCount=9,
                                    createdAt=FIXED_NOW - timedelta(days=10))
        await insert_club(name="Not yet", status="pending", createdAt=FIXED_NOW)
        await database["memberships"].insert_many(
            [
                {"userId": member.user_id, "clubId": str(chess["_id"]), "status": "active",
                 "expiryDate": FIXED_NOW + timedelta(days=100)},
                {"userId": member.user_id, "clubId": str(runners["_id"]), "status": "active",
                 "expiryDate": FIXED_NOW - timedelta(days=1)},
            ]
        )
        await insert_event(name="Tonight", date=FIXED_NOW + timedelta(hours=2), registeredCount=4)
        await insert_event(name="Next week")
        await insert_event(name="Too far", date=FIXED_NOW + timedelta(days=9))
        await insert_event(name="Called off", date=FIXED_NOW + timedelta(days=2), status="cancelled")

        feed = await members.discover(member)
        trending = await members.discover(member, feed=DiscoverFilter.TRENDING)
        today = await members.discover(member, feed=DiscoverFilter.TODAY)

        assert [(c["name"], c["isJoined"]) for c in feed["topPicks"]] == [("Runners", False), ("Chess Circle", True)]
        assert [c["name"] for c in trending["topPicks"]] == ["Chess Circle", "Runners"]
        assert [e["name"] for e in feed["events"]] == ["Tonight", "Next week"]
        assert feed["events"][0]["registeredCount"] == 4
        assert [e["name"] for e in today["events"]] == ["Tonight"]
        assert feed["categories"] == [{"name": "gaming", "count": 1}, {"name": "sports", "count": 1}]

    @pytest.mark.asyncio
    async def test_discover_category_filter(self, members, member, insert_club):
        await insert_club()
        await insert_club(name="Runners", category="Sports")

        feed = await members.discover(member, category="sports")

        assert [c["name"] for c in feed["topPicks"]] == ["Runners"]
