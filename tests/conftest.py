import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-clubsphere")
os.environ.setdefault("APP_TIMEZONE", "UTC")

from datetime import timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from factories import FIXED_NOW, FakePaymentBridge, make_user
from mongomock_motor import AsyncMongoMockClient
import pytest
import pytest_asyncio

from clubsphere.database.manager import DatabaseManager
from clubsphere.models.user_models import CurrentUser, UserRole


@pytest_asyncio.fixture
async def database():
    client = AsyncMongoMockClient()
    db = client["clubsphere_test"]
    manager = DatabaseManager()
    manager.attach(db)
    await manager.create_indexes()
    yield db


@pytest.fixture
def bridge():
    return FakePaymentBridge()


@pytest.fixture
def member():
    return make_user(UserRole.MEMBER, "ana@example.com")


@pytest.fixture
def other_member():
    return make_user(UserRole.MEMBER, "bo@example.com")


@pytest.fixture
def manager():
    return make_user(UserRole.CLUB_MANAGER, "manager@example.com")


@pytest.fixture
def admin():
    return make_user(UserRole.ADMIN, "admin@example.com")


@pytest.fixture
def insert_user(database):
    async def _insert(user: CurrentUser, name: str = "Test User") -> CurrentUser:
        await database["users"].insert_one(
            {
                "_id": ObjectId(user.user_id),
                "email": user.email,
                "name": name,
                "role": user.role.value,
                "createdAt": FIXED_NOW,
            }
        )
        return user

    return _insert


@pytest.fixture
def insert_club(database):
    """Insert a club. Overrides set to `None` drop the field."""

    async def _insert(**overrides: Any) -> Dict[str, Any]:
        club = {
            "name": "Chess Circle",
            "description": "Weekly chess meetups",
            "category": "gaming",
            "location": "Dhaka",
            "fee": 0.0,
            "feeUnit": "major",
            "managerEmail": "manager@example.com",
            "status": "active",
            "memberCount": 0,
            "createdAt": FIXED_NOW - timedelta(days=30),
        }
        club.update(overrides)
        club = {k: v for k, v in club.items() if v is not None}
        result = await database["clubs"].insert_one(club)
        club["_id"] = result.inserted_id
        return club

    return _insert


@pytest.fixture
def insert_event(database):
    """Insert an event, optionally under a club. Overrides set to `None` drop the field."""

    async def _insert(club: Optional[Dict[str, Any]] = None, **overrides: Any) -> Dict[str, Any]:
        event = {
            "name": "Blitz Night",
            "description": "Five minute games",
            "date": FIXED_NOW + timedelta(days=7),
            "location": "Club house",
            "fee": 0.0,
            "feeUnit": "major",
            "maxAttendees": 0,
            "status": "active",
            "registeredCount": 0,
            "createdAt": FIXED_NOW - timedelta(days=3),
        }
        if club is not None:
            event["clubId"] = str(club["_id"])
            event["clubName"] = club["name"]
        event.update(overrides)
        event = {k: v for k, v in event.items() if v is not None}
        result = await database["events"].insert_one(event)
        event["_id"] = result.inserted_id
        return event

    return _insert
