"""
Tests for registration cancellation.
"""

from datetime import timedelta

from bson import ObjectId
from factories import FIXED_NOW, clock
import pytest

from clubsphere.errors import Conflict, NotFound, PreconditionFailed
from clubsphere.services.enrollment_service import EnrollmentService


@pytest.fixture
def service(database, bridge):
    return EnrollmentService(database, bridge, clock=clock)


@pytest.fixture
def registered(service, member, insert_event):
    async def _register(**event_overrides):
        event = await insert_event(maxAttendees=1, **event_overrides)
        result = await service.register_event_free(member, str(event["_id"]))
        return event, result.registration_id

    return _register


@pytest.mark.asyncio
async def test_cancel_marks_cancelled_and_frees_the_seat(service, database, member, registered):
    event, registration_id = await registered()

    result = await service.cancel_registration(member, registration_id)

    assert result.status == "cancelled"
    assert result.cancelled_at == FIXED_NOW
    stored = await database["registrations"].find_one({"_id": ObjectId(registration_id)})
    assert stored["status"] == "cancelled"
    assert stored["cancelledAt"] == FIXED_NOW
    assert "activeKey" not in stored
    refreshed = await database["events"].find_one({"_id": event["_id"]})
    assert refreshed["registeredCount"] == 0


@pytest.mark.asyncio
async def test_cancel_twice_is_conflict(service, member, registered):
    _, registration_id = await registered()
    await service.cancel_registration(member, registration_id)

    with pytest.raises(Conflict):
        await service.cancel_registration(member, registration_id)


@pytest.mark.asyncio
async def test_other_users_registration_is_not_found(service, other_member, registered):
    _, registration_id = await registered()

    with pytest.raises(NotFound):
        await service.cancel_registration(other_member, registration_id)


@pytest.mark.asyncio
async def test_malformed_id_is_not_found(service, member):
    with pytest.raises(NotFound):
        await service.cancel_registration(member, "nope")


@pytest.mark.asyncio
async def test_past_event_cannot_be_cancelled(service, database, member, registered):
    event, registration_id = await registered()
    await database["events"].update_one({"_id": event["_id"]}, {"$set": {"date": FIXED_NOW - timedelta(days=1)}})

    with pytest.raises(PreconditionFailed):
        await service.cancel_registration(member, registration_id)


@pytest.mark.asyncio
async def test_event_later_today_can_still_be_cancelled(service, database, member, registered):
    event, registration_id = await registered()
    await database["events"].update_one({"_id": event["_id"]}, {"$set": {"date": FIXED_NOW - timedelta(hours=2)}})

    result = await service.cancel_registration(member, registration_id)

    assert result.status == "cancelled"


@pytest.mark.asyncio
async def test_register_again_after_cancelling(service, database, member, registered):
    """The freed seat and the removed activeKey allow a fresh registration."""
    event, registration_id = await registered()
    await service.cancel_registration(member, registration_id)

    again = await service.register_event_free(member, str(event["_id"]))

    assert again.registration_id != registration_id
    assert await database["registrations"].count_documents({"status": "registered"}) == 1
