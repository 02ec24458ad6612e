"""
Tests for the self-service account settings.
"""

from bson import ObjectId
from factories import FIXED_NOW, clock, make_user
import pytest

from clubsphere.errors import Conflict, NotFound, Unauthorized
from clubsphere.models.user_models import (
    NotificationPreferences,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    TwoFactorUpdateRequest,
    UserRole,
)
from clubsphere.services.account_service import AccountService
from clubsphere.services.auth_service import hash_password, verify_password, verify_token


@pytest.fixture
def accounts(database):
    return AccountService(database, clock=clock)


class TestSettings:
    @pytest.mark.asyncio
    async def test_defaults_for_fresh_account(self, accounts, member, insert_user):
        await insert_user(member, name="Ana")

        settings = await accounts.get_settings(member)

        assert settings["profile"]["name"] == "Ana"
        assert settings["profile"]["email"] == "ana@example.com"
        assert settings["notifications"] == {"emailDigests": True, "eventReminders": True, "newClubAlerts": True}
        assert settings["security"] == {"twoFactorEnabled": False, "hasPassword": False}
        assert settings["memberSince"] == FIXED_NOW

    @pytest.mark.asyncio
    async def test_unknown_account(self, accounts, member):
        with pytest.raises(NotFound):
            await accounts.get_settings(member)

    @pytest.mark.asyncio
    async def test_notifications_omitted_switch_turns_off(self, accounts, database, member, insert_user):
        await insert_user(member)

        result = await accounts.update_notifications(member, NotificationPreferences(event_reminders=True))
        settings = await accounts.get_settings(member)

        assert result["notifications"] == {"emailDigests": False, "eventReminders": True, "newClubAlerts": False}
        assert settings["notifications"] == result["notifications"]

    @pytest.mark.asyncio
    async def test_two_factor_flag(self, accounts, member, insert_user):
        await insert_user(member)

        await accounts.update_two_factor(member, TwoFactorUpdateRequest(enabled=True))

        assert (await accounts.get_settings(member))["security"]["twoFactorEnabled"] is True


class TestProfile:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, accounts, database, member, insert_user):
        await insert_user(member, name="Ana")

        result = await accounts.update_profile(
            member, ProfileUpdateRequest(bio="Plays chess", photo_url="http://x/a.png")
        )

        assert "token" not in result
        stored = await database["users"].find_one({"_id": ObjectId(member.user_id)})
        assert stored["name"] == "Ana"
        assert stored["bio"] == "Plays chess"
        assert stored["photoURL"] == "http://x/a.png"

    @pytest.mark.asyncio
    async def test_email_change_moves_managed_clubs(self, accounts, database, manager, insert_user, insert_club):
        await insert_user(manager)
        club = await insert_club()

        result = await accounts.update_profile(manager, ProfileUpdateRequest(email="Lead@Example.com"))

        claims = verify_token(result["token"])
        assert claims.email == "lead@example.com"
        assert claims.role == UserRole.CLUB_MANAGER
        assert result["user"]["email"] == "lead@example.com"
        stored_club = await database["clubs"].find_one({"_id": club["_id"]})
        assert stored_club["managerEmail"] == "lead@example.com"

    @pytest.mark.asyncio
    async def test_email_taken_by_another_account(self, accounts, database, member, other_member, insert_user):
        await insert_user(member)
        await insert_user(other_member)

        with pytest.raises(Conflict):
            await accounts.update_profile(member, ProfileUpdateRequest(email="bo@example.com"))
        stored = await database["users"].find_one({"_id": ObjectId(member.user_id)})
        assert stored["email"] == "ana@example.com"


class TestPassword:
    @pytest.mark.asyncio
    async def test_change_requires_current_password(self, accounts, database, member, insert_user):
        await insert_user(member)
        await database["users"].update_one(
            {"_id": ObjectId(member.user_id)}, {"$set": {"passwordHash": hash_password("first-pass")}}
        )

        with pytest.raises(Unauthorized):
            await accounts.change_password(
                member, PasswordChangeRequest(current_password="guess-pass", new_password="second-pass")
            )
        await accounts.change_password(
            member, PasswordChangeRequest(current_password="first-pass", new_password="second-pass")
        )

        stored = await database["users"].find_one({"_id": ObjectId(member.user_id)})
        assert verify_password(stored["passwordHash"], "second-pass")

    @pytest.mark.asyncio
    async def test_google_account_sets_first_password(self, accounts, database, insert_user):
        user = await insert_user(make_user(UserRole.MEMBER, "gia@example.com"))

        result = await accounts.change_password(user, PasswordChangeRequest(new_password="brand-new-pass"))

        assert result["message"] == "Password updated successfully"
        stored = await database["users"].find_one({"_id": ObjectId(user.user_id)})
        assert verify_password(stored["passwordHash"], "brand-new-pass")
        assert (await accounts.get_settings(user))["security"]["hasPassword"] is True

    def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            PasswordChangeRequest(current_password="x", new_password="short")
