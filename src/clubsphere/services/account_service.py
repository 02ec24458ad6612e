"""
Account Settings Service.

Self-service settings of the signed-in user: profile, password, notification
switches and the two-factor flag. Notification switches that were never saved
read as enabled.

Changing the email rewrites `managerEmail` on the clubs the user manages and
returns a fresh token, since the old one carries the previous address.
"""

from datetime import datetime
from typing import Any, Callable, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import to_object_id
from clubsphere.errors import Conflict, NotFound, Unauthorized
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.user_models import (
    CurrentUser,
    NotificationPreferences,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    TwoFactorUpdateRequest,
    UserRole,
)
from clubsphere.services.auth_service import (
    create_access_token,
    hash_password,
    public_user,
    stored_password_hash,
    verify_password,
)
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[Account]")

PROFILE_FIELDS = ("name", "photoURL", "bio", "location", "username")
NOTIFICATION_FIELDS = ("emailDigests", "eventReminders", "newClubAlerts")


class AccountService:
    def __init__(self, database: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.users = database["users"]
        self.clubs = database["clubs"]
        self.clock = clock

    async def _user(self, user: CurrentUser) -> Dict[str, Any]:
        oid = to_object_id(user.user_id)
        document = await self.users.find_one({"_id": oid}) if oid else None
        if not document:
            raise NotFound("User not found")
        return document

    @storage_guard("settings lookup")
    async def get_settings(self, user: CurrentUser) -> Dict[str, Any]:
        document = await self._user(user)
        stored = document.get("notifications") or {}
        return {
            "profile": {
                "name": document.get("name", ""),
                "email": document["email"],
                "photoURL": document.get("photoURL"),
                "bio": document.get("bio", ""),
                "location": document.get("location", ""),
                "username": document.get("username", ""),
            },
            "notifications": {field: stored.get(field) is not False for field in NOTIFICATION_FIELDS},
            "security": {
                "twoFactorEnabled": bool(document.get("twoFactorEnabled")),
                "hasPassword": bool(stored_password_hash(document)),
            },
            "memberSince": document.get("createdAt"),
        }

    @storage_guard("profile update")
    async def update_profile(self, user: CurrentUser, request: ProfileUpdateRequest) -> Dict[str, Any]:
        """
        Apply a partial profile edit.

        Returns:
            Dict[str, Any]: `{user}`, plus `token` when the email changed.

        Raises:
            Conflict: The new email belongs to another account.
        """
        document = await self._user(user)
        data = request.model_dump(by_alias=True, exclude_none=True)
        changes = {field: data[field] for field in PROFILE_FIELDS if field in data}

        old_email = document["email"]
        new_email = request.email.lower() if request.email else old_email
        if new_email != old_email:
            if await self.users.find_one({"email": new_email, "_id": {"$ne": document["_id"]}}, {"_id": 1}):
                raise Conflict("Email is already in use")
            changes["email"] = new_email
        changes["updatedAt"] = self.clock()

        try:
            await self.users.update_one({"_id": document["_id"]}, {"$set": changes})
        except DuplicateKeyError as e:
            raise Conflict("Email is already in use") from e
        document.update(changes)

        result: Dict[str, Any] = {"user": public_user(document).model_dump(by_alias=True)}
        if new_email != old_email:
            moved = await self.clubs.update_many({"managerEmail": old_email}, {"$set": {"managerEmail": new_email}})
            logger.info(f"User {document['_id']} changed email; {moved.modified_count} managed clubs updated")
            result["token"] = create_access_token(
                str(document["_id"]), new_email, document.get("role", UserRole.MEMBER.value)
            )
        logger.info(f"Profile of {new_email} updated: {sorted(changes)}")
        return result

    @storage_guard("password change")
    async def change_password(self, user: CurrentUser, request: PasswordChangeRequest) -> Dict[str, str]:
        """
        Set a new password. Accounts that already have one must confirm it; Google-only
        accounts set their first password here.

        Raises:
            Unauthorized: The current password is wrong.
        """
        document = await self._user(user)
        hashed = stored_password_hash(document)
        if hashed and not verify_password(hashed, request.current_password):
            logger.warning(f"Password change for {document['email']} with a wrong current password")
            raise Unauthorized("Current password is incorrect")

        await self.users.update_one(
            {"_id": document["_id"]},
            {
                "$set": {"passwordHash": hash_password(request.new_password), "updatedAt": self.clock()},
                "$unset": {"password": ""},
            },
        )
        logger.info(f"Password of {document['email']} changed")
        return {"message": "Password updated successfully"}

    @storage_guard("notification update")
    async def update_notifications(self, user: CurrentUser, request: NotificationPreferences) -> Dict[str, Any]:
        document = await self._user(user)
        notifications = request.model_dump(by_alias=True)
        await self.users.update_one(
            {"_id": document["_id"]}, {"$set": {"notifications": notifications, "updatedAt": self.clock()}}
        )
        return {"notifications": notifications}

    @storage_guard("two-factor update")
    async def update_two_factor(self, user: CurrentUser, request: TwoFactorUpdateRequest) -> Dict[str, Any]:
        document = await self._user(user)
        await self.users.update_one(
            {"_id": document["_id"]}, {"$set": {"twoFactorEnabled": request.enabled, "updatedAt": self.clock()}}
        )
        logger.info(f"Two-factor flag of {document['email']} set to {request.enabled}")
        return {"twoFactorEnabled": request.enabled}
