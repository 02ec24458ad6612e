"""
User and authentication models.

Three roles exist: `admin`, `clubManager` and `member`. A user's role only changes
through the admin role-update endpoint.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from clubsphere.models.base import CamelModel


class UserRole(str, Enum):
    ADMIN = "admin"
    CLUB_MANAGER = "clubManager"
    MEMBER = "member"


class AuthProvider(str, Enum):
    PASSWORD = "password"
    GOOGLE = "google"


class CurrentUser(CamelModel):
    """Verified token claims of the caller."""

    user_id: str = Field(..., description="User document id as a string")
    email: EmailStr
    role: UserRole


class RegisterRequest(CamelModel):
    """
    Email/password registration.

    Example:
        {"email": "ana@example.com", "password": "s3cret-pass", "name": "Ana", "role": "member"}
    """

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.MEMBER
    photo_url: Optional[str] = Field(None, alias="photoURL")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class GoogleAuthRequest(CamelModel):
    """Google sign-in with a Firebase id token obtained by the client."""

    id_token: str = Field(..., min_length=1)
    email: EmailStr
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")


class RoleUpdateRequest(CamelModel):
    role: UserRole


class ProfileUpdateRequest(CamelModel):
    """Self-service profile edit. Omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=200)
    username: Optional[str] = Field(None, min_length=1, max_length=60)


class PasswordChangeRequest(CamelModel):
    current_password: str = ""
    new_password: str = Field(..., min_length=8, max_length=128)


class NotificationPreferences(CamelModel):
    """Notification switches. A switch omitted from an update is turned off."""

    email_digests: bool = False
    event_reminders: bool = False
    new_club_alerts: bool = False


class TwoFactorUpdateRequest(CamelModel):
    enabled: bool


class UserResponse(CamelModel):
    """Public view of a user. Never carries the password hash."""

    id: str
    email: EmailStr
    name: str = ""
    role: UserRole
    photo_url: Optional[str] = Field(None, alias="photoURL")
    auth_provider: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    user: UserResponse
