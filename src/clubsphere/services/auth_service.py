"""
# Authentication Service

Identity and access for ClubSphere.

- **Passwords**: Argon2id via `argon2-cffi`. Accounts carried over from the previous
  platform hold a bcrypt hash in `password`; it is checked with `bcrypt` and replaced by
  an Argon2id `passwordHash` on the first successful login.
- **Tokens**: HS256 JWTs signed with `SECRET_KEY` carrying `{userId, email, role, exp}`.
  `verify_token()` turns a bearer token into a `CurrentUser`; `authorize()` gates roles.
- **Google sign-in**: the client obtains a Firebase id token; when a Firebase service
  account is configured the token is verified with `firebase-admin`. Without one the
  server trusts the client-supplied email and logs a warning.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
import firebase_admin
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError
from jose import JWTError, jwt
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from clubsphere.config import settings
from clubsphere.database.guards import storage_guard
from clubsphere.database.identifiers import to_object_id
from clubsphere.errors import Conflict, Forbidden, NotFound, Unauthorized, UpstreamFailure
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.user_models import (
    AuthProvider,
    AuthResponse,
    CurrentUser,
    GoogleAuthRequest,
    LoginRequest,
    RegisterRequest,
    UserResponse,
    UserRole,
)
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[Auth]")

PASSWORD_HASHER = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return PASSWORD_HASHER.hash(password)


LEGACY_HASH_PREFIXES = ("$2a$", "$2b$", "$2y$")


def is_legacy_hash(hashed: str) -> bool:
    return hashed.startswith(LEGACY_HASH_PREFIXES)


def verify_password(hashed: str, password: str) -> bool:
    """Return `True` when `password` matches `hashed`, an Argon2id or legacy bcrypt hash."""
    if is_legacy_hash(hashed):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return PASSWORD_HASHER.verify(hashed, password)
    except (VerificationError, InvalidHashError):
        return False


def stored_password_hash(user: Dict[str, Any]) -> Optional[str]:
    """The user's password hash: `passwordHash`, or the legacy bcrypt `password` field."""
    return user.get("passwordHash") or user.get("password")


def needs_rehash(hashed: str) -> bool:
    return is_legacy_hash(hashed) or PASSWORD_HASHER.check_needs_rehash(hashed)


def create_access_token(user_id: str, email: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed session token.

    Args:
        user_id: User document id as a string.
        email: User email.
        role: One of `admin`, `clubManager`, `member`.
        expires_delta: Lifetime override. Defaults to `ACCESS_TOKEN_EXPIRE_DAYS`.

    Returns:
        str: The encoded JWT.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS))
    claims = {"userId": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> CurrentUser:
    """
    Decode and validate a session token.

    Raises:
        Unauthorized: Missing, malformed, expired or tampered token, or unknown role.
    """
    if not token:
        raise Unauthorized("No token provided")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise Unauthorized("Invalid or expired token") from e
    try:
        return CurrentUser(user_id=payload["userId"], email=payload["email"], role=payload["role"])
    except (KeyError, ValidationError) as e:
        logger.warning(f"Token with malformed claims: {e}")
        raise Unauthorized("Invalid token claims") from e


def authorize(user: CurrentUser, *required_roles: UserRole) -> CurrentUser:
    """
    Require the caller to hold one of `required_roles`.

    Raises:
        Forbidden: The caller's role is not listed.
    """
    if user.role not in required_roles:
        logger.warning(f"Role {user.role.value} denied; requires {[r.value for r in required_roles]}")
        raise Forbidden("Insufficient permissions")
    return user


def public_user(user: Dict[str, Any]) -> UserResponse:
    """Project a stored user for API output. The password hash is never included."""
    return UserResponse(
        id=str(user["_id"]),
        email=user["email"],
        name=user.get("name", ""),
        role=user.get("role", UserRole.MEMBER.value),
        photo_url=user.get("photoURL"),
        auth_provider=user.get("authProvider"),
        created_at=user.get("createdAt"),
    )


class FirebaseVerifier:
    """Verifies Google sign-in id tokens through Firebase Admin."""

    def __init__(self, service_account_json: Optional[str] = None):
        self._service_account_json = service_account_json
        self._app: Optional[firebase_admin.App] = None

    @property
    def enabled(self) -> bool:
        return bool(self._service_account_json)

    def _get_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app()
            except ValueError:
                certificate = credentials.Certificate(json.loads(self._service_account_json))
                self._app = firebase_admin.initialize_app(certificate)
                logger.info("Firebase Admin initialised")
        return self._app

    async def verify(self, id_token: str) -> Dict[str, Any]:
        """
        Verify an id token and return its decoded claims.

        Raises:
            Unauthorized: The token is invalid, expired or revoked.
            UpstreamFailure: Firebase could not be reached.
        """
        try:
            return await asyncio.to_thread(firebase_auth.verify_id_token, id_token, self._get_app())
        except (firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError, ValueError) as e:
            logger.warning(f"Invalid Google id token: {e}")
            raise Unauthorized("Invalid Google token") from e
        except FirebaseError as e:
            logger.error(f"Firebase verification failed: {e}", exc_info=True)
            raise UpstreamFailure("Google sign-in is unavailable") from e


def default_firebase_verifier() -> FirebaseVerifier:
    key = settings.FIREBASE_SERVICE_ACCOUNT_KEY
    return FirebaseVerifier(key.get_secret_value() if settings.firebase_enabled else None)


class AuthService:
    """Registration, login and Google sign-in against the `users` collection."""

    def __init__(self, database: AsyncIOMotorDatabase, firebase: Optional[FirebaseVerifier] = None):
        self.users = database["users"]
        self.firebase = firebase or default_firebase_verifier()

    def _issue(self, user: Dict[str, Any]) -> AuthResponse:
        token = create_access_token(str(user["_id"]), user["email"], user.get("role", UserRole.MEMBER.value))
        return AuthResponse(token=token, user=public_user(user))

    @storage_guard("registration")
    async def register(self, request: RegisterRequest) -> AuthResponse:
        """
        Create a password account.

        Raises:
            Conflict: The email is already registered.
        """
        email = request.email.lower()
        if await self.users.find_one({"email": email}):
            raise Conflict("User already exists")

        now = utcnow()
        user = {
            "email": email,
            "name": request.name,
            "passwordHash": hash_password(request.password),
            "role": request.role.value,
            "photoURL": request.photo_url,
            "authProvider": AuthProvider.PASSWORD.value,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            result = await self.users.insert_one(user)
        except DuplicateKeyError as e:
            raise Conflict("User already exists") from e
        user["_id"] = result.inserted_id

        logger.info(f"Registered user {email} with role {request.role.value}")
        return self._issue(user)

    @storage_guard("login")
    async def login(self, request: LoginRequest) -> AuthResponse:
        """
        Password login.

        Raises:
            Unauthorized: Unknown email, Google-only account or wrong password.
        """
        user = await self.users.find_one({"email": request.email.lower()})
        hashed = stored_password_hash(user) if user else None
        if not hashed or not verify_password(hashed, request.password):
            logger.warning(f"Failed login for {request.email}")
            raise Unauthorized("Invalid credentials")

        if needs_rehash(hashed):
            await self.users.update_one(
                {"_id": user["_id"]},
                {"$set": {"passwordHash": hash_password(request.password)}, "$unset": {"password": ""}},
            )
            if is_legacy_hash(hashed):
                logger.info(f"Upgraded legacy password hash of {user['email']}")

        logger.info(f"User {user['email']} logged in")
        return self._issue(user)

    @storage_guard("google sign-in")
    async def google_sign_in(self, request: GoogleAuthRequest) -> Tuple[AuthResponse, bool]:
        """
        Sign in (or sign up) with a Google account.

        Returns:
            Tuple[AuthResponse, bool]: The session and whether a new user was created.

        Raises:
            Unauthorized: The verified token belongs to another email.
        """
        email = request.email.lower()
        if self.firebase.enabled:
            claims = await self.firebase.verify(request.id_token)
            if (claims.get("email") or "").lower() != email:
                logger.warning(f"Google token email mismatch for {email}")
                raise Unauthorized("Google token does not match email")
        else:
            logger.warning(f"Firebase not configured; trusting client-supplied email {email}")

        user = await self.users.find_one({"email": email})
        created = False
        if not user:
            now = utcnow()
            user = {
                "email": email,
                "name": request.name or email.split("@")[0],
                "photoURL": request.photo_url,
                "role": UserRole.MEMBER.value,
                "authProvider": AuthProvider.GOOGLE.value,
                "createdAt": now,
                "updatedAt": now,
            }
            try:
                result = await self.users.insert_one(user)
            except DuplicateKeyError:
                user = await self.users.find_one({"email": email})
            else:
                user["_id"] = result.inserted_id
                created = True
                logger.info(f"Created Google user {email}")
        elif request.photo_url and request.photo_url != user.get("photoURL"):
            await self.users.update_one(
                {"_id": user["_id"]}, {"$set": {"photoURL": request.photo_url, "updatedAt": utcnow()}}
            )
            user["photoURL"] = request.photo_url

        return self._issue(user), created

    @storage_guard("profile lookup")
    async def get_user(self, user_id: str) -> UserResponse:
        oid = to_object_id(user_id)
        user = await self.users.find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFound("User not found")
        return public_user(user)
