"""
# Authentication Routes

- `POST /api/auth/register` - Email/password account, returns `{token, user}`
- `POST /api/auth/login` - Password login
- `POST /api/auth/google` - Google sign-in; `201` when the account is new
- `GET /api/auth/me` - The caller's stored profile
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.user_models import (
    AuthResponse,
    CurrentUser,
    GoogleAuthRequest,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)
from clubsphere.routes.auth.dependencies import get_current_user_dep
from clubsphere.routes.dependencies import get_auth_service
from clubsphere.services.auth_service import AuthService

logger = get_logger(prefix="[Auth Routes]")

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """
    Register a new account.

    Raises:
        HTTPException(409): The email is already registered.
    """
    try:
        return await service.register(request)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration failed for {request.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    try:
        return await service.login(request)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login failed for {request.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/google", response_model=AuthResponse)
async def google_sign_in(
    request: GoogleAuthRequest, response: Response, service: AuthService = Depends(get_auth_service)
):
    """
    Sign in with Google.

    New accounts are created with the `member` role and answered with `201`.
    """
    try:
        auth, created = await service.google_sign_in(request)
        if created:
            response.status_code = status.HTTP_201_CREATED
        return auth
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Google sign-in failed for {request.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/me", response_model=UserResponse)
async def me(
    current_user: CurrentUser = Depends(get_current_user_dep), service: AuthService = Depends(get_auth_service)
):
    try:
        return await service.get_user(current_user.user_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Profile lookup failed for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
