"""
# Member Area Routes

Endpoints for the signed-in user's discovery feed, memberships, registrations,
payments and account settings.

- `GET /api/member/discover` - Club picks with `isJoined`, upcoming events, category counts
- `GET /api/member/clubs` - Memberships with status bands (`status`: All/Active/Expired/Pending)
- `GET /api/member/events` - Registrations by tab (`upcoming`, `waitlist`, `past`, `cancelled`)
- `DELETE /api/member/events/{registration_id}/cancel` - Cancel a registration
- `GET /api/member/payments` - Transaction history
- `GET /api/member/settings` - Profile, notification switches and security flags
- `PUT /api/member/settings/profile` - Edit the profile; an email change returns a new token
- `PUT /api/member/settings/password` - Change (or first set) the password
- `PUT /api/member/settings/notifications`, `PUT /api/member/settings/security/2fa`
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.enrollment_models import CancellationResult
from clubsphere.models.user_models import (
    CurrentUser,
    NotificationPreferences,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    TwoFactorUpdateRequest,
)
from clubsphere.routes.auth.dependencies import get_current_user_dep
from clubsphere.routes.dependencies import get_account_service, get_enrollment_service, get_member_service
from clubsphere.services.account_service import AccountService
from clubsphere.services.enrollment_service import EnrollmentService
from clubsphere.services.member_service import DiscoverFilter, EventTab, MemberService, MembershipFilter

logger = get_logger(prefix="[Member Routes]")

router = APIRouter(prefix="/member", tags=["Member"])


@router.get("/discover")
async def discover(
    search: str = Query(""),
    category: str = Query(""),
    feed: DiscoverFilter = Query(DiscoverFilter.ALL, alias="filter"),
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: MemberService = Depends(get_member_service),
):
    """Club picks, this week's events (or today's with `filter=today`) and category counts."""
    try:
        return await service.discover(current_user, search=search, category=category, feed=feed)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load discover feed for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load discover feed")


@router.get("/clubs")
async def my_clubs(
    status: MembershipFilter = Query(MembershipFilter.ALL),
    search: str = Query(""),
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: MemberService = Depends(get_member_service),
):
    """
    The caller's memberships joined with their clubs.

    `status` filters on the derived band: an `active` membership past its expiry is
    listed under `Expired`, one expiring within a day under `Active` with band `renew_soon`.
    """
    try:
        return {"memberships": await service.my_clubs(current_user, status=status, search=search)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load clubs for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load memberships")


@router.get("/events")
async def my_events(
    tab: EventTab = Query(EventTab.UPCOMING),
    search: str = Query(""),
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: MemberService = Depends(get_member_service),
):
    try:
        return await service.my_events(current_user, tab=tab, search=search)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load events for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load registrations")


@router.delete("/events/{registration_id}/cancel", response_model=CancellationResult)
async def cancel_registration(
    registration_id: str,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Cancel one of the caller's registrations.

    Raises:
        HTTPException(404): Unknown registration or owned by someone else.
        HTTPException(409): Already cancelled.
        HTTPException(412): The event date has passed.
    """
    try:
        return await service.cancel_registration(current_user, registration_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to cancel registration {registration_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to cancel registration")


@router.get("/payments")
async def my_payments(
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: MemberService = Depends(get_member_service),
):
    try:
        return await service.my_payments(current_user, limit=limit)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load payments for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load payments")


# Settings


@router.get("/settings")
async def get_settings(
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: AccountService = Depends(get_account_service),
):
    try:
        return await service.get_settings(current_user)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load settings for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load settings")


@router.put("/settings/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: AccountService = Depends(get_account_service),
):
    """
    Edit the caller's profile. An email change answers with a new `token`.

    Raises:
        HTTPException(409): The new email belongs to another account.
    """
    try:
        result = await service.update_profile(current_user, request)
        return {"message": "Profile updated successfully", **result}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update profile of {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update profile")


@router.put("/settings/password")
async def change_password(
    request: PasswordChangeRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: AccountService = Depends(get_account_service),
):
    try:
        return await service.change_password(current_user, request)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to change password of {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to change password")


@router.put("/settings/notifications")
async def update_notifications(
    request: NotificationPreferences,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: AccountService = Depends(get_account_service),
):
    try:
        result = await service.update_notifications(current_user, request)
        return {"message": "Notification preferences updated", **result}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update notifications of {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update notification preferences")


@router.put("/settings/security/2fa")
async def update_two_factor(
    request: TwoFactorUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: AccountService = Depends(get_account_service),
):
    try:
        return await service.update_two_factor(current_user, request)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update two-factor flag of {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update two-factor setting")
