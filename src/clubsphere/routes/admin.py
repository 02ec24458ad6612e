"""
# Admin Routes

Platform moderation. Every endpoint requires the `admin` role.

### Users
- `GET /api/admin/users` - Paginated, with `search` and `role`
- `PUT /api/admin/users/{user_id}/role` - Change a role
- `DELETE /api/admin/users/{user_id}` - Remove an account; its history stays

### Clubs
- `GET /api/admin/clubs` - All clubs; pending deletion requests are flagged
- `GET /api/admin/clubs/stats` - Pending, active and new-this-month counts
- `POST /api/admin/clubs` - Create an active club for a registered manager
- `GET`, `PUT /api/admin/clubs/{club_id}` - Any club; edits may change status and manager
- `PUT /api/admin/clubs/{club_id}/approve` / `reject` - Moderate a new club
- `PUT /api/admin/clubs/{club_id}/approve-deletion` - Run the deletion cascade
- `PUT /api/admin/clubs/{club_id}/reject-deletion` - Clear the deletion request

### Events
- `GET /api/admin/events` - All events, with `search`, `status` and `type` (all/paid/free)
- `GET /api/admin/events/stats` - Totals, upcoming count and event revenue
- `POST /api/admin/events`, `GET`, `PUT`, `DELETE /api/admin/events/{event_id}` - Any club's events;
  deleting removes the registrations first

### Categories
- `GET`, `POST /api/admin/categories`, `DELETE /api/admin/categories/{category_id}`

### Finances
- `GET /api/admin/finances` - Transaction ledger with totals
- `GET /api/admin/finances/stats` - Ledger totals without filters
- `GET /api/admin/dashboard/stats` - Headline counts

A failed deletion cascade answers `502` with the failed step and the steps already
applied:

```json
{"detail": {"message": "...", "failedStep": "delete_memberships",
            "completedSteps": ["resolve_events", "delete_registrations", "delete_events"]}}
```
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from clubsphere.errors import CascadeDeletionError, ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import (
    AdminCreateClubRequest,
    AdminUpdateClubRequest,
    CascadeDeletionResponse,
    CategoryCreateRequest,
    ClubStatus,
    CreateEventRequest,
    DeletionRequestResponse,
    EventFeeFilter,
    EventStatus,
    UpdateEventRequest,
)
from clubsphere.models.enrollment_models import TransactionStatus, TransactionType
from clubsphere.models.user_models import CurrentUser, RoleUpdateRequest, UserRole
from clubsphere.routes.auth.dependencies import require_admin
from clubsphere.routes.dependencies import get_admin_service, get_deletion_service, get_management_service
from clubsphere.services.admin_service import AdminService
from clubsphere.services.club_deletion_service import ClubDeletionService
from clubsphere.services.club_management_service import ClubManagementService

logger = get_logger(prefix="[Admin Routes]")

router = APIRouter(prefix="/admin", tags=["Admin"])


# Users


@router.get("/users")
async def list_users(
    search: str = Query(""),
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.list_users(search=search, role=role, page=page, limit=limit)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list users: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list users")


@router.put("/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        user = await service.update_role(admin, user_id, request.role)
        return {"message": "User role updated successfully", "user": user}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update role of user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update user role")


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.delete_user(admin, user_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete user")


# Clubs


@router.get("/clubs")
async def list_clubs(
    club_status: Optional[ClubStatus] = Query(None, alias="status"),
    search: str = Query(""),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.list_clubs(status=club_status, search=search, page=page, limit=limit)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list clubs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list clubs")


@router.get("/clubs/stats")
async def club_stats(
    admin: CurrentUser = Depends(require_admin), service: AdminService = Depends(get_admin_service)
):
    try:
        return await service.club_stats()
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load club stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load club stats")


@router.post("/clubs", status_code=status.HTTP_201_CREATED)
async def create_club(
    request: AdminCreateClubRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """
    Create an active club for a registered manager.

    Raises:
        HTTPException(400): The manager email belongs to no user.
    """
    try:
        club = await service.create_club(admin, request)
        return {"message": "Club created successfully", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create club {request.name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create club")


@router.get("/clubs/{club_id}")
async def get_club(
    club_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return {"club": await service.get_club(club_id)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load club")


@router.put("/clubs/{club_id}")
async def update_club(
    club_id: str,
    request: AdminUpdateClubRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        club = await service.update_club(admin, club_id, request)
        return {"message": "Club updated successfully", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update club")


@router.put("/clubs/{club_id}/approve")
async def approve_club(
    club_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        club = await service.approve_club(admin, club_id)
        return {"message": "Club approved successfully", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to approve club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to approve club")


@router.put("/clubs/{club_id}/reject")
async def reject_club(
    club_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        club = await service.reject_club(admin, club_id)
        return {"message": "Club rejected successfully", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to reject club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reject club")


@router.put("/clubs/{club_id}/approve-deletion", response_model=CascadeDeletionResponse)
async def approve_club_deletion(
    club_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: ClubDeletionService = Depends(get_deletion_service),
):
    """
    Approve a pending deletion request and remove the club with its events,
    registrations and memberships.

    Raises:
        HTTPException(404): Unknown club.
        HTTPException(412): No pending deletion request.
        HTTPException(502): A cascade step failed. Retrying is safe.
    """
    try:
        return await service.approve_deletion(admin, club_id)
    except CascadeDeletionError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"message": e.message, "failedStep": e.failed_step, "completedSteps": e.completed_steps},
        )
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to approve deletion of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to approve club deletion")


@router.put("/clubs/{club_id}/reject-deletion", response_model=DeletionRequestResponse)
async def reject_club_deletion(
    club_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: ClubDeletionService = Depends(get_deletion_service),
):
    try:
        return await service.reject_deletion(admin, club_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to reject deletion of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reject club deletion")


# Events


@router.get("/events/stats")
async def event_stats(
    admin: CurrentUser = Depends(require_admin), service: AdminService = Depends(get_admin_service)
):
    try:
        return await service.event_stats()
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load event stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load event stats")


@router.get("/events")
async def list_events(
    search: str = Query(""),
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    fee_filter: EventFeeFilter = Query(EventFeeFilter.ALL, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.list_events(
            search=search, status=event_status, fee_filter=fee_filter, page=page, limit=limit
        )
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list events")


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    request: CreateEventRequest,
    admin: CurrentUser = Depends(require_admin),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        event = await service.create_event(admin, request)
        return {"message": "Event created successfully", "event": event}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create event {request.name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create event")


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return {"event": await service.get_event(admin, event_id)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load event")


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    request: UpdateEventRequest,
    admin: CurrentUser = Depends(require_admin),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        event = await service.update_event(admin, event_id, request)
        return {"message": "Event updated successfully", "event": event}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update event")


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: ClubManagementService = Depends(get_management_service),
):
    """Delete an event and its registrations."""
    try:
        return await service.delete_event(admin, event_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete event")


# Categories


@router.get("/categories")
async def list_categories(
    admin: CurrentUser = Depends(require_admin), service: AdminService = Depends(get_admin_service)
):
    try:
        return {"categories": await service.list_categories()}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list categories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list categories")


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CategoryCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        category = await service.create_category(admin, request)
        return {"message": "Category created successfully", "category": category}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create category {request.name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create category")


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.delete_category(admin, category_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete category {category_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete category")


# Finances


@router.get("/finances")
async def finances(
    search: str = Query(""),
    transaction_status: Optional[TransactionStatus] = Query(None, alias="status"),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    try:
        return await service.finances(
            search=search,
            status=transaction_status,
            transaction_type=transaction_type.value if transaction_type else None,
            page=page,
            limit=limit,
        )
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load finances: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load finances")


@router.get("/finances/stats")
async def finance_stats(
    admin: CurrentUser = Depends(require_admin), service: AdminService = Depends(get_admin_service)
):
    try:
        return await service.finance_stats()
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load finance stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load finance stats")


@router.get("/dashboard/stats")
async def dashboard_stats(
    admin: CurrentUser = Depends(require_admin), service: AdminService = Depends(get_admin_service)
):
    try:
        return await service.dashboard_stats()
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load dashboard stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load dashboard stats")
