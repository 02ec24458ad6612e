"""
# Manager Area Routes

Club managers administer the clubs they own (matched by email) and those clubs' events.

### Clubs
- `GET /api/manager/clubs` - Owned clubs
- `POST /api/manager/clubs` - Create a club (starts `pending`)
- `PUT /api/manager/clubs/{club_id}` - Update editable fields
- `DELETE /api/manager/clubs/{club_id}` - Request deletion (an admin must approve)
- `GET /api/manager/clubs/{club_id}/members` - Members with status bands

### Events
- `GET /api/manager/events` - Events of owned clubs
- `POST /api/manager/events` - Create
- `PUT /api/manager/events/{event_id}` - Update
- `DELETE /api/manager/events/{event_id}` - Delete with its registrations
- `GET /api/manager/events/{event_id}/registrations` - Attendees
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import (
    CreateClubRequest,
    CreateEventRequest,
    DeletionRequestResponse,
    UpdateClubRequest,
    UpdateEventRequest,
)
from clubsphere.models.enrollment_models import RegistrationStatus
from clubsphere.models.user_models import CurrentUser
from clubsphere.routes.auth.dependencies import require_manager
from clubsphere.routes.dependencies import get_deletion_service, get_management_service
from clubsphere.services.club_deletion_service import ClubDeletionService
from clubsphere.services.club_management_service import ClubManagementService

logger = get_logger(prefix="[Manager Routes]")

router = APIRouter(prefix="/manager", tags=["Manager"])


# Clubs


@router.get("/clubs")
async def list_owned_clubs(
    search: str = Query(""),
    category: str = Query(""),
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return {"clubs": await service.list_clubs(manager, search=search, category=category)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list clubs of {manager.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list clubs")


@router.post("/clubs", status_code=status.HTTP_201_CREATED)
async def create_club(
    request: CreateClubRequest,
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    """Create a club. It is hidden from the catalog until an admin approves it."""
    try:
        club = await service.create_club(manager, request)
        return {"message": "Club created and awaiting approval", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create club for {manager.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create club")


@router.put("/clubs/{club_id}")
async def update_club(
    club_id: str,
    request: UpdateClubRequest,
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        club = await service.update_club(manager, club_id, request)
        return {"message": "Club updated successfully", "club": club}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update club")


@router.delete("/clubs/{club_id}", response_model=DeletionRequestResponse)
async def request_club_deletion(
    club_id: str,
    manager: CurrentUser = Depends(require_manager),
    service: ClubDeletionService = Depends(get_deletion_service),
):
    """
    Ask an admin to delete the club.

    Raises:
        HTTPException(403): The caller does not manage the club.
        HTTPException(409): A request is already pending.
    """
    try:
        return await service.request_deletion(manager, club_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to request deletion of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to request club deletion")


@router.get("/clubs/{club_id}/members")
async def club_members(
    club_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return await service.club_members(manager, club_id, page=page, limit=limit, search=search)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load members of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load members")


# Events


@router.get("/events")
async def list_owned_events(
    search: str = Query(""),
    when: str = Query("all", pattern="^(all|upcoming|past)$", alias="filter"),
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return {"events": await service.list_events(manager, search=search, when=when)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list events of {manager.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list events")


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    request: CreateEventRequest,
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        event = await service.create_event(manager, request)
        return {"message": "Event created successfully", "event": event}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create event for club {request.club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create event")


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    request: UpdateEventRequest,
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        event = await service.update_event(manager, event_id, request)
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
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return await service.delete_event(manager, event_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete event")


@router.get("/events/{event_id}/registrations")
async def event_registrations(
    event_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    registration_status: Optional[RegistrationStatus] = Query(None, alias="status"),
    manager: CurrentUser = Depends(require_manager),
    service: ClubManagementService = Depends(get_management_service),
):
    try:
        return await service.event_registrations(
            manager, event_id, page=page, limit=limit, status=registration_status
        )
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load registrations of event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load registrations")
