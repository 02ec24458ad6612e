"""
# Event Catalog Routes

- `GET /api/events` - Active events with search, club filter and pagination
- `GET /api/events/upcoming` - Active events dated today or later
- `GET /api/events/{event_id}` - Event details with the registered count
- `GET /api/categories` - Club categories
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.routes.dependencies import get_catalog_service
from clubsphere.services.catalog_service import CatalogService

logger = get_logger(prefix="[Event Routes]")

router = APIRouter(prefix="/events", tags=["Events"])
categories_router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("")
async def list_events(
    search: str = Query(""),
    club_id: str = Query("", alias="clubId"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    upcoming_only: bool = Query(True, alias="upcomingOnly"),
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.list_events(
            search=search, club_id=club_id, page=page, limit=limit, upcoming_only=upcoming_only
        )
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list events")


@router.get("/upcoming")
async def upcoming_events(
    limit: int = Query(6, ge=1, le=50), service: CatalogService = Depends(get_catalog_service)
):
    """Events whose calendar date is today or later, earliest first."""
    try:
        return {"events": await service.upcoming_events(limit=limit)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load upcoming events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load upcoming events")


@router.get("/{event_id}")
async def get_event(event_id: str, service: CatalogService = Depends(get_catalog_service)):
    try:
        return await service.get_event(event_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load event")


@categories_router.get("")
async def list_categories(service: CatalogService = Depends(get_catalog_service)):
    try:
        return {"categories": await service.list_categories()}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list categories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list categories")
