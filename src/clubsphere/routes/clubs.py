"""
# Club Catalog Routes

Public, read-only club endpoints.

- `GET /api/clubs` - Active clubs with search, category filter, sort and pagination
- `GET /api/clubs/featured` - Most popular active clubs
- `GET /api/clubs/{club_id}` - Club details with the upcoming event count
- `GET /api/clubs/{club_id}/events` - Upcoming events of a club
- `GET /api/clubs/{club_id}/membership` - The caller's membership, if signed in

```python
await client.get("/api/clubs", params={"search": "chess", "category": "gaming", "sort": "members"})
```
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.club_models import ClubSort
from clubsphere.models.user_models import CurrentUser
from clubsphere.routes.auth.dependencies import get_optional_user
from clubsphere.routes.dependencies import get_catalog_service
from clubsphere.services.catalog_service import CatalogService

logger = get_logger(prefix="[Club Routes]")

router = APIRouter(prefix="/clubs", tags=["Clubs"])


@router.get("")
async def list_clubs(
    search: str = Query("", description="Case-insensitive match on name, description or location"),
    category: str = Query("", description="Category name, or `all`"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    sort: ClubSort = Query(ClubSort.NEWEST),
    service: CatalogService = Depends(get_catalog_service),
):
    """List publicly visible clubs."""
    try:
        return await service.list_clubs(search=search, category=category, page=page, limit=limit, sort=sort)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list clubs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list clubs")


@router.get("/featured")
async def featured_clubs(
    limit: int = Query(6, ge=1, le=50), service: CatalogService = Depends(get_catalog_service)
):
    try:
        return {"clubs": await service.featured_clubs(limit=limit)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load featured clubs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load featured clubs")


@router.get("/{club_id}")
async def get_club(club_id: str, service: CatalogService = Depends(get_catalog_service)):
    """
    Club details.

    Raises:
        HTTPException(404): Invalid or unknown club id.
    """
    try:
        return await service.get_club(club_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load club")


@router.get("/{club_id}/events")
async def club_events(
    club_id: str,
    limit: int = Query(10, ge=1, le=100),
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return {"events": await service.club_events(club_id, limit=limit)}
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load events of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load club events")


@router.get("/{club_id}/membership")
async def club_membership(
    club_id: str,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """`{isMember, membership}` for the caller. Anonymous callers are never members."""
    try:
        return await service.membership_for(current_user.user_id if current_user else None, club_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to check membership of club {club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to check membership")
