"""API routers. Every router is mounted under the `/api` prefix by `clubsphere.main`."""

from clubsphere.routes.admin import router as admin_router
from clubsphere.routes.auth.routes import router as auth_router
from clubsphere.routes.clubs import router as clubs_router
from clubsphere.routes.events import categories_router
from clubsphere.routes.events import router as events_router
from clubsphere.routes.manager import router as manager_router
from clubsphere.routes.member import router as member_router
from clubsphere.routes.payments import router as payments_router

__all__ = [
    "admin_router",
    "auth_router",
    "categories_router",
    "clubs_router",
    "events_router",
    "manager_router",
    "member_router",
    "payments_router",
]
