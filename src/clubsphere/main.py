"""
# ClubSphere API Application

FastAPI application for the ClubSphere club-management and event-registration platform.

## Lifespan

Startup:
1. Connect to MongoDB (`db_manager.connect()`), detecting transaction support.
2. Create the collection indexes, including the sparse unique indexes that enforce one
   live membership or registration per user and target.
3. Seed the default club categories when the collection is empty.

Shutdown disconnects from MongoDB.

## Routers

All routers are mounted under `/api`: `auth`, `clubs`, `events`, `categories`,
`member`, `manager`, `admin`, `payments`. `/health` reports database connectivity and
`/metrics` exposes Prometheus metrics.

## Running

```bash
uvicorn clubsphere.main:app --reload --host 0.0.0.0 --port 8000
```
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from clubsphere import __version__
from clubsphere.config import settings
from clubsphere.database import db_manager
from clubsphere.managers.logging_manager import get_logger
from clubsphere.routes import (
    admin_router,
    auth_router,
    categories_router,
    clubs_router,
    events_router,
    manager_router,
    member_router,
    payments_router,
)

logger = get_logger(prefix="[Main]")

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Connect storage before serving and release it on shutdown.

    Raises:
        ConnectionError: MongoDB could not be reached after retries.
    """
    startup_start_time = time.time()
    logger.info(f"Starting ClubSphere API {__version__} (debug={settings.DEBUG})")

    await db_manager.connect()
    await db_manager.create_indexes()
    seeded = await db_manager.seed_default_categories()
    if seeded:
        logger.info(f"Seeded {seeded} default categories")

    logger.info(f"Startup completed in {time.time() - startup_start_time:.3f}s")
    try:
        yield
    finally:
        logger.info("Shutting down ClubSphere API...")
        await db_manager.disconnect()
        logger.info("Shutdown complete")


app = FastAPI(
    title="ClubSphere API",
    description="Club membership, event registration, payments and moderation.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

routers_config = [
    ("auth", auth_router),
    ("clubs", clubs_router),
    ("events", events_router),
    ("categories", categories_router),
    ("member", member_router),
    ("manager", manager_router),
    ("admin", admin_router),
    ("payments", payments_router),
]

for router_name, router in routers_config:
    app.include_router(router, prefix=API_PREFIX)
    logger.debug(f"Included {router_name} router")


@app.get("/health", tags=["System"])
async def health():
    """Liveness plus database connectivity."""
    database_ok = await db_manager.health_check()
    return {"status": "ok" if database_ok else "degraded", "database": database_ok, "version": __version__}


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
).instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")


if __name__ == "__main__":
    uvicorn.run("clubsphere.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
