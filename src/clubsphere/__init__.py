"""
# ClubSphere API

Backend for the ClubSphere club-management and event-registration platform.

Users discover clubs, join them, register for events and pay fees. Club
managers run their clubs and events, and administrators moderate clubs and
approve deletion requests.

## Package Layout

- **`config`**: `Settings` loaded from `.clubsphere` / `.env` / environment.
- **`database`**: Motor connection manager and identifier normalisation.
- **`models`**: pydantic documents, requests and responses.
- **`services`**: membership/registration lifecycle, cascading deletion,
  payment bridge, fee normalisation, authentication.
- **`routes`**: FastAPI routers (auth, catalog, member, manager, admin, payments).
- **`main`**: the FastAPI application and its lifespan.
"""

__version__ = "1.0.0"
