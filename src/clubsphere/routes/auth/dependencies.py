"""
# Authentication Dependencies

FastAPI dependencies that turn the `Authorization: Bearer <token>` header into a
`CurrentUser` and gate endpoints by role.

## Dependencies

- `get_current_user_dep`: requires a valid token, 401 otherwise.
- `get_optional_user`: `None` for anonymous callers, used by public endpoints that
  personalise their output. A bad token is still rejected.
- `require_roles(*roles)`: requires a valid token held by one of `roles`, 403 otherwise.
  `require_admin` and `require_manager` are the pre-configured
  instances used by the routers.

**Usage:**
```python
@router.get("/api/admin/users")
async def list_users(admin: CurrentUser = Depends(require_admin)):
    ...
```

Tokens are verified from their claims alone. The user document is not re-read on
every request.
"""

from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.user_models import CurrentUser, UserRole
from clubsphere.services.auth_service import authorize, verify_token

logger = get_logger(prefix="[Security Dependencies]")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user_dep(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """
    Verify the bearer token and return the caller.

    Raises:
        HTTPException(401): Missing, invalid or expired token.
    """
    try:
        return verify_token(token)
    except ClubSphereError as e:
        raise HTTPException(
            status_code=e.status_code, detail=e.message, headers={"WWW-Authenticate": "Bearer"}
        ) from e


async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[CurrentUser]:
    if not token:
        return None
    return await get_current_user_dep(token)


def require_roles(*roles: UserRole) -> Callable:
    """
    Build a dependency that admits only callers holding one of `roles`.

    Raises:
        HTTPException(401): Invalid token.
        HTTPException(403): The caller's role is not listed.
    """

    async def dependency(current_user: CurrentUser = Depends(get_current_user_dep)) -> CurrentUser:
        try:
            return authorize(current_user, *roles)
        except ClubSphereError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_manager = require_roles(UserRole.CLUB_MANAGER)
