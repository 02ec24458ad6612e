"""
# Domain Errors

Exception hierarchy for the ClubSphere lifecycle and catalog services.

Services raise these; routers translate them into `HTTPException` using the
`status_code` carried by each class:

```python
try:
    membership = await service.join_club_free(user, club_id)
except ClubSphereError as e:
    raise HTTPException(status_code=e.status_code, detail=e.message)
```

| Exception | HTTP |
|---|---|
| `ValidationFailed` | 400 |
| `Unauthorized` | 401 |
| `PaymentIncomplete` | 402 |
| `Forbidden` | 403 |
| `NotFound` | 404 |
| `Conflict` / `PaymentMismatch` | 409 |
| `PreconditionFailed` / `WrongPaymentPath` | 412 |
| `UpstreamFailure` / `CascadeDeletionError` | 502 |
"""

from typing import List, Optional


class ClubSphereError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ClubSphereError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ClubSphereError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ClubSphereError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ClubSphereError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(ClubSphereError):
    """Duplicate relationship, capacity exhausted, repeated transition."""

    status_code = 409
    default_message = "Conflicting state"


class PreconditionFailed(ClubSphereError):
    """Target unavailable, event already past, or a missing pending request."""

    status_code = 412
    default_message = "Precondition failed"


class WrongPaymentPath(PreconditionFailed):
    """Free target sent to the paid path, or paid target sent to the free path."""

    default_message = "Wrong payment path for this target"


class PaymentIncomplete(PreconditionFailed):
    status_code = 402
    default_message = "Payment not completed"


class PaymentMismatch(Conflict):
    """Retrieved intent metadata does not match the confirmation request."""

    default_message = "Payment does not match this request"


class UpstreamFailure(ClubSphereError):
    """Storage or payment provider unreachable or erroring."""

    status_code = 502
    default_message = "Upstream service failure"


class CascadeDeletionError(UpstreamFailure):
    """
    A step of the club deletion cascade failed.

    The steps already applied are not rolled back. Re-running the approval
    finishes the cascade since every step is an idempotent delete.

    Attributes:
        failed_step: Name of the step that raised.
        completed_steps: Names of the steps that finished before the failure.
    """

    default_message = "Club deletion did not complete"

    def __init__(self, failed_step: str, completed_steps: List[str], message: Optional[str] = None):
        self.failed_step = failed_step
        self.completed_steps = list(completed_steps)
        super().__init__(message or f"Club deletion failed at step '{failed_step}'; safe to retry")
