"""
# Club and Event Models

Request and response models for the club catalog, the manager area and the admin
moderation endpoints.

## Club Lifecycle

```
create (pending) --approve--> active
                 --reject---> rejected
active --deletion request--> active + deletionRequest{status: pending}
       --approve deletion--> removed together with events, registrations, memberships
       --reject deletion---> active (deletionRequest cleared)
```

## Fees

Fees in requests and responses are **major currency units** (e.g. `5.00`).
See `clubsphere.services.fees` for how legacy stored values are read.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from clubsphere.models.base import CamelModel


class ClubStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    INACTIVE = "inactive"


# Clubs in these states accept no joins
BLOCKING_CLUB_STATUSES = frozenset({ClubStatus.PENDING.value, ClubStatus.REJECTED.value, ClubStatus.INACTIVE.value})


class EventStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    DRAFT = "draft"


class DeletionRequestStatus(str, Enum):
    PENDING = "pending"


class EventFeeFilter(str, Enum):
    ALL = "all"
    PAID = "paid"
    FREE = "free"


class ClubSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    NAME = "name"
    MEMBERS = "members"


class CreateClubRequest(CamelModel):
    """
    Club creation by a manager. The club starts in `pending` until an admin approves it.

    Example:
        {"name": "Chess Circle", "category": "gaming", "fee": 5.0, "location": "Dhaka"}
    """

    name: str = Field(..., min_length=1, max_length=120)
    description: str = Field("", max_length=2000)
    image: Optional[str] = None
    category: str = Field("Uncategorized", max_length=60)
    schedule: str = Field("", max_length=200)
    location: str = Field("", max_length=200)
    fee: Decimal = Field(Decimal("0"), ge=0, description="Membership fee in major units")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Club name is required")
        return v


class UpdateClubRequest(CamelModel):
    """Editable club fields. Status, manager and counters are not editable here."""

    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    image: Optional[str] = None
    category: Optional[str] = Field(None, max_length=60)
    schedule: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    fee: Optional[Decimal] = Field(None, ge=0)


class CreateEventRequest(CamelModel):
    """
    Event creation for a club the caller manages.

    `max_attendees` of 0 means unlimited.
    """

    name: str = Field(..., min_length=1, max_length=160)
    description: str = Field("", max_length=4000)
    date: datetime
    time: str = Field("12:00 PM", max_length=20)
    location: str = Field("", max_length=200)
    fee: Decimal = Field(Decimal("0"), ge=0, description="Registration fee in major units")
    max_attendees: int = Field(0, ge=0)
    club_id: str
    image: Optional[str] = None


class UpdateEventRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    description: Optional[str] = Field(None, max_length=4000)
    date: Optional[datetime] = None
    time: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=200)
    fee: Optional[Decimal] = Field(None, ge=0)
    max_attendees: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None
    status: Optional[EventStatus] = None


class CategoryCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=60)
    display_name: Optional[str] = Field(None, max_length=120)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("Category name is required")
        return v


class CategoryResponse(CamelModel):
    id: str
    name: str
    display_name: str
    created_at: Optional[datetime] = None


class CategoryListResponse(CamelModel):
    categories: List[CategoryResponse]


class DeletionRequestResponse(CamelModel):
    message: str
    club_id: str
    status: str


class CascadeDeletionResponse(CamelModel):
    """Counts removed by an approved club deletion."""

    message: str
    club_id: str
    deleted_events: int = 0
    deleted_registrations: int = 0
    deleted_memberships: int = 0


class AdminCreateClubRequest(CreateClubRequest):
    """Club creation by an admin. The club is `active` at once and owned by `manager_email`."""

    manager_email: EmailStr


class AdminUpdateClubRequest(UpdateClubRequest):
    """Admin club edit. Unlike the manager edit it may reassign the manager and set the status."""

    manager_email: Optional[EmailStr] = None
    status: Optional[ClubStatus] = None
