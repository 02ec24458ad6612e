"""
# Enrollment Models

Memberships bind a user to a club; registrations bind a user to an event. Both are
created either through the free path or after a confirmed payment.

## Stored Shape

```json
{
  "userId": "65f...",
  "clubId": "65a...",
  "status": "active",
  "paymentStatus": "paid",
  "joinDate": "2024-05-01T10:00:00",
  "expiryDate": "2025-05-01T10:00:00",
  "amount": 6.5, "membershipFee": 5.0, "serviceFee": 1.5,
  "paymentIntentId": "order_...",
  "activeKey": "65f...:65a..."
}
```

`activeKey` is present only while the relationship is live (`active`/`pending`
memberships, `registered` registrations). A sparse unique index on it guarantees
one live relationship per (user, target).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from clubsphere.models.base import CamelModel


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


LIVE_MEMBERSHIP_STATUSES = (MembershipStatus.ACTIVE.value, MembershipStatus.PENDING.value)


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


class EnrollmentPaymentStatus(str, Enum):
    PAID = "paid"
    FREE = "free"
    PENDING = "pending"


class EnrollmentKind(str, Enum):
    """Target kind tagged on payment intents."""

    CLUB = "club"
    EVENT = "event"


class TransactionType(str, Enum):
    CLUB_MEMBERSHIP = "club_membership"
    EVENT_REGISTRATION = "event_registration"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    PAID = "paid"
    FAILED = "failed"


def active_key(user_id: str, target_id: str) -> str:
    """Uniqueness key of a live relationship."""
    return f"{user_id}:{target_id}"


class MembershipDocument(CamelModel):
    user_id: str
    club_id: str
    status: MembershipStatus = MembershipStatus.ACTIVE
    payment_status: EnrollmentPaymentStatus
    join_date: datetime
    expiry_date: Optional[datetime] = None
    amount: float = 0.0
    membership_fee: float = 0.0
    service_fee: float = 0.0
    payment_intent_id: Optional[str] = None
    active_key: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def to_document(self, keep_null=("expiryDate",)):
        document = super().to_document(keep_null)
        document["status"] = self.status.value
        document["paymentStatus"] = self.payment_status.value
        return document


class RegistrationDocument(CamelModel):
    user_id: str
    event_id: str
    club_id: Optional[str] = None
    status: RegistrationStatus = RegistrationStatus.REGISTERED
    payment_status: EnrollmentPaymentStatus
    registration_date: datetime
    amount: float = 0.0
    event_fee: float = 0.0
    service_fee: float = 0.0
    payment_intent_id: Optional[str] = None
    active_key: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def to_document(self, keep_null=()):
        document = super().to_document(keep_null)
        document["status"] = self.status.value
        document["paymentStatus"] = self.payment_status.value
        return document


class TransactionDocument(CamelModel):
    """Append-only audit record of a confirmed payment."""

    user_id: str
    user_email: Optional[str] = None
    type: TransactionType
    reference_id: str
    amount: float
    currency: str
    status: TransactionStatus = TransactionStatus.SUCCESS
    payment_intent_id: Optional[str] = None
    description: str = ""
    created_at: datetime

    def to_document(self, keep_null=()):
        document = super().to_document(keep_null)
        document["type"] = self.type.value
        document["status"] = self.status.value
        return document


class MembershipResult(CamelModel):
    """Outcome of a successful join."""

    membership_id: str
    club_id: str
    status: str
    payment_status: str
    expiry_date: Optional[datetime] = None


class RegistrationResult(CamelModel):
    registration_id: str
    event_id: str
    status: str
    payment_status: str


class CancellationResult(CamelModel):
    registration_id: str
    status: str = Field(RegistrationStatus.CANCELLED.value)
    cancelled_at: datetime
