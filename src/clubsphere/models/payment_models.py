"""
Payment Models.

Pydantic models for the payment bridge view of an intent and for the
`/api/payments` request and response payloads.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import Field, model_validator

from clubsphere.models.base import CamelModel


class IntentStatus(str, Enum):
    """
    Bridge-level intent status.

    Razorpay order states map as `paid` -> `succeeded`; `created` and `attempted`
    pass through unchanged.
    """

    CREATED = "created"
    ATTEMPTED = "attempted"
    SUCCEEDED = "succeeded"


class PaymentIntent(CamelModel):
    """Intent as returned by the payment bridge."""

    intent_id: str
    client_secret: str
    status: str
    amount_minor: int
    currency: str
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == IntentStatus.SUCCEEDED.value


class CreateIntentRequest(CamelModel):
    """
    Paid-path intent creation. Exactly one of `event_id` / `club_id`.

    Example:
        {"clubId": "65a1f0c2e4b0a1b2c3d4e5f6"}
    """

    event_id: Optional[str] = None
    club_id: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        if bool(self.event_id) == bool(self.club_id):
            raise ValueError("Provide exactly one of eventId or clubId")
        return self


class ConfirmPaymentRequest(CamelModel):
    """
    Confirmation of a completed payment.

    Example:
        {"paymentIntentId": "order_Nx8...", "eventId": "65b..."}
    """

    payment_intent_id: str = Field(..., min_length=1)
    event_id: Optional[str] = None
    club_id: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        if bool(self.event_id) == bool(self.club_id):
            raise ValueError("Provide exactly one of eventId or clubId")
        return self


class FreeRegistrationRequest(CamelModel):
    event_id: str = Field(..., min_length=1)


class FreeJoinRequest(CamelModel):
    club_id: str = Field(..., min_length=1)


class IntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    key_id: str
    amount: float
    fee: float
    service_fee: float
    currency: str


class ConfirmResponse(CamelModel):
    success: bool = True
    registration_id: Optional[str] = None
    membership_id: Optional[str] = None
    message: str = ""


class IntentStatusResponse(CamelModel):
    status: str
    amount: float
    currency: str
    metadata: Dict[str, str]
