"""
# Payment Routes

Paid and free enrollment endpoints.

## Paid Path

1. `POST /api/payments/create-intent` with `{eventId}` or `{clubId}`. The server prices
   the target (fee plus service fee) and opens a Razorpay order. The client completes
   checkout with `clientSecret` and `keyId`.
2. `POST /api/payments/confirm` with `{paymentIntentId, eventId | clubId}`. The server
   re-fetches the intent, checks it is paid and was opened for this user and target,
   then writes the registration or membership.

```python
intent = (await client.post("/api/payments/create-intent", json={"clubId": club_id})).json()
# ... checkout completes ...
await client.post("/api/payments/confirm",
                  json={"paymentIntentId": intent["paymentIntentId"], "clubId": club_id})
```

## Free Path

- `POST /api/payments/register-free` with `{eventId}`
- `POST /api/payments/join-free` with `{clubId}`

## Status

- `GET /api/payments/intent/{intent_id}` - Bridge view of one of the caller's intents
"""

from fastapi import APIRouter, Depends, HTTPException, status

from clubsphere.errors import ClubSphereError
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.enrollment_models import MembershipResult, RegistrationResult
from clubsphere.models.payment_models import (
    ConfirmPaymentRequest,
    ConfirmResponse,
    CreateIntentRequest,
    FreeJoinRequest,
    FreeRegistrationRequest,
    IntentResponse,
    IntentStatusResponse,
)
from clubsphere.models.user_models import CurrentUser
from clubsphere.routes.auth.dependencies import get_current_user_dep
from clubsphere.routes.dependencies import get_enrollment_service
from clubsphere.services.enrollment_service import EnrollmentService

logger = get_logger(prefix="[Payment Routes]")

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-intent", response_model=IntentResponse)
async def create_intent(
    request: CreateIntentRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Open a payment intent for a paid club or event.

    Raises:
        HTTPException(404): Unknown target.
        HTTPException(409): Already a member / registered, or the event is full.
        HTTPException(412): The target is free, or not accepting enrollments.
        HTTPException(502): The payment provider failed.
    """
    try:
        if request.club_id:
            return await service.create_club_intent(current_user, request.club_id)
        return await service.create_event_intent(current_user, request.event_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create payment intent for {current_user.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create payment intent")


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Turn a paid intent into a membership or registration.

    Raises:
        HTTPException(402): The payment has not succeeded.
        HTTPException(409): The intent belongs to another user or target, was already
            applied, or the event filled up.
    """
    try:
        if request.club_id:
            membership = await service.confirm_club_payment(
                current_user, request.payment_intent_id, request.club_id
            )
            return ConfirmResponse(membership_id=membership.membership_id, message="Membership activated")
        registration = await service.confirm_event_payment(
            current_user, request.payment_intent_id, request.event_id
        )
        return ConfirmResponse(registration_id=registration.registration_id, message="Registration confirmed")
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to confirm payment {request.payment_intent_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to confirm payment")


@router.get("/intent/{intent_id}", response_model=IntentStatusResponse)
async def intent_status(
    intent_id: str,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        return await service.intent_status(current_user, intent_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to retrieve payment intent {intent_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve payment intent")


@router.post("/register-free", response_model=RegistrationResult, status_code=status.HTTP_201_CREATED)
async def register_free(
    request: FreeRegistrationRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        return await service.register_event_free(current_user, request.event_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Free registration failed for event {request.event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to register for event")


@router.post("/join-free", response_model=MembershipResult, status_code=status.HTTP_201_CREATED)
async def join_free(
    request: FreeJoinRequest,
    current_user: CurrentUser = Depends(get_current_user_dep),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        return await service.join_club_free(current_user, request.club_id)
    except ClubSphereError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Free join failed for club {request.club_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to join club")
