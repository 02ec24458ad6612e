"""
Razorpay Payment Bridge.

Adapter between the enrollment services and the payment provider. A Razorpay
*order* plays the role of a payment intent:

- `create_intent` creates an order for an amount in minor units, with the
  enrollment metadata stored in the order `notes`.
- `retrieve_intent` fetches the order and maps its status. `paid` becomes
  `succeeded`; every other status passes through.

The order id doubles as the client handle: the browser checkout is opened with the
order id and the public key id.

The SDK is synchronous, so calls run in a worker thread.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError

from clubsphere.config import settings
from clubsphere.errors import NotFound, UpstreamFailure
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.payment_models import IntentStatus, PaymentIntent

logger = get_logger(prefix="[PAYMENT_BRIDGE]")

PROVIDER_STATUS_MAP = {"paid": IntentStatus.SUCCEEDED.value}


class PaymentBridge(ABC):
    """Contract the enrollment services rely on."""

    key_id: str = ""

    @abstractmethod
    async def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        """Open an intent for `amount_minor` tagged with `metadata`."""

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch an intent with its provider status mapped to the bridge vocabulary."""


class RazorpayPaymentBridge(PaymentBridge):
    """Payment bridge backed by Razorpay orders."""

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None, client: Any = None):
        """
        Initialize the Razorpay client.

        Args:
            key_id: API key id. Defaults to `RAZORPAY_KEY_ID`.
            key_secret: API key secret. Defaults to `RAZORPAY_KEY_SECRET`.
            client: Pre-built client, used by tests.
        """
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        secret = key_secret or settings.RAZORPAY_KEY_SECRET.get_secret_value()
        self.client = client or razorpay.Client(auth=(self.key_id, secret))

    @staticmethod
    def _to_intent(order: Dict[str, Any]) -> PaymentIntent:
        status = order.get("status", "")
        notes = order.get("notes") or {}
        # Razorpay returns an empty list instead of a dict when no notes were set
        if not isinstance(notes, dict):
            notes = {}
        return PaymentIntent(
            intent_id=order["id"],
            client_secret=order["id"],
            status=PROVIDER_STATUS_MAP.get(status, status),
            amount_minor=int(order.get("amount", 0)),
            currency=order.get("currency", ""),
            metadata={str(k): str(v) for k, v in notes.items()},
        )

    async def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        """
        Create a Razorpay order.

        Args:
            amount_minor: Amount in the currency's smallest unit (paise, cents).
            currency: ISO currency code.
            metadata: String key/values stored as order notes.

        Returns:
            PaymentIntent: The created intent.

        Raises:
            UpstreamFailure: If Razorpay rejects the request or is unreachable.
        """
        order_data = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": f"rcpt_{uuid.uuid4().hex[:12]}",
            "notes": metadata,
        }
        try:
            order = await asyncio.to_thread(self.client.order.create, data=order_data)
        except (BadRequestError, GatewayError, ServerError) as e:
            logger.error(f"Failed to create payment order: {e}", exc_info=True)
            raise UpstreamFailure("Payment provider rejected the order") from e
        except OSError as e:
            logger.error(f"Payment provider unreachable: {e}", exc_info=True)
            raise UpstreamFailure("Payment provider unreachable") from e

        logger.info(f"Created payment order {order['id']} for {amount_minor} {currency} ({metadata.get('kind')})")
        return self._to_intent(order)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """
        Fetch a Razorpay order.

        Raises:
            NotFound: If no order exists with this id.
            UpstreamFailure: If Razorpay is unreachable or errors.
        """
        try:
            order = await asyncio.to_thread(self.client.order.fetch, intent_id)
        except BadRequestError as e:
            logger.warning(f"Payment order {intent_id} not found: {e}")
            raise NotFound("Payment intent not found") from e
        except (GatewayError, ServerError) as e:
            logger.error(f"Failed to fetch payment order {intent_id}: {e}", exc_info=True)
            raise UpstreamFailure("Payment provider error") from e
        except OSError as e:
            logger.error(f"Payment provider unreachable: {e}", exc_info=True)
            raise UpstreamFailure("Payment provider unreachable") from e

        return self._to_intent(order)
