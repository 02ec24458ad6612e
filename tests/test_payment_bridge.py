"""
Tests for the Razorpay-backed payment bridge.
"""

from unittest.mock import MagicMock

import pytest
from razorpay.errors import BadRequestError, ServerError

from clubsphere.errors import NotFound, UpstreamFailure
from clubsphere.services.payment_bridge import PaymentBridge, RazorpayPaymentBridge


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def bridge(client):
    return RazorpayPaymentBridge(key_id="rzp_test_key", key_secret="secret", client=client)


@pytest.mark.asyncio
async def test_create_intent_sends_minor_units_and_notes(bridge, client):
    """Order creation passes the amount untouched and stores metadata as notes."""
    client.order.create.return_value = {
        "id": "order_abc",
        "status": "created",
        "amount": 650,
        "currency": "INR",
        "notes": {"kind": "club", "targetId": "c1"},
    }

    intent = await bridge.create_intent(650, "INR", {"kind": "club", "targetId": "c1"})

    data = client.order.create.call_args.kwargs["data"]
    assert data["amount"] == 650
    assert data["currency"] == "INR"
    assert data["notes"] == {"kind": "club", "targetId": "c1"}
    assert data["receipt"].startswith("rcpt_")
    assert intent.intent_id == "order_abc"
    assert intent.client_secret == "order_abc"
    assert intent.status == "created"
    assert intent.metadata == {"kind": "club", "targetId": "c1"}


@pytest.mark.asyncio
async def test_paid_order_maps_to_succeeded(bridge, client):
    client.order.fetch.return_value = {"id": "order_abc", "status": "paid", "amount": 650, "currency": "INR"}

    intent = await bridge.retrieve_intent("order_abc")

    client.order.fetch.assert_called_once_with("order_abc")
    assert intent.status == "succeeded"
    assert intent.succeeded


@pytest.mark.asyncio
async def test_attempted_order_passes_through(bridge, client):
    client.order.fetch.return_value = {"id": "order_abc", "status": "attempted", "amount": 650, "notes": []}

    intent = await bridge.retrieve_intent("order_abc")

    assert intent.status == "attempted"
    assert not intent.succeeded
    assert intent.metadata == {}


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(bridge, client):
    client.order.fetch.side_effect = BadRequestError("The id provided does not exist")

    with pytest.raises(NotFound):
        await bridge.retrieve_intent("order_missing")


@pytest.mark.asyncio
async def test_provider_errors_are_upstream_failures(bridge, client):
    client.order.create.side_effect = ServerError("gateway down")

    with pytest.raises(UpstreamFailure):
        await bridge.create_intent(650, "INR", {})


@pytest.mark.asyncio
async def test_network_errors_are_upstream_failures(bridge, client):
    client.order.fetch.side_effect = ConnectionError("reset by peer")

    with pytest.raises(UpstreamFailure):
        await bridge.retrieve_intent("order_abc")


def test_bridge_interface_is_abstract():
    with pytest.raises(TypeError):
        PaymentBridge()

    class HalfBridge(PaymentBridge):
        async def create_intent(self, amount_minor, currency, metadata):
            return None

    with pytest.raises(TypeError):
        HalfBridge()
