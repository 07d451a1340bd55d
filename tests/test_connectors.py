"""
Tests for creator_checkout.connectors.

Tests cover:
- HTTP create/verify payloads and error mapping
- Stub connector round trip
"""
from __future__ import annotations

import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from creator_checkout.connectors import HttpCheckoutConnector, StubCheckoutConnector
from creator_checkout.exceptions import CheckoutCreationError, PaymentVerificationError
from creator_checkout.models import CheckoutRequest
from creator_checkout.returns import parse_return

API_BASE = "http://checkout.test"


def make_connector(handler):
    requests = []

    def _recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(base_url=API_BASE, transport=httpx.MockTransport(_recording))
    return HttpCheckoutConnector(API_BASE, client=client), requests


@pytest.fixture
def checkout_request():
    return CheckoutRequest(
        creator_id="alice",
        amount=1000,
        currency="USD",
        interval="month",
        email="buyer@example.com",
        gateway_hint="stripe",
        view_id="view_1",
        payer_country="US",
    )


class TestHttpCreateCheckout:
    """Tests for HttpCheckoutConnector.create_checkout."""

    @pytest.mark.asyncio
    async def test_posts_payload(self, checkout_request):
        """Should POST the checkout payload and return the redirect URL."""
        connector, requests = make_connector(
            lambda r: httpx.Response(200, json={"url": "https://pay.test/cs_1"})
        )

        response = await connector.create_checkout(checkout_request)

        assert response.redirect_url == "https://pay.test/cs_1"
        assert len(requests) == 1
        sent = requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/checkout"
        body = json.loads(sent.content)
        assert body == {
            "creatorUsername": "alice",
            "amount": 1000,
            "currency": "USD",
            "interval": "month",
            "subscriberEmail": "buyer@example.com",
            "gateway": "stripe",
            "payerCountry": "US",
            "viewId": "view_1",
        }

    @pytest.mark.asyncio
    async def test_rejection_carries_message(self, checkout_request):
        """Should surface the backend's error message."""
        connector, _ = make_connector(
            lambda r: httpx.Response(400, json={"error": "Creator is not accepting payments"})
        )

        with pytest.raises(CheckoutCreationError) as exc_info:
            await connector.create_checkout(checkout_request)

        assert exc_info.value.message == "Creator is not accepting payments"
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_url(self, checkout_request):
        """Should fail when the backend returns no redirect URL."""
        connector, _ = make_connector(lambda r: httpx.Response(200, json={}))

        with pytest.raises(CheckoutCreationError, match="No checkout URL returned"):
            await connector.create_checkout(checkout_request)

    @pytest.mark.asyncio
    async def test_network_error_not_retried(self, checkout_request):
        """Should fail once on a network error without retrying."""
        def _fail(request):
            raise httpx.ConnectError("down", request=request)

        connector, requests = make_connector(_fail)

        with pytest.raises(CheckoutCreationError):
            await connector.create_checkout(checkout_request)
        assert len(requests) == 1


class TestHttpVerifyPayment:
    """Tests for HttpCheckoutConnector.verify_payment."""

    @pytest.mark.asyncio
    async def test_verified(self):
        """Should pass gateway and reference as query params."""
        connector, requests = make_connector(
            lambda r: httpx.Response(200, json={"verified": True, "status": "paid"})
        )

        result = await connector.verify_payment("stripe", "cs_123")

        assert result.verified is True
        assert result.status == "paid"
        assert requests[0].url.path == "/checkout/verify"
        assert requests[0].url.params["gateway"] == "stripe"
        assert requests[0].url.params["reference"] == "cs_123"

    @pytest.mark.asyncio
    async def test_not_verified(self):
        """Should report an unverified payment as a result, not an error."""
        connector, _ = make_connector(
            lambda r: httpx.Response(200, json={"verified": False, "status": "unpaid"})
        )

        result = await connector.verify_payment("paystack", "ps_1")

        assert result.verified is False
        assert result.status == "unpaid"

    @pytest.mark.asyncio
    async def test_truthy_non_bool_is_not_verified(self):
        """Should only accept a literal true."""
        connector, _ = make_connector(lambda r: httpx.Response(200, json={"verified": "yes"}))
        assert (await connector.verify_payment("stripe", "cs_1")).verified is False

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Should raise on a server error."""
        connector, _ = make_connector(lambda r: httpx.Response(502, text="Bad gateway"))

        with pytest.raises(PaymentVerificationError) as exc_info:
            await connector.verify_payment("stripe", "cs_1")

        assert exc_info.value.reference == "cs_1"
        assert exc_info.value.gateway_id == "stripe"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        connector, _ = make_connector(lambda r: httpx.Response(200, text="not json"))

        with pytest.raises(PaymentVerificationError):
            await connector.verify_payment("stripe", "cs_1")


class TestStubConnector:
    """Tests for StubCheckoutConnector."""

    @pytest.mark.asyncio
    async def test_round_trip(self, checkout_request):
        """Should redirect back with a stub reference that verifies."""
        checkout_request.return_reference_param = "session_id"
        connector = StubCheckoutConnector("http://app.test")

        response = await connector.create_checkout(checkout_request)
        params = parse_return(response.redirect_url)

        assert params.success
        reference = params.references["session_id"]
        assert reference.startswith("stub_")

        result = await connector.verify_payment("stripe", reference)
        assert result.verified
        assert connector.created == [checkout_request]

    @pytest.mark.asyncio
    async def test_default_reference_param(self, checkout_request):
        connector = StubCheckoutConnector("http://app.test/")

        response = await connector.create_checkout(checkout_request)

        assert response.redirect_url.startswith("http://app.test/alice?")
        assert "reference" in parse_return(response.redirect_url).references

    @pytest.mark.asyncio
    async def test_unknown_reference_fails(self):
        connector = StubCheckoutConnector("http://app.test")

        result = await connector.verify_payment("stripe", "cs_live_123")

        assert result.verified is False
