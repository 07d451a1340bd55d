"""HTTP connector for the checkout backend."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from creator_checkout.connectors.base import CheckoutConnector
from creator_checkout.exceptions import CheckoutCreationError, PaymentVerificationError
from creator_checkout.models import CheckoutRequest, CheckoutResponse, VerificationResult

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or default)
    return default


class HttpCheckoutConnector(CheckoutConnector):
    """
    Checkout connector backed by the creator platform's HTTP API.

    Endpoints:
        POST /checkout             create a checkout, returns {"url": ...}
        GET  /checkout/verify      verify {gateway, reference}

    Requests are never retried here: a repeated create is a fresh user
    action and a repeated verify is an explicit one.
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def create_checkout(
        self,
        request: CheckoutRequest,
    ) -> CheckoutResponse:
        """Create checkout via the backend."""
        payload: Dict[str, Any] = {
            "creatorUsername": request.creator_id,
            "amount": request.amount,
            "currency": request.currency,
            "interval": request.interval,
            "subscriberEmail": request.email,
            "gateway": request.gateway_hint,
        }
        if request.payer_country:
            payload["payerCountry"] = request.payer_country
        if request.view_id:
            payload["viewId"] = request.view_id
        if request.metadata:
            payload["metadata"] = request.metadata

        try:
            response = await self._client.post("/checkout", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Checkout creation request failed: {e}")
            raise CheckoutCreationError("Failed to start payment. Please try again.") from e

        if response.status_code >= 400:
            message = _error_message(response, "Failed to start payment")
            logger.warning(
                "Checkout creation rejected: status=%s creator=%s message=%s",
                response.status_code,
                request.creator_id,
                message,
            )
            raise CheckoutCreationError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise CheckoutCreationError("Invalid response from checkout service") from e

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise CheckoutCreationError("No checkout URL returned")

        return CheckoutResponse(
            redirect_url=url,
            reference=data.get("reference") or data.get("sessionId"),
            gateway_id=data.get("gateway") or request.gateway_hint,
        )

    async def verify_payment(
        self,
        gateway_id: str,
        reference: str,
    ) -> VerificationResult:
        """Verify a returned reference via the backend."""
        try:
            response = await self._client.get(
                "/checkout/verify",
                params={"gateway": gateway_id, "reference": reference},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Payment verification request failed: {e}")
            raise PaymentVerificationError(
                "Could not verify payment",
                reference=reference,
                gateway_id=gateway_id,
            ) from e

        if response.status_code >= 500:
            raise PaymentVerificationError(
                "Could not verify payment",
                reference=reference,
                gateway_id=gateway_id,
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentVerificationError(
                "Invalid response from verification service",
                reference=reference,
                gateway_id=gateway_id,
            ) from e

        if not isinstance(data, dict):
            data = {}

        return VerificationResult(
            verified=data.get("verified") is True,
            status=str(data.get("status") or ("paid" if data.get("verified") is True else "unknown")),
            reference=reference,
            error=data.get("error"),
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
