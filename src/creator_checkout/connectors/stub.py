"""Stub connector for local development without a live gateway."""
from __future__ import annotations

import logging
import secrets
import time
from typing import List, Tuple

import httpx

from creator_checkout.connectors.base import CheckoutConnector
from creator_checkout.models import CheckoutRequest, CheckoutResponse, VerificationResult

logger = logging.getLogger(__name__)

STUB_PREFIX = "stub_"


class StubCheckoutConnector(CheckoutConnector):
    """
    Pretends to be a gateway.

    Checkouts redirect straight back to the creator page with a success
    signal and a ``stub_`` reference under the hinted gateway's reference
    parameter. Only ``stub_`` references verify.
    """

    def __init__(self, app_url: str, reference_param: str = "reference"):
        self.app_url = app_url.rstrip("/")
        self.reference_param = reference_param
        self.created: List[CheckoutRequest] = []
        self.verified: List[Tuple[str, str]] = []

    def _new_reference(self) -> str:
        return f"{STUB_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    async def create_checkout(
        self,
        request: CheckoutRequest,
    ) -> CheckoutResponse:
        self.created.append(request)
        reference = self._new_reference()
        url = httpx.URL(f"{self.app_url}/{request.creator_id}").copy_merge_params({
            "success": "true",
            "provider": request.gateway_hint,
            (request.return_reference_param or self.reference_param): reference,
            "stub": "true",
        })
        logger.info(f"Stub checkout created for {request.creator_id}: {reference}")
        return CheckoutResponse(
            redirect_url=str(url),
            reference=reference,
            gateway_id=request.gateway_hint,
        )

    async def verify_payment(
        self,
        gateway_id: str,
        reference: str,
    ) -> VerificationResult:
        self.verified.append((gateway_id, reference))
        if reference.startswith(STUB_PREFIX):
            return VerificationResult(verified=True, status="paid", reference=reference)
        return VerificationResult(
            verified=False,
            status="not_found",
            reference=reference,
            error="Unknown stub reference",
        )
