"""Base checkout connector interface."""
from __future__ import annotations

from abc import ABC, abstractmethod

from creator_checkout.models import CheckoutRequest, CheckoutResponse, VerificationResult


class CheckoutConnector(ABC):
    """Abstract interface to the service that creates and verifies checkouts."""

    @abstractmethod
    async def create_checkout(
        self,
        request: CheckoutRequest,
    ) -> CheckoutResponse:
        """
        Create a checkout at the gateway.

        Called exactly once per submit. Idempotency across user retries is
        the backend's responsibility.

        Args:
            request: CheckoutRequest with amount, email and gateway hint

        Returns:
            CheckoutResponse with the redirect URL

        Raises:
            CheckoutCreationError: On network failure or gateway rejection
        """
        pass

    @abstractmethod
    async def verify_payment(
        self,
        gateway_id: str,
        reference: str,
    ) -> VerificationResult:
        """
        Verify the outcome of a returned gateway reference.

        Must be safe to call more than once for the same reference.

        Args:
            gateway_id: Gateway that issued the reference
            reference: Opaque reference from the return URL

        Returns:
            VerificationResult

        Raises:
            PaymentVerificationError: If the outcome could not be determined
        """
        pass

    async def close(self) -> None:
        """Release connector resources."""
        return None

    async def __aenter__(self) -> "CheckoutConnector":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
