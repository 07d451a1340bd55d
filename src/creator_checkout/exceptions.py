"""Unified exception hierarchy for creator checkout.

All checkout exceptions inherit from CheckoutException, so callers can
map any failure onto one of the four categories the purchase flow knows:

- Input validation (CheckoutValidationError): local, surfaced inline,
  never contacts an external service
- Creation failure (CheckoutCreationError): no charge assumed, retryable
  by a fresh user action
- Verification failure (PaymentVerificationError): the buyer may already
  have been charged; only explicit retry or support escalation
- Attribution failure (AttributionError): always swallowed

Usage:
    from creator_checkout.exceptions import (
        CheckoutException,
        CheckoutValidationError,
    )

    try:
        email = validate_email(raw)
    except CheckoutValidationError as e:
        session.field_errors[e.field] = e.message

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a serializable form
"""
from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class CheckoutException(Exception):
    """Base exception for all checkout errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "CHECKOUT_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable form."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Input validation (category 1)
# =============================================================================

class CheckoutValidationError(CheckoutException):
    """Invalid buyer input or an unpayable checkout configuration."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details=details)


# =============================================================================
# Checkout creation (category 2)
# =============================================================================

class CheckoutCreationError(CheckoutException):
    """The gateway or backend rejected, or never answered, a create call.

    No charge is assumed to have happened.
    """

    error_code = "CHECKOUT_CREATION_FAILED"
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details=details)


# =============================================================================
# Payment verification (category 3)
# =============================================================================

class PaymentVerificationError(CheckoutException):
    """Verification of a returned reference failed or was ambiguous.

    Money may already have moved, so this is never retried silently.
    """

    error_code = "PAYMENT_VERIFICATION_FAILED"

    def __init__(
        self,
        message: str,
        reference: Optional[str] = None,
        gateway_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if reference:
            details["reference"] = reference
        if gateway_id:
            details["gateway_id"] = gateway_id
        self.reference = reference
        self.gateway_id = gateway_id
        super().__init__(message, details=details)


# =============================================================================
# Attribution (category 4)
# =============================================================================

class AttributionError(CheckoutException):
    """Page-view record or funnel patch failed. Never reaches the buyer."""

    error_code = "ATTRIBUTION_FAILED"


# =============================================================================
# Configuration
# =============================================================================

class CheckoutConfigurationError(CheckoutException):
    """Checkout is misconfigured for this creator or environment."""

    error_code = "CONFIGURATION_ERROR"


class GatewayNotConfiguredError(CheckoutConfigurationError):
    """The creator has no payment gateway enabled."""

    error_code = "GATEWAY_NOT_CONFIGURED"

    def __init__(self, creator: str) -> None:
        super().__init__(
            "This creator has not set up payments yet",
            details={"creator": creator},
        )


EXCEPTION_REGISTRY: dict[str, type[CheckoutException]] = {
    cls.error_code: cls
    for cls in (
        CheckoutException,
        CheckoutValidationError,
        CheckoutCreationError,
        PaymentVerificationError,
        AttributionError,
        CheckoutConfigurationError,
        GatewayNotConfiguredError,
    )
}


def get_exception_class(error_code: str) -> type[CheckoutException]:
    """Get exception class by error code, defaulting to the base class."""
    return EXCEPTION_REGISTRY.get(error_code, CheckoutException)


__all__ = [
    "CheckoutException",
    "CheckoutValidationError",
    "CheckoutCreationError",
    "PaymentVerificationError",
    "AttributionError",
    "CheckoutConfigurationError",
    "GatewayNotConfiguredError",
    "EXCEPTION_REGISTRY",
    "get_exception_class",
]
