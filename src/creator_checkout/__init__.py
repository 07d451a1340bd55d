"""
Creator Checkout - subscription checkout core for creator pages.

This package provides the headless checkout core behind a creator's
public purchase page: it splits the platform fee, routes the payer to a
gateway, drives the redirect-spanning checkout state machine and records
funnel attribution.

Features:
- Fee-split quotes (absorb, pass to subscriber, split) in minor units
- Geography-aware gateway routing with a cross-border buffer
- One automatic verification per returned gateway reference
- Idempotent, non-blocking page-view and funnel attribution
- Stub payments mode for local development
"""

from creator_checkout.orchestrator import CheckoutOrchestrator, create_orchestrator
from creator_checkout.models import (
    # Pricing
    Price,
    FeeRate,
    FeeQuote,
    FeeSplitPolicy,
    # Routing
    Gateway,
    GatewayProvider,
    CreatorGatewayConfig,
    GatewaySelection,
    CurrencyMode,
    # Checkout
    CreatorProfile,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutSession,
    CheckoutStatus,
    PaymentIssue,
    VerificationResult,
    ReturnParams,
    # Attribution
    FunnelMilestone,
    ReferrerMeta,
    PayerContext,
)
from creator_checkout.fees import quote, format_amount, format_rate
from creator_checkout.router import GatewayRouter, select_gateway
from creator_checkout.returns import parse_return
from creator_checkout.geo import PayerCountryDetector
from creator_checkout.analytics import (
    AttributionBackend,
    AttributionClient,
    HttpAttributionBackend,
    InMemoryAttributionBackend,
    LoggingAttributionBackend,
    ViewCell,
)
from creator_checkout.session import BrowserSession
from creator_checkout.storage import (
    KeyValueStorage,
    InMemoryStorage,
    BoundedStore,
    PaymentConfirmationFlag,
)
from creator_checkout.connectors import (
    CheckoutConnector,
    HttpCheckoutConnector,
    StubCheckoutConnector,
)
from creator_checkout.config import CheckoutSettings, get_settings
from creator_checkout.exceptions import (
    CheckoutException,
    CheckoutValidationError,
    CheckoutCreationError,
    PaymentVerificationError,
    AttributionError,
    CheckoutConfigurationError,
    GatewayNotConfiguredError,
)

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "CheckoutOrchestrator",
    "create_orchestrator",
    "BrowserSession",
    # Pricing
    "Price",
    "FeeRate",
    "FeeQuote",
    "FeeSplitPolicy",
    "quote",
    "format_amount",
    "format_rate",
    # Routing
    "Gateway",
    "GatewayProvider",
    "CreatorGatewayConfig",
    "GatewaySelection",
    "CurrencyMode",
    "GatewayRouter",
    "select_gateway",
    "PayerCountryDetector",
    # Checkout
    "CreatorProfile",
    "CheckoutRequest",
    "CheckoutResponse",
    "CheckoutSession",
    "CheckoutStatus",
    "PaymentIssue",
    "VerificationResult",
    "ReturnParams",
    "parse_return",
    # Attribution
    "FunnelMilestone",
    "ReferrerMeta",
    "PayerContext",
    "AttributionBackend",
    "AttributionClient",
    "HttpAttributionBackend",
    "InMemoryAttributionBackend",
    "LoggingAttributionBackend",
    "ViewCell",
    # Storage
    "KeyValueStorage",
    "InMemoryStorage",
    "BoundedStore",
    "PaymentConfirmationFlag",
    # Connectors
    "CheckoutConnector",
    "HttpCheckoutConnector",
    "StubCheckoutConnector",
    # Config
    "CheckoutSettings",
    "get_settings",
    # Exceptions
    "CheckoutException",
    "CheckoutValidationError",
    "CheckoutCreationError",
    "PaymentVerificationError",
    "AttributionError",
    "CheckoutConfigurationError",
    "GatewayNotConfiguredError",
]
