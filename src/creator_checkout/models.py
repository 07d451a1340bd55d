"""Checkout core data models."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from creator_checkout.exceptions import CheckoutValidationError
from creator_checkout.validators import (
    normalize_country_code,
    validate_currency_code,
    validate_minor_units,
)


DEFAULT_CURRENCY = "USD"
DEFAULT_INTERVAL = "month"

# Return-URL parameters carrying each default provider's reference
PRIMARY_REFERENCE_PARAMS = ("session_id",)
REGIONAL_REFERENCE_PARAMS = ("reference", "trxref")


class FeeSplitPolicy(str, Enum):
    """Which party bears the platform fee."""
    ABSORB = "absorb"
    PASS_TO_SUBSCRIBER = "pass_to_subscriber"
    SPLIT = "split"


class Gateway(str, Enum):
    """Gateway slot a creator can be provisioned on.

    The vendor behind each slot is configuration (CreatorGatewayConfig),
    so downstream code never branches on vendor names.
    """
    PRIMARY = "primary"
    REGIONAL = "regional"


class CurrencyMode(str, Enum):
    """Currency handling for a payer/creator pair."""
    DOMESTIC = "domestic"
    CROSS_BORDER = "cross_border"


class CheckoutStatus(str, Enum):
    """Checkout state machine states."""
    IDLE = "idle"
    PROCESSING = "processing"
    REDIRECTING = "redirecting"
    VERIFYING = "verifying"
    SUCCESS = "success"


class FunnelMilestone(str, Enum):
    """Conversion funnel checkpoints recorded against a page view."""
    REACHED_PAYMENT = "reachedPayment"
    STARTED_CHECKOUT = "startedCheckout"
    COMPLETED_CHECKOUT = "completedCheckout"


@dataclass(frozen=True)
class Price:
    """Non-negative integer amount in minor units of a currency."""
    amount: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        validate_minor_units(self.amount, field_name="price")
        object.__setattr__(self, "currency", validate_currency_code(self.currency))

    @property
    def is_zero(self) -> bool:
        return self.amount == 0


@dataclass(frozen=True)
class FeeRate:
    """Fee rate as a Decimal fraction in [0, 1)."""
    value: Decimal

    def __post_init__(self) -> None:
        value = self.value
        if not isinstance(value, Decimal):
            # bool slips through numeric checks otherwise
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise CheckoutValidationError("rate must be numeric", field="rate")
            try:
                value = Decimal(str(value))
            except InvalidOperation:
                raise CheckoutValidationError(f"invalid rate: {self.value!r}", field="rate") from None
            object.__setattr__(self, "value", value)
        if not value.is_finite() or value < 0 or value >= 1:
            raise CheckoutValidationError("rate must be in [0, 1)", field="rate")

    @classmethod
    def of(cls, value: Union["FeeRate", Decimal, int, float, str]) -> "FeeRate":
        if isinstance(value, FeeRate):
            return value
        return cls(value)  # type: ignore[arg-type]

    @property
    def half(self) -> Decimal:
        return self.value / 2

    @property
    def percent(self) -> Decimal:
        return self.value * 100

    def __add__(self, other: "FeeRate") -> "FeeRate":
        return FeeRate(self.value + FeeRate.of(other).value)


@dataclass(frozen=True)
class FeeQuote:
    """Who pays what for one price under one policy.

    Invariant: subscriber_pays == creator_receives + total_fee_amount.
    """
    subscriber_pays: int
    creator_receives: int
    subscriber_fee: int
    creator_fee: int
    total_fee_amount: int
    fee_rate_percent: Decimal
    policy: FeeSplitPolicy = FeeSplitPolicy.SPLIT
    currency: str = DEFAULT_CURRENCY
    base_amount: int = 0
    cross_border: bool = False
    estimated_processor_fee: int = 0
    estimated_margin: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscriberPays": self.subscriber_pays,
            "creatorReceives": self.creator_receives,
            "subscriberFee": self.subscriber_fee,
            "creatorFee": self.creator_fee,
            "totalFeeAmount": self.total_fee_amount,
            "feeRatePercent": str(self.fee_rate_percent.normalize()),
            "policy": self.policy.value,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class GatewayProvider:
    """A concrete vendor plugged into a gateway slot."""
    gateway_id: str  # e.g. "stripe", "paystack"
    enabled: bool = True
    # Return-URL query parameters carrying this provider's reference
    reference_params: tuple[str, ...] = ()


@dataclass(frozen=True)
class CreatorGatewayConfig:
    """Creator's gateway provisioning."""
    preferred: Gateway = Gateway.PRIMARY
    primary: Optional[GatewayProvider] = field(
        default_factory=lambda: GatewayProvider("stripe", reference_params=PRIMARY_REFERENCE_PARAMS)
    )
    regional: Optional[GatewayProvider] = None
    settlement_country: Optional[str] = None

    def provider(self, gateway: Gateway) -> Optional[GatewayProvider]:
        provider = self.primary if gateway == Gateway.PRIMARY else self.regional
        if provider is None or not provider.enabled:
            return None
        return provider

    def enabled_gateways(self) -> List[Gateway]:
        return [g for g in Gateway if self.provider(g) is not None]


@dataclass(frozen=True)
class GatewaySelection:
    """Router decision for one payer."""
    gateway: Gateway
    gateway_id: str
    currency_mode: CurrencyMode
    payer_country: Optional[str] = None

    @property
    def is_cross_border(self) -> bool:
        return self.currency_mode == CurrencyMode.CROSS_BORDER


@dataclass(frozen=True)
class CreatorProfile:
    """Creator's published checkout configuration."""
    profile_id: str
    username: str
    price: Price
    fee_policy: FeeSplitPolicy = FeeSplitPolicy.SPLIT
    interval: str = DEFAULT_INTERVAL
    gateways: CreatorGatewayConfig = field(default_factory=CreatorGatewayConfig)
    payments_ready: bool = True
    support_email: Optional[str] = None

    @property
    def settlement_country(self) -> Optional[str]:
        return normalize_country_code(self.gateways.settlement_country)


@dataclass(frozen=True)
class PayerContext:
    """Per-session payer facts."""
    email: str
    country: Optional[str] = None


@dataclass(frozen=True)
class ReferrerMeta:
    """Where the visitor came from."""
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referrer": self.referrer,
            "utmSource": self.utm_source,
            "utmMedium": self.utm_medium,
            "utmCampaign": self.utm_campaign,
        }


@dataclass
class CheckoutRequest:
    """Request to create a checkout at the backend."""
    creator_id: str
    amount: int
    currency: str
    interval: str
    email: str
    gateway_hint: str
    view_id: Optional[str] = None
    payer_country: Optional[str] = None
    # Query parameter the gateway returns the reference under
    return_reference_param: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckoutResponse:
    """Backend answer to a create call."""
    redirect_url: str
    reference: Optional[str] = None
    gateway_id: Optional[str] = None


@dataclass
class VerificationResult:
    """Outcome of verifying a returned reference."""
    verified: bool
    status: str = "unknown"
    reference: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ReturnParams:
    """Query parameters the gateway sends the buyer back with."""
    success: bool = False
    cancelled: bool = False
    references: Dict[str, str] = field(default_factory=dict)

    @property
    def is_return(self) -> bool:
        return self.success or self.cancelled


@dataclass
class PaymentIssue:
    """Idle sub-state after a failed or ambiguous verification.

    The buyer may already have been charged.
    """
    message: str
    reference: Optional[str] = None
    gateway_id: Optional[str] = None
    can_retry: bool = True
    support_email: Optional[str] = None


@dataclass
class CheckoutSession:
    """One buyer's checkout on the purchase screen."""
    status: CheckoutStatus = CheckoutStatus.IDLE
    view_id: Optional[str] = None
    gateway_reference: Optional[str] = None
    retry_count: int = 0
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    notice: Optional[str] = None
    issue: Optional[PaymentIssue] = None
    redirect_url: Optional[str] = None
    quote: Optional[FeeQuote] = None
    selection: Optional[GatewaySelection] = None
    payer: Optional[PayerContext] = None

    @property
    def has_payment_issue(self) -> bool:
        return self.issue is not None

    @property
    def has_possible_charge(self) -> bool:
        """An issue whose reference may have been charged. Blocks a new checkout."""
        return self.issue is not None and self.issue.can_retry

    def clear_messages(self) -> None:
        self.field_errors.clear()
        self.error = None
        self.notice = None
