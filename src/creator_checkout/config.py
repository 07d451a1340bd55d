"""Configuration surface for the checkout core."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Annotated, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class CheckoutSettings(BaseSettings):
    """Checkout configuration, read from CREATOR_CHECKOUT_* variables."""

    # Backend
    api_base_url: str = "http://localhost:3001"
    request_timeout_seconds: float = 30.0

    # "stub" routes checkouts through StubCheckoutConnector
    payments_mode: Literal["live", "stub"] = "live"
    app_url: str = "http://localhost:5173"

    # Payer geo lookup (plain-text two-letter response)
    geo_lookup_url: str = "https://ipapi.co/country/"
    geo_timeout_seconds: float = 3.0
    geo_cache_key: str = "payer_country"

    # Fees: 8% total, 4% each side under split
    platform_fee_rate: Decimal = Decimal("0.08")
    cross_border_buffer: Decimal = Decimal("0.015")

    # Routing
    regional_countries: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["NG", "KE", "ZA", "GH"]
    )

    # Attribution
    analytics_timeout_seconds: float = 5.0
    funnel_store_max_entries: int = 256

    # Redirect bridging flag
    payment_confirmed_key: str = "payment_confirmed"
    payment_confirmed_ttl_seconds: int = 300

    support_email: str = "support@example.com"

    class Config:
        env_prefix = "CREATOR_CHECKOUT_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("regional_countries", mode="before")
    @classmethod
    def parse_countries(cls, v):
        """Parse comma-separated country codes from env var."""
        if isinstance(v, str):
            return [c.strip().upper() for c in v.split(",") if c.strip()]
        return [str(c).strip().upper() for c in v]

    @field_validator("platform_fee_rate", "cross_border_buffer")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("rates must be in [0, 1)")
        return v

    @field_validator("api_base_url", "app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> CheckoutSettings:
    """Get cached settings instance."""
    return CheckoutSettings()


__all__ = ["CheckoutSettings", "get_settings"]
