"""
Pytest configuration for creator-checkout tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Keep tests off the network and away from a developer's .env
os.environ.setdefault("CREATOR_CHECKOUT_API_BASE_URL", "http://checkout.test")
os.environ.setdefault("CREATOR_CHECKOUT_GEO_LOOKUP_URL", "http://geo.test/country/")

from creator_checkout.analytics import AttributionClient, InMemoryAttributionBackend
from creator_checkout.config import CheckoutSettings
from creator_checkout.models import (
    CreatorGatewayConfig,
    CreatorProfile,
    FeeSplitPolicy,
    Gateway,
    GatewayProvider,
    Price,
    REGIONAL_REFERENCE_PARAMS,
)
from creator_checkout.session import BrowserSession


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return CheckoutSettings(
        api_base_url="http://checkout.test",
        geo_lookup_url="http://geo.test/country/",
        app_url="http://app.test",
        support_email="help@creator.test",
        analytics_timeout_seconds=1.0,
    )


@pytest.fixture
def dual_gateways():
    """Creator provisioned on both gateways, settling in the US."""
    return CreatorGatewayConfig(
        preferred=Gateway.PRIMARY,
        regional=GatewayProvider("paystack", reference_params=REGIONAL_REFERENCE_PARAMS),
        settlement_country="US",
    )


@pytest.fixture
def profile(dual_gateways):
    """A published creator with a $10 monthly price."""
    return CreatorProfile(
        profile_id="prof_123",
        username="alice",
        price=Price(1000, "USD"),
        fee_policy=FeeSplitPolicy.SPLIT,
        gateways=dual_gateways,
    )


@pytest.fixture
def browser_session(settings):
    return BrowserSession.from_settings(settings)


@pytest.fixture
def attribution_backend():
    return InMemoryAttributionBackend()


@pytest.fixture
def attribution(attribution_backend, browser_session):
    return AttributionClient(
        attribution_backend,
        funnel_store=browser_session.funnel_store,
        timeout_seconds=1.0,
    )
