"""
Tests for creator_checkout.router.

Tests cover:
- Gateway selection by payer geography
- Currency mode
- Unconfigured creators
- Mapping return parameters back to a gateway
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from creator_checkout.exceptions import GatewayNotConfiguredError
from creator_checkout.models import (
    CreatorGatewayConfig,
    CurrencyMode,
    Gateway,
    GatewayProvider,
    REGIONAL_REFERENCE_PARAMS,
)
from creator_checkout.returns import parse_return
from creator_checkout.router import (
    GatewayRouter,
    currency_mode_for,
    gateway_for_return,
    select_gateway,
)


@pytest.fixture
def primary_only():
    return CreatorGatewayConfig(settlement_country="US")


@pytest.fixture
def regional_only():
    return CreatorGatewayConfig(
        preferred=Gateway.REGIONAL,
        primary=None,
        regional=GatewayProvider("paystack", reference_params=REGIONAL_REFERENCE_PARAMS),
        settlement_country="NG",
    )


class TestSelectGateway:
    """Tests for select_gateway."""

    def test_regional_payer_goes_regional(self, dual_gateways):
        """Should route payers from regional countries to the regional gateway."""
        selection = select_gateway(dual_gateways, "NG")

        assert selection.gateway == Gateway.REGIONAL
        assert selection.gateway_id == "paystack"

    def test_other_payer_goes_primary(self, dual_gateways):
        """Should route every other known payer to the primary gateway."""
        selection = select_gateway(dual_gateways, "DE")

        assert selection.gateway == Gateway.PRIMARY
        assert selection.gateway_id == "stripe"

    def test_unknown_payer_uses_preference(self):
        """Should use the creator's preferred gateway when the payer is unknown."""
        gateways = CreatorGatewayConfig(
            preferred=Gateway.REGIONAL,
            regional=GatewayProvider("paystack", reference_params=REGIONAL_REFERENCE_PARAMS),
        )
        assert select_gateway(gateways, None).gateway == Gateway.REGIONAL

    def test_single_gateway_always_used(self, primary_only, regional_only):
        """Should ignore geography when only one gateway is enabled."""
        assert select_gateway(primary_only, "KE").gateway == Gateway.PRIMARY
        assert select_gateway(regional_only, "US").gateway == Gateway.REGIONAL

    def test_disabled_gateway_is_skipped(self):
        """Should not route to a disabled provider."""
        gateways = CreatorGatewayConfig(
            regional=GatewayProvider("paystack", enabled=False),
        )
        assert select_gateway(gateways, "NG").gateway == Gateway.PRIMARY

    def test_invalid_country_is_unknown(self, dual_gateways):
        """Should treat a malformed country as unknown."""
        selection = select_gateway(dual_gateways, "Nigeria")

        assert selection.payer_country is None
        assert selection.gateway == Gateway.PRIMARY
        assert selection.currency_mode == CurrencyMode.DOMESTIC

    def test_lowercase_country_is_normalized(self, dual_gateways):
        """Should upper-case a well-formed country code."""
        selection = select_gateway(dual_gateways, " ng ")

        assert selection.payer_country == "NG"
        assert selection.gateway == Gateway.REGIONAL

    def test_no_gateway_raises(self):
        """Should raise when the creator has nothing enabled."""
        gateways = CreatorGatewayConfig(primary=None)

        with pytest.raises(GatewayNotConfiguredError) as exc_info:
            select_gateway(gateways, "US", creator="alice")

        assert exc_info.value.details["creator"] == "alice"

    def test_selected_slot_without_provider(self):
        """Should raise rather than select a slot that has no provider."""

        class AllSlotsEnabled(CreatorGatewayConfig):
            def enabled_gateways(self):
                return list(Gateway)

        gateways = AllSlotsEnabled(regional=None, settlement_country="US")

        with pytest.raises(GatewayNotConfiguredError):
            select_gateway(gateways, "NG", creator="alice")

    def test_custom_regional_countries(self, dual_gateways):
        """Should honor the router's configured country list."""
        router = GatewayRouter(["ug"])

        assert router.select(dual_gateways, "UG").gateway == Gateway.REGIONAL
        assert router.select(dual_gateways, "NG").gateway == Gateway.PRIMARY


class TestCurrencyMode:
    """Tests for currency mode."""

    def test_same_country_is_domestic(self):
        assert currency_mode_for("US", "US") == CurrencyMode.DOMESTIC

    def test_different_country_is_cross_border(self):
        assert currency_mode_for("GB", "US") == CurrencyMode.CROSS_BORDER

    def test_unknown_is_domestic(self):
        """Should never charge the buffer on a guess."""
        assert currency_mode_for(None, "US") == CurrencyMode.DOMESTIC
        assert currency_mode_for("GB", None) == CurrencyMode.DOMESTIC

    def test_selection_reports_cross_border(self, dual_gateways):
        selection = select_gateway(dual_gateways, "GB")
        assert selection.is_cross_border


class TestGatewayForReturn:
    """Tests for mapping return parameters to a gateway."""

    def test_primary_reference(self, dual_gateways):
        """Should map session_id to the primary gateway."""
        params = parse_return("https://app.test/alice?success=true&session_id=cs_123")

        gateway, provider, reference = gateway_for_return(dual_gateways, params)

        assert gateway == Gateway.PRIMARY
        assert provider.gateway_id == "stripe"
        assert reference == "cs_123"

    @pytest.mark.parametrize("name", ["reference", "trxref"])
    def test_regional_reference(self, dual_gateways, name):
        """Should map reference and trxref to the regional gateway."""
        params = parse_return({"success": "true", name: "ps_456"})

        gateway, _, reference = gateway_for_return(dual_gateways, params)

        assert gateway == Gateway.REGIONAL
        assert reference == "ps_456"

    def test_missing_reference(self, dual_gateways):
        """Should return None when no reference parameter is present."""
        assert gateway_for_return(dual_gateways, parse_return("https://app.test/alice?success=true")) is None

    def test_reference_for_disabled_gateway_ignored(self, primary_only):
        """Should not accept a reference from a gateway the creator lacks."""
        params = parse_return("https://app.test/alice?success=true&reference=ps_456")
        assert gateway_for_return(primary_only, params) is None
