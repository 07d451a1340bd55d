"""Tests for creator_checkout.config module."""
from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from creator_checkout.config import CheckoutSettings, get_settings


class TestCheckoutSettings:
    """Tests for CheckoutSettings."""

    def test_defaults(self):
        """Should default to the platform fee schedule."""
        settings = CheckoutSettings(_env_file=None)

        assert settings.platform_fee_rate == Decimal("0.08")
        assert settings.cross_border_buffer == Decimal("0.015")
        assert settings.regional_countries == ["NG", "KE", "ZA", "GH"]
        assert settings.payment_confirmed_ttl_seconds == 300
        assert settings.payments_mode == "live"

    def test_env_prefix(self, monkeypatch):
        """Should read CREATOR_CHECKOUT_* variables."""
        monkeypatch.setenv("CREATOR_CHECKOUT_PAYMENTS_MODE", "stub")
        monkeypatch.setenv("CREATOR_CHECKOUT_PLATFORM_FEE_RATE", "0.1")
        monkeypatch.setenv("CREATOR_CHECKOUT_API_BASE_URL", "https://api.example.com/")

        settings = CheckoutSettings(_env_file=None)

        assert settings.payments_mode == "stub"
        assert settings.platform_fee_rate == Decimal("0.1")
        assert settings.api_base_url == "https://api.example.com"

    def test_regional_countries_normalized(self):
        settings = CheckoutSettings(_env_file=None, regional_countries=["ng", " ke "])
        assert settings.regional_countries == ["NG", "KE"]

    def test_regional_countries_from_env(self, monkeypatch):
        """Should read a comma-separated list from the environment."""
        monkeypatch.setenv("CREATOR_CHECKOUT_REGIONAL_COUNTRIES", "ng, KE,,gh")

        settings = CheckoutSettings(_env_file=None)

        assert settings.regional_countries == ["NG", "KE", "GH"]

    @pytest.mark.parametrize("rate", ["1", "-0.01"])
    def test_rejects_invalid_rate(self, rate):
        with pytest.raises(ValidationError):
            CheckoutSettings(_env_file=None, platform_fee_rate=rate)

    def test_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            CheckoutSettings(_env_file=None, payments_mode="sandbox")

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
