"""
Gateway routing.

The router is the only place that looks at gateway identity. Everything
downstream receives a GatewaySelection and passes its gateway_id through
without branching on it.

Routing rules:
- A creator with a single enabled gateway always uses it.
- A creator with both gateways routes payers from regional countries to
  the regional gateway and every other known payer to the primary one.
- Unknown payers (detection failed or still pending) use the creator's
  preferred gateway.

Currency mode is domestic unless the payer's country is known and differs
from the creator's settlement country. Unknown is domestic: a sale is never
blocked on geo detection and the buffer is never charged on a guess.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from creator_checkout.exceptions import GatewayNotConfiguredError
from creator_checkout.models import (
    CreatorGatewayConfig,
    CurrencyMode,
    Gateway,
    GatewayProvider,
    GatewaySelection,
    ReturnParams,
)
from creator_checkout.validators import normalize_country_code

logger = logging.getLogger(__name__)

DEFAULT_REGIONAL_COUNTRIES: frozenset[str] = frozenset({"NG", "KE", "ZA", "GH"})


def currency_mode_for(
    payer_country: Optional[str],
    settlement_country: Optional[str],
) -> CurrencyMode:
    """Domestic unless both countries are known and differ."""
    payer = normalize_country_code(payer_country)
    settlement = normalize_country_code(settlement_country)
    if payer is None or settlement is None or payer == settlement:
        return CurrencyMode.DOMESTIC
    return CurrencyMode.CROSS_BORDER


def select_gateway(
    gateways: CreatorGatewayConfig,
    payer_country: Optional[str],
    regional_countries: Iterable[str] = DEFAULT_REGIONAL_COUNTRIES,
    creator: str = "",
) -> GatewaySelection:
    """
    Pick the gateway and currency mode for one payer.

    Args:
        gateways: Creator's gateway provisioning
        payer_country: Detected payer country, None if undetermined
        regional_countries: Countries served best by the regional gateway
        creator: Creator identifier, for error context

    Returns:
        GatewaySelection

    Raises:
        GatewayNotConfiguredError: Creator has no enabled gateway
    """
    enabled = gateways.enabled_gateways()
    if not enabled:
        raise GatewayNotConfiguredError(creator)

    country = normalize_country_code(payer_country)

    if len(enabled) == 1:
        gateway = enabled[0]
    elif country is None:
        gateway = gateways.preferred if gateways.preferred in enabled else enabled[0]
    elif country in {c.upper() for c in regional_countries}:
        gateway = Gateway.REGIONAL
    else:
        gateway = Gateway.PRIMARY

    provider = gateways.provider(gateway)
    if provider is None:
        raise GatewayNotConfiguredError(creator)

    selection = GatewaySelection(
        gateway=gateway,
        gateway_id=provider.gateway_id,
        currency_mode=currency_mode_for(country, gateways.settlement_country),
        payer_country=country,
    )
    logger.info(
        "Gateway selection: %s (%s) payer=%s mode=%s creator=%s",
        selection.gateway.value,
        selection.gateway_id,
        country or "unknown",
        selection.currency_mode.value,
        creator,
    )
    return selection


def gateway_for_return(
    gateways: CreatorGatewayConfig,
    params: ReturnParams,
) -> Optional[Tuple[Gateway, GatewayProvider, str]]:
    """
    Identify which gateway a browser return came from.

    Returns (gateway, provider, reference) for the first enabled gateway
    whose reference parameter is present and non-empty, else None.
    """
    for gateway in Gateway:
        provider = gateways.provider(gateway)
        if provider is None:
            continue
        for name in provider.reference_params:
            reference = (params.references.get(name) or "").strip()
            if reference:
                return gateway, provider, reference
    return None


class GatewayRouter:
    """Router bound to deployment settings."""

    def __init__(self, regional_countries: Iterable[str] = DEFAULT_REGIONAL_COUNTRIES):
        self.regional_countries = frozenset(c.upper() for c in regional_countries)

    def select(
        self,
        gateways: CreatorGatewayConfig,
        payer_country: Optional[str],
        creator: str = "",
    ) -> GatewaySelection:
        return select_gateway(
            gateways,
            payer_country,
            regional_countries=self.regional_countries,
            creator=creator,
        )

    def resolve_return(
        self,
        gateways: CreatorGatewayConfig,
        params: ReturnParams,
    ) -> Optional[Tuple[Gateway, GatewayProvider, str]]:
        return gateway_for_return(gateways, params)


__all__ = [
    "DEFAULT_REGIONAL_COUNTRIES",
    "currency_mode_for",
    "select_gateway",
    "gateway_for_return",
    "GatewayRouter",
]
