"""
Best-effort payer country detection.

The detected country only decides whether the cross-border buffer and the
regional gateway apply. Checkout never waits on it: every failure path
returns None, which the router treats as domestic.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from creator_checkout.storage import KeyValueStorage
from creator_checkout.validators import normalize_country_code

logger = logging.getLogger(__name__)

DEFAULT_GEO_LOOKUP_URL = "https://ipapi.co/country/"


class PayerCountryDetector:
    """
    Detects the payer's two-letter country code once per browser session.

    The session cache is read first and trusted only if it passes the
    two-letter gate; otherwise the lookup service is queried, and a valid
    answer is cached for the rest of the session.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        lookup_url: str = DEFAULT_GEO_LOOKUP_URL,
        cache_key: str = "payer_country",
        timeout: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.storage = storage
        self.lookup_url = lookup_url
        self.cache_key = cache_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def cached(self) -> Optional[str]:
        """Return the cached country if present and valid."""
        try:
            raw = self.storage.get(self.cache_key)
        except Exception as e:
            logger.debug(f"Payer country cache unreadable: {e}")
            return None
        if raw is None:
            return None
        # Cached values pass the same gate as fetched ones
        code = raw if normalize_country_code(raw) == raw else None
        if code is None:
            logger.debug("Discarding invalid cached payer country %r", raw)
        return code

    async def detect(self) -> Optional[str]:
        """Return the payer country, or None if it cannot be determined."""
        cached = self.cached()
        if cached:
            return cached

        try:
            response = await self._client.get(self.lookup_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"Payer country lookup failed: {e}")
            return None

        code = normalize_country_code(response.text)
        if code is None:
            logger.debug("Payer country lookup returned unusable value %r", response.text[:16])
            return None

        try:
            self.storage.set(self.cache_key, code)
        except Exception as e:
            logger.debug(f"Could not cache payer country: {e}")

        return code

    async def close(self) -> None:
        """Close HTTP client."""
        if self._owns_client:
            await self._client.aclose()


__all__ = ["PayerCountryDetector", "DEFAULT_GEO_LOOKUP_URL"]
