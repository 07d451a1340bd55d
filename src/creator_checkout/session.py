"""
Browser-session scope for checkout.

Everything that must survive a re-render or a remount of the purchase
page, but not a navigation away from it, lives on a BrowserSession. The
page owns one instance per tab and hands it to each orchestrator it
creates; module-level state is never used for this.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from creator_checkout.analytics import FunnelState, ViewCell
from creator_checkout.config import CheckoutSettings
from creator_checkout.models import VerificationResult
from creator_checkout.storage import BoundedStore, InMemoryStorage, KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """
    Session-scoped state shared by every mount of the purchase page.

    Attributes:
        session_id: Correlation id for logs
        storage: Session storage (payer country cache)
        durable_storage: Storage that outlives the gateway redirect
            (payment-confirmed flag, always written with an expiry)
        view_cell: Page-view id or in-flight record
        verifications: Automatic verification per gateway reference
        funnel_store: Milestones already sent per view id
    """
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    storage: KeyValueStorage = field(default_factory=InMemoryStorage)
    durable_storage: KeyValueStorage = field(default_factory=InMemoryStorage)
    view_cell: ViewCell = field(default_factory=ViewCell)
    verifications: Dict[str, "asyncio.Future[VerificationResult]"] = field(default_factory=dict)
    funnel_store: BoundedStore[str, FunnelState] = field(default_factory=BoundedStore)

    @classmethod
    def from_settings(
        cls,
        settings: CheckoutSettings,
        storage: Optional[KeyValueStorage] = None,
        durable_storage: Optional[KeyValueStorage] = None,
    ) -> "BrowserSession":
        return cls(
            storage=storage if storage is not None else InMemoryStorage(),
            durable_storage=durable_storage if durable_storage is not None else InMemoryStorage(),
            funnel_store=BoundedStore(max_entries=settings.funnel_store_max_entries),
        )

    def verification_for(self, reference: str) -> Optional["asyncio.Future[VerificationResult]"]:
        return self.verifications.get(reference)

    def discard(self) -> None:
        """Drop session-scoped state. Durable storage is left alone."""
        self.view_cell.reset()
        self.verifications.clear()
        self.funnel_store.clear()
        try:
            self.storage.clear()
        except Exception as e:
            logger.debug(f"Could not clear session storage: {e}")


__all__ = ["BrowserSession"]
