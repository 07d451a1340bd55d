"""
Checkout attribution: page views and funnel milestones.

A page view is recorded once per browser session and the funnel milestones
(reachedPayment, startedCheckout, completedCheckout) are patched against it
as the buyer moves through checkout. Nothing here is allowed to block or
fail the purchase path: every public method of AttributionClient logs and
swallows errors, and every backend call is bounded by a timeout.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx

from creator_checkout.exceptions import AttributionError
from creator_checkout.models import FunnelMilestone, ReferrerMeta
from creator_checkout.storage import BoundedStore

logger = logging.getLogger(__name__)

# Same visitor on the same profile within this window reuses the view
VIEW_DEBOUNCE_WINDOW = timedelta(minutes=30)


class AttributionBackend(ABC):
    """Abstract interface for page-view storage."""

    @abstractmethod
    async def record_page_view(
        self,
        profile_id: str,
        referrer: ReferrerMeta,
    ) -> str:
        """Record a page view and return its view id."""
        pass

    @abstractmethod
    async def patch_page_view(
        self,
        view_id: str,
        patch: Dict[str, bool],
    ) -> None:
        """Set funnel milestones on a page view."""
        pass

    async def close(self) -> None:
        return None


@dataclass
class PageViewRecord:
    """A stored page view."""
    view_id: str
    profile_id: str
    visitor_hash: Optional[str] = None
    referrer: ReferrerMeta = field(default_factory=ReferrerMeta)
    milestones: Dict[str, bool] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


def hash_visitor(ip_address: str, user_agent: str) -> str:
    """Stable, non-reversible visitor fingerprint."""
    return hashlib.sha256(f"{ip_address}|{user_agent}".encode()).hexdigest()[:32]


class InMemoryAttributionBackend(AttributionBackend):
    """
    In-memory attribution backend for development and testing.

    Mirrors the server's behaviour: a repeat view from the same visitor
    within VIEW_DEBOUNCE_WINDOW returns the existing view id, and patches
    only ever set milestones.
    """

    def __init__(self, visitor_hash: Optional[str] = None, max_views: int = 10000):
        self.visitor_hash = visitor_hash
        self.views: Dict[str, PageViewRecord] = {}
        self.record_calls: List[Tuple[str, ReferrerMeta]] = []
        self.patch_calls: List[Tuple[str, Dict[str, bool]]] = []
        self._max_views = max_views

    async def record_page_view(
        self,
        profile_id: str,
        referrer: ReferrerMeta,
    ) -> str:
        self.record_calls.append((profile_id, referrer))

        if self.visitor_hash:
            cutoff = datetime.utcnow() - VIEW_DEBOUNCE_WINDOW
            for view in self.views.values():
                if (
                    view.profile_id == profile_id
                    and view.visitor_hash == self.visitor_hash
                    and view.created_at >= cutoff
                ):
                    return view.view_id

        view = PageViewRecord(
            view_id=str(uuid.uuid4()),
            profile_id=profile_id,
            visitor_hash=self.visitor_hash,
            referrer=referrer,
        )
        self.views[view.view_id] = view
        if len(self.views) > self._max_views:
            oldest = next(iter(self.views))
            del self.views[oldest]
        return view.view_id

    async def patch_page_view(
        self,
        view_id: str,
        patch: Dict[str, bool],
    ) -> None:
        self.patch_calls.append((view_id, dict(patch)))
        view = self.views.get(view_id)
        if view is None:
            raise AttributionError(f"Page view {view_id} not found")
        for key, value in patch.items():
            if value:
                view.milestones[key] = True


class LoggingAttributionBackend(AttributionBackend):
    """Attribution backend that only logs, for debugging and owner previews."""

    def __init__(self, log_level: int = logging.INFO):
        self._log_level = log_level

    async def record_page_view(
        self,
        profile_id: str,
        referrer: ReferrerMeta,
    ) -> str:
        view_id = f"log_{uuid.uuid4().hex[:16]}"
        logger.log(
            self._log_level,
            "Page view: profile_id=%s view_id=%s referrer=%s",
            profile_id,
            view_id,
            referrer.referrer,
        )
        return view_id

    async def patch_page_view(
        self,
        view_id: str,
        patch: Dict[str, bool],
    ) -> None:
        logger.log(self._log_level, "Funnel patch: view_id=%s patch=%s", view_id, patch)


class HttpAttributionBackend(AttributionBackend):
    """
    Attribution backend backed by the platform's analytics API.

    Endpoints:
        POST  /analytics/view            returns {"viewId": ...}
        PATCH /analytics/view/{view_id}  body is the milestone patch
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def record_page_view(
        self,
        profile_id: str,
        referrer: ReferrerMeta,
    ) -> str:
        payload: Dict[str, Any] = {"profileId": profile_id}
        payload.update({k: v for k, v in referrer.to_dict().items() if v})
        try:
            response = await self._client.post("/analytics/view", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AttributionError(f"Failed to record page view: {e}") from e

        # Older servers answer with the bare id
        view_id = data if isinstance(data, str) else (data or {}).get("viewId")
        if not view_id:
            raise AttributionError("Page view response carried no viewId")
        return str(view_id)

    async def patch_page_view(
        self,
        view_id: str,
        patch: Dict[str, bool],
    ) -> None:
        try:
            response = await self._client.patch(f"/analytics/view/{view_id}", json=patch)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AttributionError(f"Failed to update page view: {e}") from e

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()


@dataclass(frozen=True)
class FunnelState:
    """Milestones already recorded for one view. Only ever grows."""
    reached_payment: bool = False
    started_checkout: bool = False
    completed_checkout: bool = False

    _FIELDS = {
        FunnelMilestone.REACHED_PAYMENT: "reached_payment",
        FunnelMilestone.STARTED_CHECKOUT: "started_checkout",
        FunnelMilestone.COMPLETED_CHECKOUT: "completed_checkout",
    }

    def has(self, milestone: FunnelMilestone) -> bool:
        return getattr(self, self._FIELDS[milestone])

    def with_milestone(self, milestone: FunnelMilestone) -> "FunnelState":
        return replace(self, **{self._FIELDS[milestone]: True})

    def without_milestone(self, milestone: FunnelMilestone) -> "FunnelState":
        return replace(self, **{self._FIELDS[milestone]: False})

    def as_patch(self) -> Dict[str, bool]:
        return {m.value: True for m in FunnelMilestone if self.has(m)}


@dataclass
class ViewCell:
    """
    Holds the page-view id for a browser session.

    Lives outside any orchestrator instance so that a remount finds the id
    (or the in-flight record) the previous mount left behind.
    """
    view_id: Optional[str] = None
    pending: Optional["asyncio.Future[Optional[str]]"] = None

    @property
    def is_claimed(self) -> bool:
        return self.view_id is not None or self.pending is not None

    def reset(self) -> None:
        if self.pending is not None and not self.pending.done():
            self.pending.cancel()
        self.view_id = None
        self.pending = None


class AttributionClient:
    """
    Records page views and patches funnel milestones, never raising.

    Usage:
        client = AttributionClient(HttpAttributionBackend(api_base))

        client.start_view(cell, profile_id, referrer)   # on mount
        view_id = await client.ensure_view(cell, profile_id, referrer)
        client.send_funnel(view_id, FunnelMilestone.STARTED_CHECKOUT)
    """

    def __init__(
        self,
        backend: AttributionBackend,
        funnel_store: Optional[BoundedStore[str, FunnelState]] = None,
        timeout_seconds: float = 5.0,
        enabled: bool = True,
    ):
        self.backend = backend
        self.funnel_store: BoundedStore[str, FunnelState] = (
            funnel_store if funnel_store is not None else BoundedStore()
        )
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled
        self._in_flight: Set["asyncio.Future[bool]"] = set()

    async def _record(self, profile_id: str, referrer: ReferrerMeta) -> Optional[str]:
        try:
            return await self.backend.record_page_view(profile_id, referrer)
        except Exception as e:
            logger.warning(f"Failed to record page view for {profile_id}: {e}")
            return None

    def start_view(
        self,
        cell: ViewCell,
        profile_id: str,
        referrer: Optional[ReferrerMeta] = None,
    ) -> Optional["asyncio.Future[Optional[str]]"]:
        """
        Begin recording a view unless the cell already holds one.

        The cell is claimed before any await, so a second call in the same
        session (remount, double invoke) joins the first record.
        """
        if not self.enabled or not profile_id:
            return None
        if cell.is_claimed:
            return cell.pending

        task = asyncio.ensure_future(self._record(profile_id, referrer or ReferrerMeta()))
        cell.pending = task

        def _settle(fut: "asyncio.Future[Optional[str]]") -> None:
            if cell.pending is not fut:
                return
            cell.pending = None
            if not fut.cancelled() and fut.result():
                cell.view_id = fut.result()

        task.add_done_callback(_settle)
        return task

    async def _wait(self, cell: ViewCell) -> Optional[str]:
        pending = cell.pending
        if pending is None:
            return cell.view_id
        try:
            # shield: timing out here must not cancel the record itself
            view_id = await asyncio.wait_for(asyncio.shield(pending), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Page view record still pending after %.1fs", self.timeout_seconds)
            return None
        except asyncio.CancelledError:
            if pending.cancelled():
                return None
            raise
        if view_id and cell.view_id is None:
            cell.view_id = view_id
        return view_id

    async def record_view(
        self,
        cell: ViewCell,
        profile_id: str,
        referrer: Optional[ReferrerMeta] = None,
    ) -> Optional[str]:
        """Record a view at most once per session and return its id, or None."""
        if cell.view_id:
            return cell.view_id
        self.start_view(cell, profile_id, referrer)
        return await self._wait(cell)

    async def ensure_view(
        self,
        cell: ViewCell,
        profile_id: str,
        referrer: Optional[ReferrerMeta] = None,
    ) -> Optional[str]:
        """
        Make sure a view id exists right before checkout starts.

        Joins an in-flight record, or records one now if the session never
        obtained a view (owner preview, earlier failure).
        """
        return await self.record_view(cell, profile_id, referrer)

    def _claim(self, view_id: Optional[str], milestone: FunnelMilestone) -> bool:
        """Mark a milestone as sent. False if disabled, no view, or already marked."""
        if not self.enabled or not view_id:
            return False
        state = self.funnel_store.get(view_id) or FunnelState()
        if state.has(milestone):
            return False
        self.funnel_store.set(view_id, state.with_milestone(milestone))
        return True

    def _release(self, view_id: str, milestone: FunnelMilestone) -> None:
        current = self.funnel_store.get(view_id)
        if current is not None:
            self.funnel_store.set(view_id, current.without_milestone(milestone))

    async def _send_patch(self, view_id: str, milestone: FunnelMilestone) -> bool:
        try:
            await asyncio.wait_for(
                self.backend.patch_page_view(view_id, {milestone.value: True}),
                self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(f"Failed to patch {milestone.value} on view {view_id}: {e}")
            self._release(view_id, milestone)
            return False
        return True

    async def patch_funnel(
        self,
        view_id: Optional[str],
        milestone: FunnelMilestone,
    ) -> bool:
        """
        Mark a funnel milestone on a view and wait for delivery.

        Idempotent: a milestone already recorded for the view is not sent
        again. Returns True if a patch was delivered.
        """
        # Mark before the await so an overlapping call sees it
        if not self._claim(view_id, milestone):
            return False
        return await self._send_patch(view_id, milestone)

    def send_funnel(
        self,
        view_id: Optional[str],
        milestone: FunnelMilestone,
    ) -> Optional["asyncio.Future[bool]"]:
        """
        Fire-and-forget variant of patch_funnel.

        The milestone is marked before this returns. A failed or cancelled
        send unmarks it so a later call may try again.
        """
        if not self._claim(view_id, milestone):
            return None

        task = asyncio.ensure_future(self._send_patch(view_id, milestone))
        self._in_flight.add(task)

        def _done(fut: "asyncio.Future[bool]") -> None:
            self._in_flight.discard(fut)
            if fut.cancelled():
                logger.debug(f"Patch {milestone.value} on view {view_id} cancelled")
                self._release(view_id, milestone)

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait for funnel patches sent with send_funnel."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def funnel_state(self, view_id: str) -> FunnelState:
        """Milestones recorded for a view in this session."""
        return self.funnel_store.get(view_id) or FunnelState()


__all__ = [
    "AttributionBackend",
    "InMemoryAttributionBackend",
    "LoggingAttributionBackend",
    "HttpAttributionBackend",
    "PageViewRecord",
    "FunnelState",
    "ViewCell",
    "AttributionClient",
    "VIEW_DEBOUNCE_WINDOW",
    "hash_visitor",
]
