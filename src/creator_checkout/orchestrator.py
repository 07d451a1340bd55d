"""
Checkout orchestration for a creator's purchase page.

This module drives one buyer from "intent to pay" to "verified paid":
- Payer country detection and view recording on mount
- Guarded submit: quote, route, create checkout, hand off to the gateway
- One automatic verification per returned reference
- Explicit user-driven re-verification and support escalation
- Funnel milestones along the way

State machine:
    idle -> processing -> redirecting -> (gateway) -> verifying -> success
                                                                 \\-> idle + payment issue

Failure semantics:
- Creation failures happen before any charge. The session goes back to idle
  with a retryable message and the buyer may simply submit again.
- Verification failures happen after a possible charge. The session shows a
  payment issue and nothing is re-verified until the buyer asks for it.
- Attribution failures never reach the buyer.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from creator_checkout import fees
from creator_checkout.analytics import (
    AttributionClient,
    HttpAttributionBackend,
    LoggingAttributionBackend,
)
from creator_checkout.config import CheckoutSettings, get_settings
from creator_checkout.connectors import (
    CheckoutConnector,
    HttpCheckoutConnector,
    StubCheckoutConnector,
)
from creator_checkout.exceptions import (
    CheckoutCreationError,
    CheckoutValidationError,
    GatewayNotConfiguredError,
    PaymentVerificationError,
)
from creator_checkout.geo import PayerCountryDetector
from creator_checkout.logging_config import LogContext
from creator_checkout.models import (
    CheckoutRequest,
    CheckoutSession,
    CheckoutStatus,
    CreatorProfile,
    FunnelMilestone,
    PayerContext,
    PaymentIssue,
    ReferrerMeta,
    ReturnParams,
    VerificationResult,
)
from creator_checkout.returns import parse_return
from creator_checkout.router import GatewayRouter
from creator_checkout.session import BrowserSession
from creator_checkout.storage import PaymentConfirmationFlag
from creator_checkout.validators import validate_email

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Union[None, Awaitable[None]]]

# User-facing messages
MSG_NO_PRICE = "This creator has not set a price yet"
MSG_PAYMENTS_NOT_READY = "This creator has not set up payments yet"
MSG_START_FAILED = "Failed to start payment"
MSG_VERIFY_FAILED = "Payment verification failed"
MSG_VERIFY_UNAVAILABLE = "Could not verify payment"
MSG_INVALID_SESSION = "Invalid payment session"
MSG_CANCELLED = "Payment was cancelled. You have not been charged."


def _log_navigation(url: str) -> None:
    logger.info(f"Navigate to {url}")


class CheckoutOrchestrator:
    """
    Checkout state machine for one mount of a creator's purchase page.

    The page creates an orchestrator per mount and passes the tab's
    BrowserSession, so anything that must survive a remount (view id,
    verification guard, funnel bookkeeping) outlives the orchestrator.

    Usage:
        orchestrator = CheckoutOrchestrator(profile, connector, attribution, session)
        await orchestrator.mount(return_url)
        url = await orchestrator.submit("buyer@example.com")
    """

    def __init__(
        self,
        profile: CreatorProfile,
        connector: CheckoutConnector,
        attribution: AttributionClient,
        browser_session: BrowserSession,
        router: Optional[GatewayRouter] = None,
        detector: Optional[PayerCountryDetector] = None,
        settings: Optional[CheckoutSettings] = None,
        navigator: Optional[Navigator] = None,
        is_owner: bool = False,
        referrer: Optional[ReferrerMeta] = None,
    ):
        self.profile = profile
        self.connector = connector
        self.attribution = attribution
        self.browser_session = browser_session
        self.settings = settings or get_settings()
        self.router = router or GatewayRouter(self.settings.regional_countries)
        self.detector = detector
        self.navigator: Navigator = navigator or _log_navigation
        self.is_owner = is_owner
        self.referrer = referrer or ReferrerMeta()

        self.confirmation = PaymentConfirmationFlag(
            browser_session.durable_storage,
            key=self.settings.payment_confirmed_key,
            ttl_seconds=self.settings.payment_confirmed_ttl_seconds,
        )
        self.session = CheckoutSession()
        self._detection: Optional["asyncio.Task[Optional[str]]"] = None
        self._mounted = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _log_context(self, gateway_id: Optional[str] = None) -> LogContext:
        return LogContext(
            checkout_session_id=self.browser_session.session_id,
            profile_id=self.profile.profile_id,
            gateway_id=gateway_id,
        )

    async def mount(self, return_url: Union[str, httpx.URL, None] = None) -> CheckoutSession:
        """
        Bring the purchase page up.

        Starts payer-country detection and the view record in the
        background, then handles a gateway return if the URL carries one.
        Never raises.
        """
        if self._mounted:
            return self.session
        self._mounted = True

        with self._log_context():
            params = parse_return(return_url)
            self._start_detection()

            # A returning buyer already has a view from before the redirect
            if not self.is_owner and not params.success:
                self.attribution.start_view(
                    self.browser_session.view_cell,
                    self.profile.profile_id,
                    self.referrer,
                )
            self.session.view_id = self.browser_session.view_cell.view_id

            if params.success:
                await self._handle_success_return(params)
            elif params.cancelled:
                self.session.notice = MSG_CANCELLED

        return self.session

    def _start_detection(self) -> None:
        if self.detector is None or self._detection is not None:
            return
        self._detection = asyncio.ensure_future(self.detector.detect())

    def payer_country(self) -> Optional[str]:
        """Country detected so far. Never waits for detection."""
        task = self._detection
        if task is not None and task.done() and not task.cancelled():
            if task.exception() is None:
                return task.result()
            return None
        if self.detector is not None:
            return self.detector.cached()
        return None

    async def settle(self) -> None:
        """Wait for background work: detection, the view record and funnel patches."""
        pending = [
            t for t in (self._detection, self.browser_session.view_cell.pending)
            if t is not None and not t.done()
        ]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.attribution.drain()
        if self.browser_session.view_cell.view_id:
            self.session.view_id = self.browser_session.view_cell.view_id

    def unmount(self) -> None:
        """Stop background detection. Session-scoped state is kept."""
        if self._detection is not None and not self._detection.done():
            self._detection.cancel()
        self._detection = None
        self._mounted = False

    def navigate_away(self) -> None:
        """The buyer left the purchase page: drop session-scoped state."""
        self.unmount()
        self.browser_session.discard()
        self.session = CheckoutSession()

    # =========================================================================
    # Forward path
    # =========================================================================

    async def mark_payment_reached(self) -> bool:
        """Record that the buyer saw the payment section."""
        view_id = self.browser_session.view_cell.view_id
        return await self.attribution.patch_funnel(view_id, FunnelMilestone.REACHED_PAYMENT)

    def _guard_errors(self) -> Dict[str, str]:
        if self.profile.price.is_zero:
            return {"price": MSG_NO_PRICE}
        if not self.profile.payments_ready:
            return {"payments": MSG_PAYMENTS_NOT_READY}
        return {}

    def _reference_param(self, gateway) -> Optional[str]:
        provider = self.profile.gateways.provider(gateway)
        if provider is None or not provider.reference_params:
            return None
        return provider.reference_params[0]

    def _start_failed(self, message: str = MSG_START_FAILED) -> None:
        self.session.status = CheckoutStatus.IDLE
        self.session.error = message

    async def submit(self, email: Optional[str]) -> Optional[str]:
        """
        Start a checkout for the buyer.

        Returns:
            The gateway redirect URL, or None if the session stayed idle
            (guard failure or creation failure; see session state)
        """
        session = self.session
        if session.status != CheckoutStatus.IDLE or session.has_possible_charge:
            logger.debug(f"Ignoring submit in state {session.status.value}")
            return None

        session.clear_messages()

        try:
            email = validate_email(email)
        except CheckoutValidationError as e:
            session.field_errors[e.field or "email"] = e.message
            return None

        guard_errors = self._guard_errors()
        if guard_errors:
            session.field_errors.update(guard_errors)
            return None

        payer = PayerContext(email=email, country=self.payer_country())
        try:
            selection = self.router.select(
                self.profile.gateways,
                payer.country,
                creator=self.profile.username,
            )
        except GatewayNotConfiguredError as e:
            logger.warning(f"No gateway configured for {self.profile.username}")
            session.error = e.message
            return None

        # A bare success return left an issue with nothing charged
        session.issue = None
        session.status = CheckoutStatus.PROCESSING
        session.selection = selection
        session.payer = payer

        with self._log_context(selection.gateway_id):
            view_id = await self.attribution.ensure_view(
                self.browser_session.view_cell,
                self.profile.profile_id,
                self.referrer,
            )
            session.view_id = view_id
            self.attribution.send_funnel(view_id, FunnelMilestone.STARTED_CHECKOUT)

            price = self.profile.price
            try:
                session.quote = fees.quote(
                    price,
                    self.profile.fee_policy,
                    self.settings.platform_fee_rate,
                    cross_border=selection.is_cross_border,
                    buffer=self.settings.cross_border_buffer,
                )
            except CheckoutValidationError as e:
                logger.error(f"Could not quote {price.amount} {price.currency} for {self.profile.username}: {e.message}")
                self._start_failed()
                return None

            # The backend prices the charge from the base amount
            request = CheckoutRequest(
                creator_id=self.profile.username,
                amount=price.amount,
                currency=price.currency,
                interval=self.profile.interval,
                email=payer.email,
                gateway_hint=selection.gateway_id,
                view_id=view_id,
                payer_country=payer.country,
                return_reference_param=self._reference_param(selection.gateway),
            )

            try:
                response = await self.connector.create_checkout(request)
            except CheckoutCreationError as e:
                logger.warning(f"Checkout creation failed for {self.profile.username}: {e.message}")
                self._start_failed(e.message or MSG_START_FAILED)
                return None
            except Exception:
                logger.exception(f"Unexpected checkout creation failure for {self.profile.username}")
                self._start_failed()
                return None

            session.status = CheckoutStatus.REDIRECTING
            session.redirect_url = response.redirect_url
            logger.info(
                f"Checkout created for {self.profile.username} via {selection.gateway_id}, "
                f"amount={price.amount} {price.currency}"
            )

            try:
                result = self.navigator(response.redirect_url)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Navigation to {response.redirect_url} failed")
                session.redirect_url = None
                self._start_failed()
                return None

        return response.redirect_url

    # =========================================================================
    # Return path
    # =========================================================================

    def _issue(self, message: str, reference: Optional[str], gateway_id: Optional[str], can_retry: bool) -> None:
        self.session.status = CheckoutStatus.IDLE
        self.session.issue = PaymentIssue(
            message=message,
            reference=reference,
            gateway_id=gateway_id,
            can_retry=can_retry,
            support_email=self.profile.support_email or self.settings.support_email,
        )

    async def _handle_success_return(self, params: ReturnParams) -> None:
        resolved = self.router.resolve_return(self.profile.gateways, params)
        if resolved is None:
            logger.warning(f"Success return without a usable reference for {self.profile.username}")
            self._issue(MSG_INVALID_SESSION, None, None, can_retry=False)
            return

        _, provider, reference = resolved
        self.session.gateway_reference = reference
        self.session.status = CheckoutStatus.VERIFYING

        verification = self.browser_session.verification_for(reference)
        if verification is None:
            verification = asyncio.ensure_future(self._verify(provider.gateway_id, reference))
            # Claimed before the first await: a remount joins this call
            self.browser_session.verifications[reference] = verification
        else:
            logger.debug(f"Reference {reference} already verified in this session")

        result = await asyncio.shield(verification)
        await self._apply_verification(provider.gateway_id, reference, result)

    async def _verify(self, gateway_id: str, reference: str) -> VerificationResult:
        """Call verify_payment once, folding failures into the result."""
        with self._log_context(gateway_id):
            try:
                return await self.connector.verify_payment(gateway_id, reference)
            except PaymentVerificationError as e:
                logger.warning(f"Verification of {reference} failed: {e.message}")
                return VerificationResult(
                    verified=False,
                    status="error",
                    reference=reference,
                    error=MSG_VERIFY_UNAVAILABLE,
                )
            except Exception:
                logger.exception(f"Unexpected error verifying {reference}")
                return VerificationResult(
                    verified=False,
                    status="error",
                    reference=reference,
                    error=MSG_VERIFY_UNAVAILABLE,
                )

    async def _apply_verification(
        self,
        gateway_id: str,
        reference: str,
        result: VerificationResult,
    ) -> None:
        if self.session.status == CheckoutStatus.SUCCESS:
            return

        if not result.verified:
            message = MSG_VERIFY_UNAVAILABLE if result.status == "error" else MSG_VERIFY_FAILED
            logger.warning(f"Payment {reference} not verified (status={result.status})")
            self._issue(message, reference, gateway_id, can_retry=True)
            return

        self.session.status = CheckoutStatus.SUCCESS
        self.session.issue = None
        self.session.clear_messages()
        self.confirmation.set(reference)
        logger.info(f"Payment {reference} verified for {self.profile.username}")

        view_id = self.browser_session.view_cell.view_id
        self.session.view_id = view_id
        self.attribution.send_funnel(view_id, FunnelMilestone.COMPLETED_CHECKOUT)

    async def retry_verification(self) -> bool:
        """
        Re-verify the reference behind the current payment issue.

        Only runs on explicit user action. Returns True if the payment is
        now verified.
        """
        issue = self.session.issue
        if self.session.status != CheckoutStatus.IDLE or issue is None:
            return self.session.status == CheckoutStatus.SUCCESS
        if not issue.can_retry or not issue.reference or not issue.gateway_id:
            return False

        self.session.retry_count += 1
        self.session.status = CheckoutStatus.VERIFYING
        logger.info(f"Retrying verification of {issue.reference} (attempt {self.session.retry_count})")

        verification = asyncio.ensure_future(self._verify(issue.gateway_id, issue.reference))
        self.browser_session.verifications[issue.reference] = verification
        result = await asyncio.shield(verification)
        await self._apply_verification(issue.gateway_id, issue.reference, result)
        return self.session.status == CheckoutStatus.SUCCESS

    def support_escalation(self) -> Dict[str, Any]:
        """Details a buyer with a payment issue sends to support."""
        issue = self.session.issue
        return {
            "supportEmail": (issue.support_email if issue else None)
            or self.profile.support_email
            or self.settings.support_email,
            "reference": issue.reference if issue else self.session.gateway_reference,
            "gatewayId": issue.gateway_id if issue else None,
            "creator": self.profile.username,
            "message": issue.message if issue else None,
            "retryCount": self.session.retry_count,
        }

    def has_recent_payment_confirmation(self) -> bool:
        """Whether a payment was confirmed in this browser recently. Display only."""
        return self.confirmation.is_recent()


def build_connector(settings: CheckoutSettings) -> CheckoutConnector:
    """Checkout connector for the configured payments mode."""
    if settings.payments_mode == "stub":
        logger.warning("Payments running in stub mode")
        return StubCheckoutConnector(settings.app_url)
    return HttpCheckoutConnector(settings.api_base_url, timeout=settings.request_timeout_seconds)


def create_orchestrator(
    profile: CreatorProfile,
    browser_session: Optional[BrowserSession] = None,
    settings: Optional[CheckoutSettings] = None,
    navigator: Optional[Navigator] = None,
    is_owner: bool = False,
    referrer: Optional[ReferrerMeta] = None,
) -> CheckoutOrchestrator:
    """
    Build an orchestrator wired from settings.

    Owner previews log page views instead of recording them.
    """
    settings = settings or get_settings()
    browser_session = browser_session or BrowserSession.from_settings(settings)

    backend = (
        LoggingAttributionBackend()
        if is_owner
        else HttpAttributionBackend(settings.api_base_url, timeout=settings.analytics_timeout_seconds)
    )
    attribution = AttributionClient(
        backend,
        funnel_store=browser_session.funnel_store,
        timeout_seconds=settings.analytics_timeout_seconds,
    )
    detector = PayerCountryDetector(
        browser_session.storage,
        lookup_url=settings.geo_lookup_url,
        cache_key=settings.geo_cache_key,
        timeout=settings.geo_timeout_seconds,
    )

    return CheckoutOrchestrator(
        profile=profile,
        connector=build_connector(settings),
        attribution=attribution,
        browser_session=browser_session,
        router=GatewayRouter(settings.regional_countries),
        detector=detector,
        settings=settings,
        navigator=navigator,
        is_owner=is_owner,
        referrer=referrer,
    )


__all__ = [
    "CheckoutOrchestrator",
    "Navigator",
    "build_connector",
    "create_orchestrator",
]
