"""Checkout connector implementations."""
from creator_checkout.connectors.base import CheckoutConnector
from creator_checkout.connectors.http import HttpCheckoutConnector
from creator_checkout.connectors.stub import StubCheckoutConnector

__all__ = [
    "CheckoutConnector",
    "HttpCheckoutConnector",
    "StubCheckoutConnector",
]
