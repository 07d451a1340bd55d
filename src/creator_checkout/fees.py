"""Fee-split calculation for subscription checkouts.

Turns a creator's base price into who pays what under the creator's
fee-split policy:

  absorb               subscriber pays the price, creator nets price - fee
  pass_to_subscriber   price is grossed up so the creator nets the price
  split                each side pays half the rate on top of / off the price

Platform fee is 8% total (4% per side under split). A cross-border buffer
of 1.5% is added to the rate when payer and creator settle in different
countries and follows the base fee to whichever side bears it.

All amounts are integer minor units. Each rounded quantity is rounded once,
half-up, to the nearest minor unit.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from creator_checkout.models import FeeQuote, FeeRate, FeeSplitPolicy, Price

logger = logging.getLogger(__name__)

PLATFORM_FEE_RATE = Decimal("0.08")
CROSS_BORDER_BUFFER = Decimal("0.015")

# Processor cost estimates by currency: (percent, fixed minor units).
# Informational only, never part of the split.
PROCESSOR_FEES: dict[str, tuple[Decimal, int]] = {
    "USD": (Decimal("0.029"), 30),
    "EUR": (Decimal("0.029"), 25),
    "GBP": (Decimal("0.029"), 20),
    "CAD": (Decimal("0.029"), 30),
    "AUD": (Decimal("0.029"), 30),
    "ZAR": (Decimal("0.029"), 500),
    "KES": (Decimal("0.015"), 5000),
    "NGN": (Decimal("0.015"), 10000),
    "GHS": (Decimal("0.019"), 0),
}
DEFAULT_PROCESSOR_FEE = (Decimal("0.029"), 30)

ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW",
    "MGA", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "NGN": "₦",
    "ZAR": "R",
    "KES": "KSh",
    "GHS": "₵",
    "CAD": "CA$",
    "AUD": "A$",
}

RateLike = Union[FeeRate, Decimal, int, float, str]


def round_minor(value: Decimal) -> int:
    """Round to the nearest minor unit, half-up."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def estimate_processor_fee(gross_amount: int, currency: str) -> int:
    """Estimate what the payment processor will take from a gross charge."""
    if gross_amount <= 0:
        return 0
    percent, fixed = PROCESSOR_FEES.get(currency.upper(), DEFAULT_PROCESSOR_FEE)
    return round_minor(Decimal(gross_amount) * percent) + fixed


def effective_rate(
    rate: RateLike,
    *,
    cross_border: bool = False,
    buffer: Optional[RateLike] = None,
) -> FeeRate:
    """Base rate plus the cross-border buffer when it applies."""
    base = FeeRate.of(rate)
    if not cross_border:
        return base
    return base + FeeRate.of(CROSS_BORDER_BUFFER if buffer is None else buffer)


def quote(
    price: Price,
    policy: FeeSplitPolicy,
    rate: RateLike = PLATFORM_FEE_RATE,
    *,
    cross_border: bool = False,
    buffer: Optional[RateLike] = None,
) -> FeeQuote:
    """
    Split a price between subscriber and creator.

    Args:
        price: Creator's base price (never negative by construction)
        policy: Active fee-split policy
        rate: Total platform fee rate
        cross_border: Add the cross-border buffer to the rate
        buffer: Override the cross-border buffer rate

    Returns:
        FeeQuote with subscriber_pays == creator_receives + total_fee_amount

    Example:
        >>> q = quote(Price(1000), FeeSplitPolicy.ABSORB, "0.09")
        >>> (q.subscriber_pays, q.creator_receives, q.total_fee_amount)
        (1000, 910, 90)
    """
    fee_rate = effective_rate(rate, cross_border=cross_border, buffer=buffer)
    policy = FeeSplitPolicy(policy)
    amount = Decimal(price.amount)

    if policy == FeeSplitPolicy.ABSORB:
        subscriber_pays = price.amount
        creator_receives = round_minor(amount * (1 - fee_rate.value))
        subscriber_fee = 0
        creator_fee = subscriber_pays - creator_receives
    elif policy == FeeSplitPolicy.PASS_TO_SUBSCRIBER:
        subscriber_pays = round_minor(amount / (1 - fee_rate.value))
        creator_receives = price.amount
        subscriber_fee = subscriber_pays - creator_receives
        creator_fee = 0
    else:
        # Rounded independently on each side; the two may differ.
        subscriber_fee = round_minor(amount * fee_rate.half)
        creator_fee = round_minor(amount * fee_rate.half)
        subscriber_pays = price.amount + subscriber_fee
        creator_receives = price.amount - creator_fee

    total_fee = subscriber_pays - creator_receives
    processor_fee = estimate_processor_fee(subscriber_pays, price.currency)

    return FeeQuote(
        subscriber_pays=subscriber_pays,
        creator_receives=creator_receives,
        subscriber_fee=subscriber_fee,
        creator_fee=creator_fee,
        total_fee_amount=total_fee,
        fee_rate_percent=fee_rate.percent,
        policy=policy,
        currency=price.currency,
        base_amount=price.amount,
        cross_border=cross_border,
        estimated_processor_fee=processor_fee,
        estimated_margin=total_fee - processor_fee,
    )


def format_amount(amount: int, currency: str) -> str:
    """Format a minor-unit amount for display, e.g. ``$10.99`` or ``¥500``."""
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    if code in ZERO_DECIMAL_CURRENCIES:
        return f"{sign}{symbol}{amount:,}"
    return f"{sign}{symbol}{amount // 100:,}.{amount % 100:02d}"


def format_rate(rate: RateLike) -> str:
    """Format a rate as a percentage with one decimal, e.g. ``8.0%``."""
    percent = FeeRate.of(rate).percent.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{percent}%"


__all__ = [
    "PLATFORM_FEE_RATE",
    "CROSS_BORDER_BUFFER",
    "PROCESSOR_FEES",
    "ZERO_DECIMAL_CURRENCIES",
    "round_minor",
    "estimate_processor_fee",
    "effective_rate",
    "quote",
    "format_amount",
    "format_rate",
]
