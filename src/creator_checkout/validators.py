"""
Input validation utilities for checkout.

Usage:
    from creator_checkout.validators import validate_email, normalize_country_code

    email = validate_email(raw_email)  # Raises CheckoutValidationError if invalid
    country = normalize_country_code(raw)  # None if not a strict two-letter code
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional, Pattern

from .exceptions import CheckoutValidationError

logger = logging.getLogger(__name__)

# Email pattern (simplified but effective)
EMAIL_PATTERN: Pattern[str] = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

# Upper-case ISO 3166-1 alpha-2, nothing else is trusted
COUNTRY_CODE_PATTERN: Pattern[str] = re.compile(r"^[A-Z]{2}$")

CURRENCY_CODE_PATTERN: Pattern[str] = re.compile(r"^[A-Z]{3}$")

MAX_EMAIL_LENGTH = 254


def validate_email(value: Any, field_name: str = "email") -> str:
    """Validate a buyer email address.

    Args:
        value: The email to validate
        field_name: Name of the field for error messages

    Returns:
        The validated email (stripped, lowercase)

    Raises:
        CheckoutValidationError: If validation fails
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise CheckoutValidationError(
            "Please enter your email address",
            field=field_name,
        )

    if not isinstance(value, str):
        raise CheckoutValidationError(
            f"{field_name} must be a string",
            field=field_name,
        )

    value = value.strip()

    if len(value) > MAX_EMAIL_LENGTH:
        raise CheckoutValidationError(
            f"{field_name} must be at most {MAX_EMAIL_LENGTH} characters",
            field=field_name,
        )

    if not EMAIL_PATTERN.match(value):
        raise CheckoutValidationError(
            "Please enter a valid email",
            field=field_name,
        )

    return value.lower()


def is_valid_country_code(value: Any) -> bool:
    """Check a value against the strict two-letter country gate."""
    return isinstance(value, str) and bool(COUNTRY_CODE_PATTERN.match(value))


def normalize_country_code(value: Any) -> Optional[str]:
    """Normalize a raw country code, returning None when it cannot be trusted.

    Surrounding whitespace and lower case are tolerated; anything that is
    not two ASCII letters afterwards is rejected.
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip().upper()
    if not is_valid_country_code(cleaned):
        return None
    return cleaned


def validate_currency_code(value: Any, field_name: str = "currency") -> str:
    """Validate and normalize an ISO 4217 currency code."""
    if not isinstance(value, str):
        raise CheckoutValidationError(
            f"{field_name} must be a string",
            field=field_name,
        )
    code = value.strip().upper()
    if not CURRENCY_CODE_PATTERN.match(code):
        raise CheckoutValidationError(
            f"{field_name} must be a three-letter ISO currency code",
            field=field_name,
        )
    return code


def validate_minor_units(value: Any, field_name: str = "amount") -> int:
    """Validate a non-negative integer amount in minor currency units."""
    # bool is an int subclass and never a price
    if isinstance(value, bool) or not isinstance(value, int):
        raise CheckoutValidationError(
            f"{field_name} must be an integer number of minor units",
            field=field_name,
        )
    if value < 0:
        raise CheckoutValidationError(
            f"{field_name} cannot be negative",
            field=field_name,
        )
    return value


__all__ = [
    "EMAIL_PATTERN",
    "COUNTRY_CODE_PATTERN",
    "CURRENCY_CODE_PATTERN",
    "validate_email",
    "is_valid_country_code",
    "normalize_country_code",
    "validate_currency_code",
    "validate_minor_units",
]
