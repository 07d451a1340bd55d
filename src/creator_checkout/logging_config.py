"""Structured logging with checkout correlation context.

This module provides:
- Context variables identifying the checkout a log line belongs to
  (browser session, creator profile, gateway)
- A JSON formatter for shipping logs
- setup_logging() for applications embedding the checkout core
"""
from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

checkout_session_id_var: ContextVar[Optional[str]] = ContextVar("checkout_session_id", default=None)
profile_id_var: ContextVar[Optional[str]] = ContextVar("profile_id", default=None)
gateway_id_var: ContextVar[Optional[str]] = ContextVar("gateway_id", default=None)

CONTEXT_FIELDS = ("checkout_session_id", "profile_id", "gateway_id")

# LogRecord attributes that are not user-supplied extras
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", *CONTEXT_FIELDS}


class CheckoutContextFilter(logging.Filter):
    """Logging filter that stamps records with the current checkout context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.checkout_session_id = checkout_session_id_var.get()
        record.profile_id = profile_id_var.get()
        record.gateway_id = gateway_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (True) or plain text (False)
        log_file: Optional file path for logging output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(checkout_session_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CheckoutContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(CheckoutContextFilter())
        root_logger.addHandler(file_handler)


def set_checkout_context(
    checkout_session_id: Optional[str] = None,
    profile_id: Optional[str] = None,
    gateway_id: Optional[str] = None,
) -> None:
    """Set the given context fields, leaving the others untouched."""
    if checkout_session_id is not None:
        checkout_session_id_var.set(checkout_session_id)
    if profile_id is not None:
        profile_id_var.set(profile_id)
    if gateway_id is not None:
        gateway_id_var.set(gateway_id)


def get_checkout_context() -> Dict[str, Optional[str]]:
    return {
        "checkout_session_id": checkout_session_id_var.get(),
        "profile_id": profile_id_var.get(),
        "gateway_id": gateway_id_var.get(),
    }


def clear_context() -> None:
    """Clear all context variables."""
    checkout_session_id_var.set(None)
    profile_id_var.set(None)
    gateway_id_var.set(None)


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        checkout_session_id: Optional[str] = None,
        profile_id: Optional[str] = None,
        gateway_id: Optional[str] = None,
    ):
        self.values = {
            "checkout_session_id": checkout_session_id,
            "profile_id": profile_id,
            "gateway_id": gateway_id,
        }
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        variables = {
            "checkout_session_id": checkout_session_id_var,
            "profile_id": profile_id_var,
            "gateway_id": gateway_id_var,
        }
        for name, value in self.values.items():
            if value is not None:
                var = variables[name]
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore previous context."""
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


__all__ = [
    "CheckoutContextFilter",
    "StructuredFormatter",
    "setup_logging",
    "set_checkout_context",
    "get_checkout_context",
    "clear_context",
    "LogContext",
]
