"""Parsing of the URL a gateway sends the buyer back to."""
from __future__ import annotations

from typing import Mapping, Optional, Union

import httpx

from creator_checkout.models import ReturnParams

# Signal parameters; every other non-empty parameter may carry a reference
FLAG_PARAMS = frozenset({"success", "canceled", "cancelled"})

_TRUE = {"true", "1", "yes"}


def _flag(params: Mapping[str, str], name: str) -> Optional[bool]:
    raw = params.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in _TRUE


def parse_return(source: Union[str, httpx.URL, Mapping[str, str], None]) -> ReturnParams:
    """
    Read success/cancel signals and candidate references from a return URL.

    Accepts a full URL, a bare query string (``"?success=true&..."``) or an
    already-parsed mapping. ``success=false``, ``canceled=true`` and
    ``cancelled=true`` all count as a cancellation. Which parameter holds
    the reference is gateway configuration, resolved by the router.
    """
    if source is None:
        return ReturnParams()

    if isinstance(source, Mapping):
        params: Mapping[str, str] = {k: str(v) for k, v in source.items()}
    else:
        url = source if isinstance(source, httpx.URL) else httpx.URL(source)
        params = dict(url.params)

    success_flag = _flag(params, "success")
    cancelled = bool(
        _flag(params, "canceled")
        or _flag(params, "cancelled")
        or success_flag is False
    )
    success = bool(success_flag) and not cancelled

    references = {
        name: value.strip()
        for name, value in params.items()
        if name not in FLAG_PARAMS and value and value.strip()
    }

    return ReturnParams(success=success, cancelled=cancelled, references=references)


__all__ = ["FLAG_PARAMS", "parse_return"]
