"""
Client-side storage for the checkout core.

Two scopes exist on a purchase page:
- Session storage: survives re-renders and remounts, dropped when the
  buyer navigates away (payer country cache).
- Durable storage: survives the redirect round-trip to the gateway and
  back, always written with an explicit expiry (payment-confirmed flag).

Both are KeyValueStorage implementations. BoundedStore is the
session-scoped map with an eviction cap used for funnel bookkeeping.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], float]


class KeyValueStorage(ABC):
    """Abstract string key/value storage with optional per-key expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get a value, or None if missing or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        """Store a value, expiring after ttl_seconds when given."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a value. Returns True if it existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every value."""
        pass


@dataclass
class _Entry:
    value: str
    expires_at: Optional[float] = None


class InMemoryStorage(KeyValueStorage):
    """
    In-memory storage for development and testing.

    Stands in for browser sessionStorage / localStorage.
    """

    def __init__(self, clock: Clock = time.time):
        self._entries: Dict[str, _Entry] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class UnavailableStorage(KeyValueStorage):
    """Storage that always fails, like a browser with storage blocked."""

    def get(self, key: str) -> Optional[str]:
        raise PermissionError("storage is not available")

    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        raise PermissionError("storage is not available")

    def delete(self, key: str) -> bool:
        raise PermissionError("storage is not available")

    def clear(self) -> None:
        raise PermissionError("storage is not available")


class BoundedStore(Generic[K, V]):
    """Insertion-ordered map that evicts its oldest entries past max_entries."""

    def __init__(self, max_entries: int = 256):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self._max_entries = max_entries

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        return self._data.get(key, default)

    def set(self, key: K, value: V) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = value
        while len(self._data) > self._max_entries:
            evicted, _ = self._data.popitem(last=False)
            logger.debug("Evicted %s from bounded store", evicted)

    def pop(self, key: K) -> Optional[V]:
        return self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)


class PaymentConfirmationFlag:
    """
    Short-lived "payment confirmed" marker in durable storage.

    Bridges UI continuity across the gateway redirect. It is never the
    source of truth for whether a payment succeeded.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = "payment_confirmed",
        ttl_seconds: int = 300,
    ):
        self.storage = storage
        self.key = key
        self.ttl_seconds = ttl_seconds

    def set(self, reference: str) -> None:
        try:
            self.storage.set(self.key, reference, ttl_seconds=self.ttl_seconds)
        except Exception as e:
            logger.debug(f"Could not write payment confirmation flag: {e}")

    def get(self) -> Optional[str]:
        try:
            return self.storage.get(self.key)
        except Exception:
            return None

    def is_recent(self) -> bool:
        return self.get() is not None

    def clear(self) -> None:
        try:
            self.storage.delete(self.key)
        except Exception as e:
            logger.debug(f"Could not clear payment confirmation flag: {e}")


__all__ = [
    "KeyValueStorage",
    "InMemoryStorage",
    "UnavailableStorage",
    "BoundedStore",
    "PaymentConfirmationFlag",
]
