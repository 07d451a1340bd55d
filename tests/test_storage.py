"""
Tests for creator_checkout.storage.

Tests cover:
- Key/value storage with expiry
- Bounded session store eviction
- Payment confirmation flag
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from creator_checkout.storage import (
    BoundedStore,
    InMemoryStorage,
    PaymentConfirmationFlag,
    UnavailableStorage,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_set_and_get(self):
        """Should store and retrieve values."""
        storage = InMemoryStorage()
        storage.set("k", "v")

        assert storage.get("k") == "v"
        assert storage.get("missing") is None

    def test_expiry(self):
        """Should drop values once their TTL passes."""
        clock = FakeClock()
        storage = InMemoryStorage(clock=clock)
        storage.set("k", "v", ttl_seconds=60)

        clock.now += 59
        assert storage.get("k") == "v"

        clock.now += 1
        assert storage.get("k") is None
        assert len(storage) == 0

    def test_delete_and_clear(self):
        """Should delete single keys and clear everything."""
        storage = InMemoryStorage()
        storage.set("a", "1")
        storage.set("b", "2")

        assert storage.delete("a") is True
        assert storage.delete("a") is False

        storage.clear()
        assert storage.get("b") is None


class TestBoundedStore:
    """Tests for BoundedStore."""

    def test_evicts_oldest(self):
        """Should evict the oldest entry past the cap."""
        store: BoundedStore[str, int] = BoundedStore(max_entries=2)
        store.set("a", 1)
        store.set("b", 2)
        store.set("c", 3)

        assert "a" not in store
        assert list(store) == ["b", "c"]
        assert len(store) == 2

    def test_update_refreshes_position(self):
        """Should treat an updated key as newest."""
        store: BoundedStore[str, int] = BoundedStore(max_entries=2)
        store.set("a", 1)
        store.set("b", 2)
        store.set("a", 10)
        store.set("c", 3)

        assert store.get("a") == 10
        assert "b" not in store

    def test_pop_and_clear(self):
        store: BoundedStore[str, int] = BoundedStore()
        store.set("a", 1)

        assert store.pop("a") == 1
        assert store.pop("a") is None

        store.set("b", 2)
        store.clear()
        assert len(store) == 0

    def test_rejects_zero_cap(self):
        with pytest.raises(ValueError):
            BoundedStore(max_entries=0)


class TestPaymentConfirmationFlag:
    """Tests for PaymentConfirmationFlag."""

    def test_recent_within_ttl(self):
        """Should report a confirmation until its TTL passes."""
        clock = FakeClock()
        flag = PaymentConfirmationFlag(InMemoryStorage(clock=clock), ttl_seconds=300)

        flag.set("cs_123")
        assert flag.is_recent()
        assert flag.get() == "cs_123"

        clock.now += 300
        assert not flag.is_recent()

    def test_clear(self):
        flag = PaymentConfirmationFlag(InMemoryStorage())
        flag.set("cs_123")
        flag.clear()

        assert not flag.is_recent()

    def test_unavailable_storage_is_silent(self):
        """Should never raise when storage is blocked."""
        flag = PaymentConfirmationFlag(UnavailableStorage())

        flag.set("cs_123")
        flag.clear()
        assert flag.get() is None
        assert not flag.is_recent()
