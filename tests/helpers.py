"""
cacheaside - Test Doubles

Stores and clocks shared by unit and integration tests.
"""

import socket
from collections.abc import Mapping
from typing import Any

import pytest

from cacheaside.cache.backends.memory import MemoryStore
from cacheaside.errors import StoreError


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingWriteStore(MemoryStore):
    """Memory store whose writes always fail; reads behave normally."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.mset_calls = 0

    async def mset(self, items: Mapping[str, Any], ttl: float = 0) -> None:
        self.mset_calls += 1
        raise StoreError("mset", "backend unavailable", details={"key_count": len(items)})

    async def seed(self, items: Mapping[str, Any]) -> None:
        """Populate through the real write path."""
        await super().mset(items)


class BrokenStore(MemoryStore):
    """Memory store whose reads fail with a foreign exception."""

    async def get(self, key: str, destination: Any) -> bool:
        raise ConnectionError("connection reset")

    async def mget(self, keys: list[str], destination: Any) -> None:
        raise ConnectionError("connection reset")

    async def delete(self, *keys: str) -> int:
        raise ConnectionError("connection reset")


class RecordingStore(MemoryStore):
    """Memory store that records which contract operations were called."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls: list[str] = []
        self.mset_ttls: list[float] = []

    async def get(self, key: str, destination: Any) -> bool:
        self.calls.append("get")
        return await super().get(key, destination)

    async def mget(self, keys: list[str], destination: Any) -> None:
        self.calls.append("mget")
        await super().mget(keys, destination)

    async def mset(self, items: Mapping[str, Any], ttl: float = 0) -> None:
        self.calls.append("mset")
        self.mset_ttls.append(ttl)
        await super().mset(items, ttl)

    async def delete(self, *keys: str) -> int:
        self.calls.append("delete")
        return await super().delete(*keys)


def is_redis_available(host: str = "localhost", port: int = 6379) -> bool:
    """Check if Redis server is available for testing."""
    try:
        with socket.create_connection((host, port), timeout=1):
            return True
    except OSError:
        return False


# Skip marker for Redis tests
redis_available = pytest.mark.skipif(not is_redis_available(), reason="Redis server not available")
