"""
cacheaside - Memory Store

In-process store with LRU eviction and per-key TTL.
Safe for concurrent use by tasks sharing one event loop.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any

from ...errors import StoreError
from ..interface import Store
from ..transport import assign_into_mapping, assign_single, ensure_mapping, ensure_slot

logger = logging.getLogger(__name__)


class MemoryStore(Store):
    """
    In-memory store with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Per-key absolute expiry (an entry is gone once its TTL has elapsed)
    - Values kept as Python objects; conversion happens in transport
    - O(1) get/set/delete operations
    """

    def __init__(
        self,
        max_size: int = 1000,
        namespace: str = "cacheaside",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize memory store.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            namespace: Key namespace/prefix
            clock: Monotonic time source in seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.namespace = namespace
        self._clock = clock

        # key -> (value, expiry); expiry None means no expiry
        self._cache: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}"

    def _is_expired(self, expiry: float | None) -> bool:
        if expiry is None:
            return False
        return self._clock() >= expiry

    def _lookup(self, key: str) -> tuple[bool, Any]:
        """Find a live entry. Caller must hold the lock."""
        cache_key = self._make_key(key)
        entry = self._cache.get(cache_key)
        if entry is None:
            self._misses += 1
            return False, None

        value, expiry = entry
        if self._is_expired(expiry):
            del self._cache[cache_key]
            self._misses += 1
            return False, None

        # Mark as recently used
        self._cache.move_to_end(cache_key)
        self._hits += 1
        return True, value

    def _expiry_for(self, ttl: float) -> float | None:
        return self._clock() + ttl if ttl > 0 else None

    async def get(self, key: str, destination: Any) -> bool:
        """Read a single value into a Slot."""
        ensure_slot(destination)

        try:
            async with self._lock:
                found, value = self._lookup(key)
        except Exception as e:
            logger.error(
                f"Unexpected error getting key '{key}' from memory store: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("get", str(e), key=key) from e

        if not found:
            return False

        assign_single(destination, value, key=key)
        return True

    async def mget(self, keys: list[str], destination: Any) -> None:
        """Read present keys into a mapping."""
        ensure_mapping(destination)
        if not keys:
            return

        try:
            async with self._lock:
                hits: dict[str, Any] = {}
                for key in keys:
                    found, value = self._lookup(key)
                    if found:
                        hits[key] = value
        except Exception as e:
            logger.error(
                f"Unexpected error getting multiple keys from memory store: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("mget", str(e), details={"key_count": len(keys)}) from e

        for key, value in hits.items():
            assign_into_mapping(destination, key, value)

    async def exists(self, keys: list[str]) -> dict[str, bool]:
        """Check which keys are present and not expired."""
        result: dict[str, bool] = {}

        try:
            async with self._lock:
                for key in keys:
                    cache_key = self._make_key(key)
                    entry = self._cache.get(cache_key)
                    if entry is None:
                        result[key] = False
                    elif self._is_expired(entry[1]):
                        del self._cache[cache_key]
                        result[key] = False
                    else:
                        result[key] = True
        except Exception as e:
            logger.error(
                f"Unexpected error checking keys in memory store: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("exists", str(e), details={"key_count": len(keys)}) from e

        return result

    async def mset(self, items: Mapping[str, Any], ttl: float = 0) -> None:
        """Store several values with a shared TTL."""
        if not items:
            return

        try:
            async with self._lock:
                expiry = self._expiry_for(ttl)

                for key, value in items.items():
                    cache_key = self._make_key(key)

                    if cache_key not in self._cache and len(self._cache) >= self.max_size:
                        evicted_key, _ = self._cache.popitem(last=False)
                        self._evictions += 1
                        logger.debug(f"Evicted key from memory store: {evicted_key}")

                    self._cache[cache_key] = (value, expiry)
                    self._cache.move_to_end(cache_key)
                    self._sets += 1
        except Exception as e:
            logger.error(
                f"Unexpected error setting multiple keys in memory store: {e}",
                extra={"key_count": len(items), "namespace": self.namespace, "ttl": ttl, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("mset", str(e), details={"key_count": len(items)}) from e

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many were present."""
        if not keys:
            return 0

        try:
            async with self._lock:
                count = 0
                for key in keys:
                    cache_key = self._make_key(key)
                    entry = self._cache.pop(cache_key, None)
                    if entry is None:
                        continue
                    # An expired entry was already absent from the caller's point of view
                    if not self._is_expired(entry[1]):
                        count += 1

                self._deletes += count
        except Exception as e:
            logger.error(
                f"Unexpected error deleting keys from memory store: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("delete", str(e), details={"key_count": len(keys)}) from e

        return count

    async def clear(self) -> bool:
        """Clear all entries."""
        async with self._lock:
            size = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared {size} entries from memory store namespace '{self.namespace}'")
            return True

    async def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
                "namespace": self.namespace,
            }

    async def close(self) -> None:
        """Memory store holds no external resources."""
        logger.debug(f"Memory store closed for namespace '{self.namespace}'")

