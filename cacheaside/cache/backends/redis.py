"""
cacheaside - Redis Store

Asynchronous Redis store with:
- JSON serialization for values (pydantic models, dataclasses and datetimes included)
- Per-key TTL in milliseconds (PX), no expiry when TTL is 0
- Namespace prefixing for safe multi-tenant usage
- MGET for batch reads, non-transactional pipelines for batch writes and existence checks

Requires: redis>=5.0 with asyncio support

Example:
    store = RedisStore(redis_url="redis://localhost:6379", namespace="users")
    await store.mset({"u:1": {"name": "Alice"}}, ttl=60)
    slot = Slot(dict)
    found = await store.get("u:1", slot)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter

from ...errors import StoreError
from ..interface import Store
from ..transport import assign_into_mapping, assign_single, ensure_mapping, ensure_slot

logger = logging.getLogger(__name__)

try:
    # redis-py asyncio client (v4+)
    from redis.asyncio import Redis
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e

# Serializes any value pydantic understands into JSON-compatible Python data
_JSONABLE = TypeAdapter(Any)

_DELETE_CHUNK_SIZE = 1000


class RedisStore(Store):
    """
    Redis store with JSON serialization and TTL.

    Notes:
    - Keys are prefixed with the configured namespace to avoid collisions.
    - Values are stored as UTF-8 JSON strings.
    - A stored JSON ``null`` is a present value, distinct from a missing key.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        namespace: str = "cacheaside",
        max_connections: int = 10,
        socket_timeout: int = 5,
        client: Redis | None = None,
    ) -> None:
        """
        Initialize Redis store.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            namespace: Prefix for all keys
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            client: Pre-built client (takes precedence over redis_url; must decode responses)
        """
        if client is None and not redis_url:
            raise ValueError("redis_url is required")

        self.namespace = namespace.strip() or "cacheaside"
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        if client is not None:
            self._client = client
        else:
            # Lazy connection; connects on first command
            self._client = Redis.from_url(  # type: ignore[call-overload]
                url=redis_url,
                decode_responses=True,
                max_connections=max_connections,
                socket_timeout=socket_timeout,
            )

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}"

    @staticmethod
    def _to_json(value: Any) -> str:
        """Serialize value to JSON string."""
        return json.dumps(
            _JSONABLE.dump_python(value, mode="json"),
            ensure_ascii=False,
            separators=(",", ":"),
        )

    @staticmethod
    def _from_json(data: str | bytes) -> Any:
        """Deserialize a JSON payload."""
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)

    @staticmethod
    def _px(ttl: float) -> int | None:
        """TTL in milliseconds for SET PX; None means no expiry."""
        if ttl <= 0:
            return None
        return max(1, int(ttl * 1000))

    # ------------ Store contract ------------

    async def get(self, key: str, destination: Any) -> bool:
        """Read a single value into a Slot."""
        ensure_slot(destination)

        try:
            data = await self._client.get(self._make_key(key))
        except Exception as e:
            logger.error(
                f"Failed to get key '{key}' from Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("get", str(e), key=key) from e

        if data is None:
            self._misses += 1
            return False

        try:
            value = self._from_json(data)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(
                f"Failed to decode JSON for key '{key}': {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
            )
            raise StoreError("get", f"corrupt payload: {e}", key=key) from e

        self._hits += 1
        assign_single(destination, value, key=key)
        return True

    async def mget(self, keys: list[str], destination: Any) -> None:
        """
        Read present keys into a mapping in one round-trip using MGET.
        Missing keys are left out of the mapping.
        """
        ensure_mapping(destination)
        if not keys:
            return

        try:
            values = await self._client.mget([self._make_key(k) for k in keys])
        except Exception as e:
            logger.error(
                f"Failed to get multiple keys from Redis: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("mget", str(e), details={"key_count": len(keys)}) from e

        # mget preserves order
        for key, raw in zip(keys, values, strict=True):
            if raw is None:
                self._misses += 1
                continue
            try:
                value = self._from_json(raw)
            except (ValueError, UnicodeDecodeError) as e:
                raise StoreError("mget", f"corrupt payload: {e}", key=key) from e
            self._hits += 1
            assign_into_mapping(destination, key, value)

    async def exists(self, keys: list[str]) -> dict[str, bool]:
        """Check existence of each key with a pipelined EXISTS per key."""
        if not keys:
            return {}

        try:
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.exists(self._make_key(key))
            results = await pipe.execute()
        except Exception as e:
            logger.error(
                f"Failed to check existence of keys in Redis: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("exists", str(e), details={"key_count": len(keys)}) from e

        return {key: bool(count) for key, count in zip(keys, results, strict=True)}

    async def mset(self, items: Mapping[str, Any], ttl: float = 0) -> None:
        """Store several values using a pipeline. Applies the same TTL to all items."""
        if not items:
            return

        px = self._px(ttl)

        payloads: dict[str, str] = {}
        for key, value in items.items():
            try:
                payloads[key] = self._to_json(value)
            except (TypeError, ValueError) as e:
                logger.error(
                    f"Failed to serialize value for key '{key}': {e}",
                    extra={"key": key, "value_type": type(value).__name__, "error": str(e)},
                )
                raise StoreError("mset", f"cannot serialize value: {e}", key=key) from e

        try:
            pipe = self._client.pipeline(transaction=False)
            for key, payload in payloads.items():
                pipe.set(self._make_key(key), payload, px=px)
            await pipe.execute()
        except Exception as e:
            logger.error(
                f"Failed to set multiple keys in Redis: {e}",
                extra={"key_count": len(items), "namespace": self.namespace, "ttl": ttl, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("mset", str(e), details={"key_count": len(items)}) from e

        self._sets += len(payloads)

    async def delete(self, *keys: str) -> int:
        """Delete keys with chunked DEL calls; returns the number removed."""
        if not keys:
            return 0

        ns_keys = [self._make_key(k) for k in keys]
        deleted_total = 0

        try:
            for i in range(0, len(ns_keys), _DELETE_CHUNK_SIZE):
                chunk = ns_keys[i : i + _DELETE_CHUNK_SIZE]
                deleted_total += int(await self._client.delete(*chunk))
        except Exception as e:
            logger.error(
                f"Failed to delete keys from Redis: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("delete", str(e), details={"key_count": len(keys)}) from e

        self._deletes += deleted_total
        return deleted_total

    # ------------ Lifecycle ------------

    async def clear(self) -> bool:
        """
        Clear all entries under the namespace.

        Implementation: SCAN match "<namespace>:*" and DEL in batches.
        """
        try:
            pattern = f"{self.namespace}:*"
            cursor = 0
            total_deleted = 0

            while True:
                cursor, keys = await self._client.scan(cursor=cursor, match=pattern, count=_DELETE_CHUNK_SIZE)
                if keys:
                    total_deleted += await self._client.delete(*keys)
                if cursor == 0:
                    break

            self._deletes += total_deleted
            logger.info(f"Cleared {total_deleted} keys from namespace '{self.namespace}'")
            return True
        except Exception as e:
            logger.error(
                f"Failed to clear store for namespace '{self.namespace}': {e}",
                extra={"namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            raise StoreError("clear", str(e)) from e

    async def get_stats(self) -> dict[str, Any]:
        """Return store statistics and basic Redis info."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "redis",
            "namespace": self.namespace,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except Exception as e:
            # INFO may be restricted; keep minimal stats
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info(f"Closed Redis store for namespace '{self.namespace}'")
        except Exception as e:
            logger.error(
                f"Error closing Redis client: {e}", extra={"namespace": self.namespace, "error": str(e)}, exc_info=True
            )
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})
