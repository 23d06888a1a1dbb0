"""
cacheaside - Cacher

Cache-aside orchestration over a Store: read from the store, call a fallback on a
miss, write the fallback's result back and hand it to the caller as if it had
been cached all along.

Error policy:
- Store read failures and fallback failures abort the call
- Write-back failures are logged, counted and absorbed; the caller already has its value
- Cancellation propagates unchanged

The Cacher holds no per-call state and no locks; it is safe to share between tasks.
Concurrent misses for the same key each run the fallback unless single_flight is enabled.

Example:
    cacher = Cacher(MemoryStore())

    async def load_user(key):
        row = await db.fetch_user(key)
        return row, row is not None

    slot = Slot(User)
    found = await cacher.get("u:1", slot, load_user, CacheOptions(ttl=300))
"""

import logging
from collections.abc import Awaitable, Mapping, MutableMapping
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import CacheAsideError, MissingFallbackError, StoreError, TypeMismatchError, WriteBackError
from .fallback import BatchFallbackFunc, FallbackFunc, call_batch_fallback, call_fallback
from .interface import Store
from .singleflight import SingleFlight
from .transport import (
    ResultMap,
    assign_into_mapping,
    assign_single,
    element_type,
    ensure_mapping,
    ensure_slot,
    missing_keys,
)

logger = logging.getLogger(__name__)


class CacheOptions(BaseModel):
    """Per-call options."""

    ttl: float = Field(default=0, ge=0, description="Time-to-live in seconds (0 = never expires)")

    model_config = ConfigDict(frozen=True)

    @field_validator("ttl", mode="before")
    @classmethod
    def coerce_timedelta(cls, v: Any) -> Any:
        """Accept timedelta as well as seconds."""
        if isinstance(v, timedelta):
            return v.total_seconds()
        return v


class Cacher:
    """Cache-aside orchestrator."""

    def __init__(
        self,
        store: Store,
        default_ttl: float = 0,
        single_flight: bool = False,
    ) -> None:
        """
        Args:
            store: Backing store, shared and never reconfigured by the Cacher
            default_ttl: TTL in seconds used when a call passes no options (0 = never expires)
            single_flight: Share one fallback call between concurrent get() misses on a key
        """
        if default_ttl < 0:
            raise ValueError("default_ttl must be non-negative")

        self.store = store
        self.default_ttl = default_ttl
        self._single_flight = SingleFlight() if single_flight else None
        self._stats = {
            "hits": 0,
            "misses": 0,
            "fallback_calls": 0,
            "fallback_errors": 0,
            "write_backs": 0,
            "write_back_errors": 0,
            "refreshes": 0,
            "deletes": 0,
            "skipped_entries": 0,
        }

    # ------------ Helpers ------------

    def _ttl(self, options: CacheOptions | None) -> float:
        return self.default_ttl if options is None else options.ttl

    @staticmethod
    async def _read(operation: str, call: Awaitable[Any], key: str | None = None) -> Any:
        """Await a store call, wrapping foreign exceptions as StoreError."""
        try:
            return await call
        except CacheAsideError:
            raise
        except Exception as e:
            logger.error(
                f"Store {operation} failed: {e}",
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            raise StoreError(operation, str(e), key=key) from e

    async def _write_back(self, operation: str, items: Mapping[str, Any], ttl: float) -> None:
        """Populate the store; failures never reach the caller."""
        if not items:
            return

        try:
            await self.store.mset(items, ttl)
        except Exception as e:
            error = WriteBackError(operation, list(items), details={"error": str(e), "error_type": type(e).__name__})
            error.__cause__ = e
            self._stats["write_back_errors"] += 1
            logger.warning(
                error.message,
                extra={"operation": operation, "key_count": len(items), "ttl": ttl, "error": str(e)},
                exc_info=error,
            )
            return

        self._stats["write_backs"] += len(items)

    async def _drop(self, operation: str, keys: list[str]) -> None:
        """Delete stale entries; failures are absorbed like write-back failures."""
        try:
            await self.store.delete(*keys)
        except Exception as e:
            self._stats["write_back_errors"] += 1
            logger.warning(
                f"Failed to drop {len(keys)} stale key(s) after {operation}: {e}",
                extra={"operation": operation, "key_count": len(keys), "error": str(e)},
                exc_info=True,
            )

    async def _run_fallback(self, fallback: FallbackFunc, key: str) -> tuple[Any, bool]:
        self._stats["fallback_calls"] += 1
        try:
            return await call_fallback(fallback, key)
        except CacheAsideError:
            self._stats["fallback_errors"] += 1
            raise

    async def _load_and_store(self, key: str, fallback: FallbackFunc, ttl: float) -> tuple[Any, bool]:
        """
        Run the fallback and populate the store once per shared flight.

        The write happens before any caller converts the value into its own slot,
        so store population does not depend on a particular destination type.
        """
        value, found = await self._run_fallback(fallback, key)
        if found:
            await self._write_back("get", {key: value}, ttl)
        return value, found

    async def _run_batch_fallback(self, fallback: BatchFallbackFunc, keys: list[str]) -> Mapping[str, Any]:
        self._stats["fallback_calls"] += 1
        try:
            return await call_batch_fallback(fallback, keys)
        except CacheAsideError:
            self._stats["fallback_errors"] += 1
            raise

    def _merge(
        self,
        operation: str,
        requested: list[str],
        results: Mapping[str, Any],
        destination: MutableMapping[str, Any],
    ) -> dict[str, Any]:
        """
        Copy fallback results into destination.

        Entries for keys that were not requested, or whose values do not fit the
        destination's element type, are skipped. Returns the accepted entries.
        """
        wanted = set(requested)
        accepted: dict[str, Any] = {}

        for key, value in results.items():
            if key not in wanted:
                self._stats["skipped_entries"] += 1
                logger.warning(
                    f"Ignoring unrequested key from batch fallback during {operation}",
                    extra={"operation": operation, "key": key},
                )
                continue
            try:
                assign_into_mapping(destination, key, value)
            except TypeMismatchError as e:
                self._stats["skipped_entries"] += 1
                logger.warning(
                    f"Ignoring incompatible value from batch fallback during {operation}: {e.message}",
                    extra={"operation": operation, "key": key, **e.details},
                )
                continue
            accepted[key] = value

        return accepted

    # ------------ Operations ------------

    async def get(
        self,
        key: str,
        destination: Any,
        fallback: FallbackFunc | None = None,
        options: CacheOptions | None = None,
    ) -> bool:
        """
        Read one key, falling back to ``fallback`` on a miss.

        Args:
            key: Cache key
            destination: Slot receiving the value
            fallback: Produces ``(value, found)`` on a miss; None disables fallback
            options: Per-call options; None uses the cacher's default TTL

        Returns:
            True if the value came from the store or the fallback, False if not found

        Raises:
            InvalidDestinationError: If destination is not a Slot
            TypeMismatchError: If the value does not fit the slot's type
            StoreError: If the store read failed
            FallbackError: If the fallback raised
        """
        ensure_slot(destination)

        if await self._read("get", self.store.get(key, destination), key=key):
            self._stats["hits"] += 1
            logger.debug("Cache hit", extra={"key": key})
            return True

        self._stats["misses"] += 1
        if fallback is None:
            return False

        ttl = self._ttl(options)
        if self._single_flight is not None:
            (value, found), _ = await self._single_flight.do(key, lambda: self._load_and_store(key, fallback, ttl))
            stored = True
        else:
            value, found = await self._run_fallback(fallback, key)
            stored = False

        if not found:
            logger.debug("Fallback reported key not found", extra={"key": key})
            return False

        assign_single(destination, value, key=key)

        if not stored:
            await self._write_back("get", {key: value}, ttl)

        return True

    async def mget(
        self,
        keys: list[str],
        destination: Any,
        fallback: BatchFallbackFunc | None = None,
        options: CacheOptions | None = None,
    ) -> None:
        """
        Read several keys; call ``fallback`` once with exactly the keys that missed.

        After a successful call destination holds the store hits plus every
        fallback entry that was accepted. Keys found nowhere stay absent.

        Args:
            keys: Cache keys
            destination: String-keyed mapping (usually a ResultMap) receiving values
            fallback: Produces ``{key: value}`` for missed keys; None disables fallback
            options: Per-call options; None uses the cacher's default TTL

        Raises:
            InvalidDestinationError: If destination is not a mapping
            StoreError: If the store read failed
            FallbackError: If the fallback raised
        """
        if not keys:
            return

        ensure_mapping(destination)

        # Read into a scratch map so entries the caller already had do not count as hits
        hits: ResultMap[Any] = ResultMap(element_type(destination))
        await self._read("mget", self.store.mget(keys, hits))
        destination.update(hits)

        missed = missing_keys(keys, hits)
        self._stats["hits"] += len(hits)
        self._stats["misses"] += len(missed)
        logger.debug(
            "Batch read",
            extra={"key_count": len(keys), "hit_count": len(hits), "miss_count": len(missed)},
        )

        if not missed or fallback is None:
            return

        results = await self._run_batch_fallback(fallback, missed)
        accepted = self._merge("mget", missed, results, destination)
        await self._write_back("mget", accepted, self._ttl(options))

    async def mdelete(self, keys: list[str]) -> int:
        """
        Delete keys from the store.

        Returns:
            Number of keys that were present and removed

        Raises:
            StoreError: If the store delete failed
        """
        if not keys:
            return 0

        deleted = await self._read("delete", self.store.delete(*keys))
        self._stats["deletes"] += deleted
        return deleted

    async def mrefresh(
        self,
        keys: list[str],
        destination: Any,
        fallback: BatchFallbackFunc | None,
        options: CacheOptions | None = None,
    ) -> None:
        """
        Force-reload keys from ``fallback`` without consulting the store.

        Every accepted result is written to the store and into destination.
        Requested keys the fallback did not return are dropped from the store.

        Raises:
            InvalidDestinationError: If destination is not a mapping
            MissingFallbackError: If fallback is None
            FallbackError: If the fallback raised
        """
        if not keys:
            return

        ensure_mapping(destination)
        if fallback is None:
            raise MissingFallbackError("mrefresh")

        requested = list(dict.fromkeys(keys))
        results = await self._run_batch_fallback(fallback, requested)
        accepted = self._merge("mrefresh", requested, results, destination)
        await self._write_back("mrefresh", accepted, self._ttl(options))

        stale = [key for key in requested if key not in accepted]
        if stale:
            await self._drop("mrefresh", stale)

        self._stats["refreshes"] += len(accepted)
        logger.debug(
            "Refreshed keys",
            extra={"key_count": len(requested), "refreshed": len(accepted), "dropped": len(stale)},
        )

    def get_stats(self) -> dict[str, Any]:
        """Cacher counters (store statistics are available from the store itself)."""
        stats: dict[str, Any] = dict(self._stats)
        stats["shared_fallbacks"] = self._single_flight.shared if self._single_flight is not None else 0
        return stats
