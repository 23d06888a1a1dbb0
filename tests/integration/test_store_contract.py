"""
cacheaside - Store Contract Tests

The same behaviour checks run against every store backend, with a Cacher on top.
Redis cases are skipped when no server is available.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from pydantic import BaseModel

from cacheaside.cache.backends.memory import MemoryStore
from cacheaside.cache.cacher import CacheOptions, Cacher
from cacheaside.cache.interface import Store
from cacheaside.cache.transport import ResultMap, Slot
from tests.helpers import is_redis_available


class Product(BaseModel):
    sku: str
    price: float


@pytest.fixture(
    params=[
        "memory",
        pytest.param(
            "redis",
            marks=[
                pytest.mark.redis,
                pytest.mark.skipif(not is_redis_available(), reason="Redis server not available"),
            ],
        ),
    ]
)
async def store(request: pytest.FixtureRequest, test_redis_url: str) -> AsyncGenerator[Store, None]:
    if request.param == "memory":
        backend: Store = MemoryStore(namespace="contract")
    else:
        from cacheaside.cache.backends.redis import RedisStore

        backend = RedisStore(redis_url=test_redis_url, namespace="contract")

    yield backend

    await backend.clear()
    await backend.close()


class TestStoreContract:
    async def test_get_hit_and_miss(self, store: Store) -> None:
        await store.mset({"a": 1})

        hit: Slot[int] = Slot(int)
        assert await store.get("a", hit) is True
        assert hit.value == 1

        miss: Slot[int] = Slot(int)
        assert await store.get("b", miss) is False
        assert miss.filled is False

    async def test_mget_leaves_missing_keys_absent(self, store: Store) -> None:
        await store.mset({"a": 1, "c": 3})

        result: ResultMap[int] = ResultMap(int)
        await store.mget(["a", "b", "c"], result)

        assert result == {"a": 1, "c": 3}

    async def test_mget_empty(self, store: Store) -> None:
        result: ResultMap[Any] = ResultMap()
        await store.mget([], result)
        assert result == {}

    async def test_exists_reports_every_key(self, store: Store) -> None:
        await store.mset({"a": 1})
        assert await store.exists(["a", "b"]) == {"a": True, "b": False}

    async def test_delete_counts_present_keys(self, store: Store) -> None:
        await store.mset({"a": 1, "b": 2})

        assert await store.delete("a", "b", "missing") == 2
        assert await store.delete("a") == 0

    async def test_overwrite(self, store: Store) -> None:
        await store.mset({"a": 1})
        await store.mset({"a": 2})

        slot: Slot[int] = Slot(int)
        await store.get("a", slot)
        assert slot.value == 2

    async def test_model_values(self, store: Store) -> None:
        await store.mset({"p": Product(sku="X-1", price=9.5)})

        slot: Slot[Product] = Slot(Product)
        assert await store.get("p", slot) is True
        assert slot.value == Product(sku="X-1", price=9.5)

    async def test_numeric_conversion(self, store: Store) -> None:
        await store.mset({"n": 3})

        slot: Slot[float] = Slot(float)
        assert await store.get("n", slot) is True
        assert slot.value == 3.0
        assert isinstance(slot.value, float)

    async def test_clear(self, store: Store) -> None:
        await store.mset({"a": 1, "b": 2})

        assert await store.clear() is True
        assert await store.exists(["a", "b"]) == {"a": False, "b": False}

    async def test_stats_identify_backend(self, store: Store) -> None:
        stats = await store.get_stats()
        assert stats["backend"] in ("memory", "redis")


class TestCacherOverStore:
    async def test_cache_aside_round_trip(self, store: Store) -> None:
        cacher = Cacher(store)
        calls: list[list[str]] = []

        async def load_products(keys: list[str]) -> dict[str, Product]:
            calls.append(keys)
            return {k: Product(sku=k, price=1.0) for k in keys if k != "ghost"}

        first: ResultMap[Product] = ResultMap(Product)
        await cacher.mget(["p1", "p2", "ghost"], first, load_products, CacheOptions(ttl=60))
        assert set(first) == {"p1", "p2"}

        second: ResultMap[Product] = ResultMap(Product)
        await cacher.mget(["p1", "p2", "ghost"], second, load_products, CacheOptions(ttl=60))
        assert second == first
        assert calls == [["p1", "p2", "ghost"], ["ghost"]]

        assert await cacher.mdelete(["p1", "p2"]) == 2

    async def test_refresh_replaces_value(self, store: Store) -> None:
        cacher = Cacher(store)
        await store.mset({"p": Product(sku="p", price=1.0)})

        result: ResultMap[Product] = ResultMap(Product)
        await cacher.mrefresh(["p"], result, lambda keys: {"p": Product(sku="p", price=2.0)})

        slot: Slot[Product] = Slot(Product)
        assert await store.get("p", slot) is True
        assert slot.value.price == 2.0
