"""
cacheaside - Cache Module

Cache-aside orchestration over pluggable stores.

Layout:
- interface.py: Store contract every backend implements
- transport.py: moving values into caller-supplied destinations
- fallback.py: fallback callback shapes
- singleflight.py: sharing one fallback call between concurrent misses
- cacher.py: the Cacher orchestrator
- factory.py: creating stores and cachers from configuration
- backends/: store implementations (memory always, redis when installed)

Usage:
    from cacheaside.cache import Cacher, ResultMap, Slot, create_store

    cacher = Cacher(create_store())
    users = ResultMap(User)
    await cacher.mget(["u:1", "u:2"], users, load_users)
"""

from .cacher import CacheOptions, Cacher
from .factory import (
    close_all_stores,
    create_cacher,
    create_store,
    get_store,
    list_store_instances,
    reset_store_factory,
)
from .fallback import BatchFallbackFunc, FallbackFunc
from .interface import Store
from .transport import (
    ResultMap,
    Slot,
    assign_into_mapping,
    assign_single,
    mapping_keys,
    missing_keys,
)

__all__ = [
    # Orchestration
    "Cacher",
    "CacheOptions",
    "FallbackFunc",
    "BatchFallbackFunc",
    # Store contract
    "Store",
    # Value transport
    "Slot",
    "ResultMap",
    "assign_single",
    "assign_into_mapping",
    "mapping_keys",
    "missing_keys",
    # Factory functions
    "create_store",
    "create_cacher",
    "get_store",
    "close_all_stores",
    "list_store_instances",
    "reset_store_factory",
]
