"""
cacheaside - cache-aside orchestration with pluggable stores.

Read through a store, populate it from a fallback on a miss, and hand the value
back as if it had always been cached.
"""

from .cache import (
    BatchFallbackFunc,
    CacheOptions,
    Cacher,
    FallbackFunc,
    ResultMap,
    Slot,
    Store,
    create_cacher,
    create_store,
)
from .errors import (
    CacheAsideError,
    FallbackError,
    InvalidDestinationError,
    MissingFallbackError,
    StoreError,
    TypeMismatchError,
    WriteBackError,
)
from .observability import configure_logging

__version__ = "1.0.0"

__all__ = [
    "Cacher",
    "CacheOptions",
    "FallbackFunc",
    "BatchFallbackFunc",
    "Store",
    "Slot",
    "ResultMap",
    "create_store",
    "create_cacher",
    "CacheAsideError",
    "StoreError",
    "FallbackError",
    "InvalidDestinationError",
    "TypeMismatchError",
    "WriteBackError",
    "MissingFallbackError",
    "configure_logging",
]
