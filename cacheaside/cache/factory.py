"""
cacheaside - Store Factory

Creates store and cacher instances from configuration.

Key points:
- Select backend with CACHE_BACKEND=memory|redis
  - Defaults to memory unless REDIS_URL is set
  - When redis is selected, the redis client must be installed and REDIS_URL must be set
- Stores are registered by name so one connection pool is shared by many cachers
- All configuration is typed and validated via Pydantic models

Examples:
    from cacheaside.cache.factory import create_cacher, create_store

    # Uses env-configured backend (memory by default)
    store = create_store()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from cacheaside.config import CacheBackend, CacheConfig
    cfg = CacheConfig(backend=CacheBackend.MEMORY, ttl_seconds=600)
    cacher = create_cacher(cfg, name="users")
"""

from __future__ import annotations

import logging

from ..config import CacheBackend, CacheConfig, get_config
from ..errors import ConfigurationError, DependencyError
from .backends.memory import MemoryStore
from .cacher import Cacher
from .interface import Store

logger = logging.getLogger(__name__)

# Global store instances registry
_store_instances: dict[str, Store] = {}


def _create_memory_store(config: CacheConfig) -> Store:
    return MemoryStore(
        max_size=config.max_size,
        namespace=config.namespace,
    )


def _create_redis_store(config: CacheConfig) -> Store:
    """Construct a redis store with a lazy import of the client library."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=redis",
            details={"env": "REDIS_URL", "backend": "redis"},
        )

    try:
        from .backends.redis import RedisStore
    except ImportError as e:
        logger.error(
            "Redis backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise DependencyError(
            "redis",
            feature="the redis store backend",
            install_hint="pip install 'redis>=5.0.0'",
            details={"error": str(e), "backend": "redis"},
        ) from e

    return RedisStore(
        redis_url=config.redis_url,
        namespace=config.namespace,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


def create_store(
    config: CacheConfig | None = None,
    name: str = "default",
) -> Store:
    """
    Create a store instance based on configuration.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Store instance name (for multiple store instances)

    Returns:
        Configured store instance; the existing one if ``name`` is already registered

    Raises:
        ConfigurationError: If configuration is invalid
        DependencyError: If the selected backend's client library is missing
    """
    if name in _store_instances:
        logger.debug("Returning existing store instance: %s", name)
        return _store_instances[name]

    if config is None:
        config = get_config().cache

    logger.info(
        "Creating store instance '%s' with backend: %s",
        name,
        config.backend,
        extra={"store_name": name, "backend": str(config.backend)},
    )

    try:
        if config.backend == CacheBackend.MEMORY:
            store = _create_memory_store(config)
        elif config.backend == CacheBackend.REDIS:
            store = _create_redis_store(config)
        else:
            raise ConfigurationError(
                f"Unknown cache backend: {config.backend}",
                details={
                    "backend": str(config.backend),
                    "supported": ["memory", "redis"],
                },
            )
    except (ConfigurationError, DependencyError):
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating store instance '%s': %s",
            name,
            e,
            extra={"store_name": name, "backend": str(config.backend), "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create store instance '{name}': {e}",
            details={"store_name": name, "backend": str(config.backend), "error": str(e)},
        ) from e

    _store_instances[name] = store
    logger.info(
        "Store instance '%s' created successfully",
        name,
        extra={"store_name": name, "backend": str(config.backend)},
    )
    return store


def create_cacher(
    config: CacheConfig | None = None,
    name: str = "default",
) -> Cacher:
    """
    Create a Cacher over the named store.

    The store is created (or reused) through create_store; the configured TTL
    becomes the cacher's default and single-flight follows the configuration.
    """
    if config is None:
        config = get_config().cache

    store = create_store(config, name=name)
    return Cacher(store, default_ttl=config.ttl_seconds, single_flight=config.single_flight)


def get_store(name: str = "default") -> Store:
    """
    Get an existing store instance by name, creating it from global config if needed.
    """
    if name not in _store_instances:
        logger.debug("Store instance '%s' not found, creating new instance", name)
        return create_store(name=name)

    return _store_instances[name]


async def close_all_stores() -> None:
    """
    Close all store instances and release resources.

    Must be called by the owner during graceful shutdown.
    """
    if not _store_instances:
        logger.debug("No store instances to close")
        return

    logger.info("Closing %d store instance(s)...", len(_store_instances))

    for name, store in list(_store_instances.items()):
        try:
            await store.close()
            logger.info("Closed store instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing store instance '%s': %s",
                name,
                e,
                extra={"store_name": name, "error": str(e)},
                exc_info=True,
            )

    _store_instances.clear()
    logger.info("All store instances closed")


def reset_store_factory() -> None:
    """
    Clear all instance references without closing them.

    Warning: Only use this in testing contexts; use close_all_stores() for cleanup.
    """
    count = len(_store_instances)
    _store_instances.clear()
    logger.debug("Reset store factory, cleared %d instance reference(s)", count)


def list_store_instances() -> list[str]:
    """List all registered store instance names."""
    return list(_store_instances.keys())
