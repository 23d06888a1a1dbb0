"""
cacheaside - Store Interface

Defines the abstract contract every backing store must implement.
Nothing above this layer may assume anything else about a backend.

Semantics shared by all operations:
- Absence (missing or expired key) is reported through return values, never errors
- Backend failures raise StoreError carrying the operation name and key
- ttl == 0 means "never expires"
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class Store(ABC):
    """
    Abstract base class for key-value store backends.

    Implementations must be safe for concurrent use by many tasks.
    """

    @abstractmethod
    async def get(self, key: str, destination: Any) -> bool:
        """
        Read a single value into ``destination``.

        Args:
            key: Cache key
            destination: Slot receiving the value

        Returns:
            True if the key was found and written into destination, False otherwise

        Raises:
            InvalidDestinationError: If destination is not a Slot
            TypeMismatchError: If the stored value does not fit the slot's type
            StoreError: On backend failure
        """
        pass

    @abstractmethod
    async def mget(self, keys: list[str], destination: Any) -> None:
        """
        Read several values into a mapping destination.

        Only keys that are present are written; missing keys stay absent.

        Args:
            keys: Cache keys
            destination: String-keyed mutable mapping (usually a ResultMap)

        Raises:
            InvalidDestinationError: If destination is not a mapping
            TypeMismatchError: If a stored value does not fit the mapping's element type
            StoreError: On backend failure
        """
        pass

    @abstractmethod
    async def exists(self, keys: list[str]) -> dict[str, bool]:
        """
        Check existence of several keys.

        Returns:
            Mapping containing every requested key, True if present and not expired
        """
        pass

    @abstractmethod
    async def mset(self, items: Mapping[str, Any], ttl: float = 0) -> None:
        """
        Store several values with a shared TTL.

        Each key is written atomically; the batch as a whole is not.

        Args:
            items: Mapping of key to value
            ttl: Time-to-live in seconds (0 = no expiry)

        Raises:
            StoreError: On backend or serialization failure
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """
        Delete keys.

        Returns:
            Number of keys that existed and were removed
        """
        pass

    async def clear(self) -> bool:
        """
        Remove every entry owned by this store (its namespace).

        Returns:
            True if the store was cleared
        """
        return False

    async def get_stats(self) -> dict[str, Any]:
        """Return backend statistics (hits, misses, size, ...)."""
        return {}

    async def close(self) -> None:
        """
        Release backend resources.

        Should be called by the owner during graceful shutdown.
        """
        pass
