"""
cacheaside - Fallback Contracts

Callback shapes used to produce authoritative values on a cache miss.

- FallbackFunc: ``(key) -> (value, found)``
- BatchFallbackFunc: ``(keys) -> {key: value}``; keys left out are "not found"

Both may be coroutine functions or plain callables. Errors are raised, never
returned; they are wrapped in FallbackError and never retried.
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeAlias

from ..errors import FallbackError

FallbackFunc: TypeAlias = Callable[[str], Awaitable[tuple[Any, bool]] | tuple[Any, bool]]
BatchFallbackFunc: TypeAlias = Callable[[list[str]], Awaitable[Mapping[str, Any]] | Mapping[str, Any]]


async def call_fallback(fallback: FallbackFunc, key: str) -> tuple[Any, bool]:
    """
    Invoke a single-key fallback.

    Returns:
        (value, found)

    Raises:
        FallbackError: If the fallback raised or returned something other than a pair
    """
    try:
        result = fallback(key)
        if inspect.isawaitable(result):
            result = await result
        value, found = result
    except Exception as e:
        raise FallbackError(e, [key]) from e
    return value, bool(found)


async def call_batch_fallback(fallback: BatchFallbackFunc, keys: list[str]) -> Mapping[str, Any]:
    """
    Invoke a batch fallback with exactly ``keys``.

    Returns:
        Mapping of found keys to values (``None`` is treated as empty)

    Raises:
        FallbackError: If the fallback raised or returned a non-mapping
    """
    try:
        result = fallback(list(keys))
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        raise FallbackError(e, keys) from e

    if result is None:
        return {}
    if not isinstance(result, Mapping):
        error = TypeError(f"batch fallback must return a mapping, got {type(result).__name__}")
        raise FallbackError(error, keys) from error
    return result
