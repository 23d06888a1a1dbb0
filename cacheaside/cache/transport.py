"""
cacheaside - Value Transport

Moves values of runtime-only-known type between a store and caller-supplied
destinations.

Destinations:
- Slot[T]: a writable single-value holder
- ResultMap[T]: a ``dict[str, T]`` that knows its element type
- any other MutableMapping: untyped, values stored as-is

Conversion rules live here and nowhere else:
- ``value_type=Any`` accepts every value unchanged
- otherwise a cached pydantic TypeAdapter validates in lax mode, so assignable
  values pass through and safely convertible ones (JSON dict -> model,
  ISO string -> datetime, 1.0 -> int) are converted
- anything else raises TypeMismatchError
"""

from __future__ import annotations

import functools
from collections.abc import Iterable, MutableMapping
from typing import Any, Generic, TypeVar

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from ..errors import InvalidDestinationError, TypeMismatchError

T = TypeVar("T")


def _build_adapter(value_type: Any) -> TypeAdapter[Any] | None:
    try:
        return TypeAdapter(value_type)
    except PydanticSchemaGenerationError:
        # Plain classes pydantic knows nothing about fall back to isinstance checks
        return None


@functools.lru_cache(maxsize=256)
def _cached_adapter(value_type: Any) -> TypeAdapter[Any] | None:
    return _build_adapter(value_type)


def _get_type_adapter(value_type: Any) -> TypeAdapter[Any] | None:
    """Return a TypeAdapter for ``value_type``, cached when the type is hashable."""
    try:
        return _cached_adapter(value_type)
    except TypeError:
        # Unhashable annotations are built per call
        return _build_adapter(value_type)


def convert(value: Any, value_type: Any, key: str | None = None) -> Any:
    """
    Convert ``value`` to ``value_type``.

    Args:
        value: Value read from a store or returned by a fallback
        value_type: Target type; ``Any`` disables conversion
        key: Cache key, used only for error context

    Returns:
        The value, converted when necessary

    Raises:
        TypeMismatchError: If the value is neither assignable nor convertible
    """
    if value_type is Any:
        return value

    adapter = _get_type_adapter(value_type)
    if adapter is None:
        if isinstance(value_type, type) and isinstance(value, value_type):
            return value
        raise TypeMismatchError(value, value_type, key=key)

    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        raise TypeMismatchError(
            value,
            value_type,
            key=key,
            details={"validation_errors": len(e.errors())},
        ) from e


class Slot(Generic[T]):
    """
    Writable destination for a single value.

    Example:
        >>> slot = Slot(int)
        >>> assign_single(slot, "42")
        >>> slot.value
        42
    """

    def __init__(self, value_type: Any = Any) -> None:
        self.value_type = value_type
        self.value: T | None = None
        self.filled = False

    def set(self, value: T) -> None:
        self.value = value
        self.filled = True

    def clear(self) -> None:
        self.value = None
        self.filled = False

    def __repr__(self) -> str:
        type_name = getattr(self.value_type, "__name__", repr(self.value_type))
        return f"Slot[{type_name}](value={self.value!r}, filled={self.filled})"


class ResultMap(dict[str, T], Generic[T]):
    """
    Mapping destination for batch reads.

    A plain dict whose element type is known, so values can be validated and
    converted on the way in.
    """

    def __init__(self, value_type: Any = Any, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.value_type = value_type

    def __repr__(self) -> str:
        type_name = getattr(self.value_type, "__name__", repr(self.value_type))
        return f"ResultMap[{type_name}]({dict.__repr__(self)})"


def ensure_slot(destination: Any) -> Slot[Any]:
    """Validate that ``destination`` is a writable single-value slot."""
    if not isinstance(destination, Slot):
        raise InvalidDestinationError("Slot", destination)
    return destination


def ensure_mapping(destination: Any) -> MutableMapping[str, Any]:
    """Validate that ``destination`` is a writable mapping."""
    if not isinstance(destination, MutableMapping):
        raise InvalidDestinationError("MutableMapping[str, Any]", destination)
    return destination


def element_type(destination: MutableMapping[str, Any]) -> Any:
    """Declared element type of a mapping destination (``Any`` for plain mappings)."""
    return getattr(destination, "value_type", Any)


def assign_single(destination: Any, value: Any, key: str | None = None) -> None:
    """
    Write ``value`` into a single-value destination.

    Raises:
        InvalidDestinationError: If destination is not a Slot
        TypeMismatchError: If value cannot be converted to the slot's type
    """
    slot = ensure_slot(destination)
    slot.set(convert(value, slot.value_type, key=key))


def assign_into_mapping(destination: Any, key: str, value: Any) -> None:
    """
    Write a single ``key -> value`` entry into a mapping destination.

    Raises:
        InvalidDestinationError: If destination is not a mapping or key is not a string
        TypeMismatchError: If value cannot be converted to the mapping's element type
    """
    mapping = ensure_mapping(destination)
    if not isinstance(key, str):
        raise InvalidDestinationError("str key", key, details={"key": repr(key)})
    mapping[key] = convert(value, element_type(mapping), key=key)


def mapping_keys(destination: Any) -> set[str]:
    """Keys currently present in a mapping destination."""
    return set(ensure_mapping(destination).keys())


def missing_keys(keys: Iterable[str], destination: Any) -> list[str]:
    """
    Requested keys absent from ``destination``.

    Order follows ``keys``; duplicates are dropped.
    """
    present = mapping_keys(destination)
    return [key for key in dict.fromkeys(keys) if key not in present]
