"""
cacheaside - Core Error Types

Defines the exception hierarchy for the cache-aside layer.
All exceptions inherit from CacheAsideError for consistent error handling.

Taxonomy:
- Read-path errors (StoreError, FallbackError, transport errors) abort the call
- WriteBackError is raised internally and always absorbed by the Cacher
- "Not found" is never an error
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes for structured error reporting.

    Used by callers that translate cache errors into API responses.
    """

    # Destination / transport errors
    INVALID_DESTINATION = "INVALID_DESTINATION"
    TYPE_MISMATCH = "TYPE_MISMATCH"

    # Store errors
    STORE_FAILURE = "STORE_FAILURE"
    WRITE_BACK_FAILURE = "WRITE_BACK_FAILURE"

    # Fallback errors
    FALLBACK_FAILURE = "FALLBACK_FAILURE"
    MISSING_FALLBACK = "MISSING_FALLBACK"

    # Setup errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DEPENDENCY_MISSING = "DEPENDENCY_MISSING"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CacheAsideError(Exception):
    """Base exception for all cacheaside errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging or API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CacheAsideError):
    """Raised when configuration is invalid or missing."""

    pass


class CacheError(CacheAsideError):
    """Base exception for store-related errors."""

    pass


class StoreError(CacheError):
    """Raised when a backing store operation fails."""

    def __init__(
        self,
        operation: str,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        error_details = dict(details or {})
        error_details["operation"] = operation
        if key is not None:
            error_details["key"] = key
        prefix = f"store {operation} failed"
        if key is not None:
            prefix += f" for key '{key}'"
        super().__init__(f"{prefix}: {message}", error_details)
        self.operation = operation
        self.key = key


class WriteBackError(CacheError):
    """
    Raised when populating the store after a successful read fails.

    The Cacher never lets this escape; it is logged and counted instead.
    """

    def __init__(self, operation: str, keys: list[str], details: dict[str, Any] | None = None):
        error_details = dict(details or {})
        error_details.update({"operation": operation, "keys": keys})
        super().__init__(f"write-back after {operation} failed for {len(keys)} key(s)", error_details)
        self.operation = operation
        self.keys = keys


class TransportError(CacheAsideError):
    """Base exception for value transport (destination) errors."""

    pass


class InvalidDestinationError(TransportError):
    """Raised when a destination is not a writable slot or string-keyed mapping."""

    def __init__(self, expected: str, got: Any, details: dict[str, Any] | None = None):
        error_details = dict(details or {})
        error_details.update({"expected": expected, "got": type(got).__name__})
        super().__init__(f"invalid destination: expected {expected}, got {type(got).__name__}", error_details)


class TypeMismatchError(TransportError):
    """Raised when a value can be neither assigned nor converted to the destination type."""

    def __init__(
        self,
        value: Any,
        target: Any,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        target_name = getattr(target, "__name__", None) or repr(target)
        error_details = dict(details or {})
        error_details.update({"value_type": type(value).__name__, "target_type": target_name})
        if key is not None:
            error_details["key"] = key
        message = f"cannot convert {type(value).__name__} to {target_name}"
        if key is not None:
            message += f" for key '{key}'"
        super().__init__(message, error_details)
        self.key = key


class FallbackError(CacheAsideError):
    """
    Raised when a caller-supplied fallback raises.

    The fallback's own exception is kept as ``original`` and chained as ``__cause__``.
    """

    def __init__(self, original: BaseException, keys: list[str]):
        details = {"keys": keys, "error": str(original), "error_type": type(original).__name__}
        if len(keys) == 1:
            message = f"fallback failed for key '{keys[0]}': {original}"
        else:
            message = f"batch fallback failed for {len(keys)} key(s): {original}"
        super().__init__(message, details)
        self.original = original
        self.keys = keys


class MissingFallbackError(CacheAsideError):
    """Raised when an operation that requires a fallback is called without one."""

    def __init__(self, operation: str):
        super().__init__(f"{operation} requires a batch fallback", {"operation": operation})
        self.operation = operation


class DependencyError(CacheAsideError):
    """Raised when an optional backend dependency is missing or fails to load."""

    def __init__(
        self,
        package: str,
        feature: str | None = None,
        install_hint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        if feature:
            message = f"Required dependency '{package}' is missing for {feature}"
        else:
            message = f"Required dependency '{package}' is missing"

        if install_hint:
            message += f". Install with: {install_hint}"

        error_details = details or {}
        error_details.update(
            {
                "package": package,
                "feature": feature,
                "install_hint": install_hint,
            }
        )

        super().__init__(message, error_details)


def extract_error_code(error: BaseException) -> ErrorCode:
    """
    Extract appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        Appropriate ErrorCode for the exception
    """
    if isinstance(error, InvalidDestinationError):
        return ErrorCode.INVALID_DESTINATION

    if isinstance(error, TypeMismatchError):
        return ErrorCode.TYPE_MISMATCH

    if isinstance(error, WriteBackError):
        return ErrorCode.WRITE_BACK_FAILURE

    if isinstance(error, CacheError):
        return ErrorCode.STORE_FAILURE

    if isinstance(error, FallbackError):
        return ErrorCode.FALLBACK_FAILURE

    if isinstance(error, MissingFallbackError):
        return ErrorCode.MISSING_FALLBACK

    if isinstance(error, DependencyError):
        return ErrorCode.DEPENDENCY_MISSING

    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR

    return ErrorCode.INTERNAL_ERROR
