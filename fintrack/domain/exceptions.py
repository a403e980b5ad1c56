"""
fintrack Core Exceptions

Exceptions raised by the cache and statistics core itself. Failures coming
from the data store are never wrapped; they reach the caller unchanged.
"""

from typing import Any, Dict, Optional


class FinTrackException(ValueError):
    """Base exception for core validation errors.

    Carries a stable ``error_code`` and structured ``details`` for logging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidCacheKeyException(FinTrackException):
    """Raised when a cache key or one of its segments is malformed."""

    def __init__(self, message: str, key: Optional[str] = None):
        details = {}
        if key is not None:
            details["key"] = key
        super().__init__(
            message=message, error_code="CACHE_KEY_INVALID", details=details
        )


class InvalidTTLException(FinTrackException):
    """Raised when a TTL is not a positive number of milliseconds."""

    def __init__(self, ttl_ms: Any):
        super().__init__(
            message=f"TTL must be a positive number of milliseconds, got {ttl_ms!r}",
            error_code="CACHE_TTL_INVALID",
            details={"ttl_ms": ttl_ms},
        )


class InvalidAggregationWindowException(FinTrackException):
    """Raised when a statistics window or period cannot be resolved."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message, error_code="AGGREGATION_WINDOW_INVALID", details=details
        )


class CacheLoaderMissingException(FinTrackException):
    """Raised when a loader is required but none was attached."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"No cache loader attached for {operation}",
            error_code="CACHE_LOADER_MISSING",
            details={"operation": operation},
        )
