"""
Cache Repository Interfaces

Abstract contract for the key/value store behind the domain cache strategy.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .entities import CacheStoreStats


class CacheStore(ABC):
    """
    Abstract key/value store with per-entry TTL.

    Implementations never raise for a miss; absence is a normal outcome.
    Keys are opaque strings: collision avoidance belongs to the caller.
    """

    @abstractmethod
    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``."""

    @abstractmethod
    def contains(self, key: str) -> bool:
        """Whether a live entry exists for ``key``."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether an entry was removed."""

    @abstractmethod
    def clear(self, pattern: Optional[str] = None) -> int:
        """Remove all entries, or those whose key contains ``pattern``."""

    @abstractmethod
    def stats(self) -> CacheStoreStats:
        """Return an observational snapshot."""

    @abstractmethod
    def sweep(self) -> int:
        """Remove expired entries; returns how many were removed."""
