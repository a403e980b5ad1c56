"""
Cache Domain Entities

Entries held by the memory store and the snapshots it reports.
"""

from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    A cached value with its storage timestamp and lifetime.

    Entries are replaced, never mutated: a write always creates a new entry.
    """

    value: T
    stored_at_ms: float
    ttl_ms: int

    def age_ms(self, now_ms: float) -> float:
        """Milliseconds elapsed since the entry was stored."""
        return now_ms - self.stored_at_ms

    def is_expired(self, now_ms: float) -> bool:
        """An entry is live while its age does not exceed its TTL."""
        return self.age_ms(now_ms) > self.ttl_ms

    def remaining_ms(self, now_ms: float) -> float:
        return max(0.0, self.ttl_ms - self.age_ms(now_ms))


@dataclass(frozen=True)
class CacheStoreStats:
    """Observational snapshot of the memory store."""

    size: int
    keys: List[str] = field(default_factory=list)
    approximate_memory_bytes: int = 0
    hits: int = 0
    misses: int = 0
    expired_evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit percentage over all lookups, 0 when nothing was looked up."""
        total = self.hits + self.misses
        return (self.hits / total) * 100 if total else 0.0
