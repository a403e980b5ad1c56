"""
Memory Cache Store

Process-local key/value store with per-entry TTL.

Expired entries are evicted lazily on read, so a stale value is never served
even if the periodic sweep never runs. The sweep only reclaims memory.
All operations run to completion without awaiting, so a single event loop
needs no locking around the mapping.
"""

import asyncio
import json
import time
from typing import Any, Callable, Dict, Optional

import structlog

from ...domain.cache.entities import CacheEntry, CacheStoreStats
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.exceptions import InvalidTTLException

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


def _json_default(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return str(value)


class MemoryCacheStore(CacheStore):
    """
    In-memory cache store.

    Args:
        clock: Zero-argument callable returning the current time in
            milliseconds. Injected by tests to advance time deterministically.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or monotonic_ms
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._hits = 0
        self._misses = 0
        self._expired_evictions = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if isinstance(ttl_ms, bool) or not ttl_ms or ttl_ms <= 0:
            raise InvalidTTLException(ttl_ms)
        self._entries[key] = CacheEntry(
            value=value, stored_at_ms=self._clock(), ttl_ms=int(ttl_ms)
        )
        logger.debug("Cache set", key=key, ttl_ms=ttl_ms)

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            self._expired_evictions += 1
            logger.debug("Cache entry expired", key=key)
            return default

        self._hits += 1
        return entry.value

    def contains(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._expired_evictions += 1
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self, pattern: Optional[str] = None) -> int:
        """
        Remove entries.

        Args:
            pattern: Plain substring; every key containing it is removed.
                ``None`` removes everything.

        Returns:
            Number of entries removed
        """
        if not pattern:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        doomed = [key for key in self._entries if pattern in key]
        for key in doomed:
            del self._entries[key]

        if doomed:
            logger.debug("Cache cleared by pattern", pattern=pattern, removed=len(doomed))
        return len(doomed)

    def stats(self) -> CacheStoreStats:
        entries = [
            {"key": key, "value": entry.value, "ttl_ms": entry.ttl_ms}
            for key, entry in self._entries.items()
        ]
        try:
            approximate = len(json.dumps(entries, default=_json_default))
        except (TypeError, ValueError):
            approximate = 0

        return CacheStoreStats(
            size=len(self._entries),
            keys=list(self._entries.keys()),
            approximate_memory_bytes=approximate,
            hits=self._hits,
            misses=self._misses,
            expired_evictions=self._expired_evictions,
        )

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._expired_evictions += len(expired)

        if expired:
            logger.debug("Cache sweep completed", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    # Periodic sweep

    @property
    def auto_cleanup_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    def start_auto_cleanup(self, interval_seconds: float = 300.0) -> None:
        """Start a background task that sweeps expired entries periodically."""
        if self.auto_cleanup_running:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds))
        logger.info("Cache auto cleanup started", interval_seconds=interval_seconds)

    async def stop_auto_cleanup(self) -> None:
        """Stop the background sweep task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Cache auto cleanup stopped")

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()
