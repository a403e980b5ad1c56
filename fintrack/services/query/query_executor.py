"""
Query Executor

Wraps arbitrary async fetches with cache-first execution, per-key profiling
and concurrent batch execution.

Fetch failures pass through unchanged and are never cached, so the next call
retries the fetch. Profiling and logging never alter the returned data.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

import structlog
from opentelemetry import trace

from ...domain.cache.repository_interfaces import CacheStore
from ...monitoring.query_profiler import QueryProfiler

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[Any]]

DEFAULT_TTL_MS = 5 * 60 * 1000

_MISSING = object()


@dataclass(frozen=True)
class BatchQuery:
    """One named entry of a batch."""

    key: str
    fetch_fn: FetchFn
    use_cache: bool = True
    ttl_ms: Optional[int] = None
    profile: bool = True


class QueryExecutor:
    """
    Cache-first executor for data store fetches.

    Args:
        store: Cache store used for lookups and fills
        profiler: Per-key statistics collector; a private one is created
            when omitted
        default_ttl_ms: TTL applied when ``execute`` receives none
        deduplicate_inflight: When True, concurrent misses on the same key
            await a single shared fetch instead of each issuing their own
    """

    def __init__(
        self,
        store: CacheStore,
        profiler: Optional[QueryProfiler] = None,
        *,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        deduplicate_inflight: bool = False,
    ):
        self.store = store
        self.profiler = profiler or QueryProfiler()
        self.default_ttl_ms = default_ttl_ms
        self.deduplicate_inflight = deduplicate_inflight
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

    async def execute(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        *,
        use_cache: bool = True,
        ttl_ms: Optional[int] = None,
        profile: bool = True,
    ) -> T:
        """
        Return the cached value for ``key`` or fetch, cache and return it.

        Args:
            key: Cache key
            fetch_fn: Zero-argument coroutine function performing the fetch
            use_cache: Skip both the lookup and the fill when False
            ttl_ms: Lifetime of the cached result
            profile: Record the call in the profiler

        Returns:
            The cached or freshly fetched value

        Raises:
            Whatever ``fetch_fn`` raises, unchanged
        """
        if use_cache:
            cached = self.store.get(key, _MISSING)
            if cached is not _MISSING:
                if profile:
                    self.profiler.record_hit(key)
                return cached

        if use_cache and self.deduplicate_inflight:
            pending = self._inflight.get(key)
            if pending is not None:
                logger.debug("Joining in-flight fetch", key=key)
                return await asyncio.shield(pending)

            task = asyncio.ensure_future(
                self._fetch_and_store(key, fetch_fn, use_cache, ttl_ms, profile)
            )
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget_inflight(key, done))
            return await asyncio.shield(task)

        return await self._fetch_and_store(key, fetch_fn, use_cache, ttl_ms, profile)

    def _forget_inflight(self, key: str, done: "asyncio.Future[Any]") -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        # Mark the exception as retrieved when every waiter was cancelled
        if not done.cancelled():
            done.exception()

    async def _fetch_and_store(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        use_cache: bool,
        ttl_ms: Optional[int],
        profile: bool,
    ) -> T:
        with tracer.start_as_current_span("query_executor.fetch") as span:
            span.set_attribute("cache_key", key)
            started = time.perf_counter()
            try:
                data = await fetch_fn()
            except Exception as e:
                logger.error("Query failed", key=key, error=str(e))
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            duration_ms = (time.perf_counter() - started) * 1000
            span.set_attribute("duration_ms", duration_ms)

        if use_cache and data is not None:
            self.store.set(key, data, ttl_ms or self.default_ttl_ms)

        if profile:
            self.profiler.record_miss(key, duration_ms)

        return data

    async def batch(self, queries: Mapping[str, BatchQuery]) -> Dict[str, Any]:
        """
        Execute several queries concurrently.

        Each entry resolves independently: a failing fetch leaves ``None`` in
        its slot and never prevents the others from completing.

        Returns:
            Mapping of each entry name to its result or ``None``
        """

        async def run(name: str, query: BatchQuery) -> Any:
            try:
                return await self.execute(
                    query.key,
                    query.fetch_fn,
                    use_cache=query.use_cache,
                    ttl_ms=query.ttl_ms,
                    profile=query.profile,
                )
            except Exception as e:
                logger.warning(
                    "Batch query failed", name=name, key=query.key, error=str(e)
                )
                return None

        names = list(queries)
        results = await asyncio.gather(*(run(name, queries[name]) for name in names))
        return dict(zip(names, results))

    def get_performance_insights(self) -> Dict[str, Any]:
        return self.profiler.get_performance_insights()

    def get_optimization_suggestions(self):
        return self.profiler.get_optimization_suggestions()

    def clear_stats(self) -> None:
        """Reset profiling statistics; cached values are untouched."""
        self.profiler.clear()
