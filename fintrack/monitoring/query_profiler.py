"""
Query Profiler

Per-key execution statistics for the query executor: call counts, cache
hits and misses, and a rolling average over the most recent fetch durations.
A rolling average above the slow-query threshold is logged as a warning.

Profiling is observational only. Nothing here raises into the caller.
"""

import statistics
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

TOP_N = 10
LOW_HIT_RATE_PERCENT = 30.0
HEAVY_USE_THRESHOLD = 100


@dataclass
class QueryStats:
    """Execution statistics for one cache key."""

    key: str
    window_size: int
    count: int = 0
    hits: int = 0
    misses: int = 0
    slowest_ms: float = 0.0
    last_used: float = 0.0
    durations: Deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.durations = deque(self.durations, maxlen=self.window_size)

    @property
    def avg_time_ms(self) -> float:
        """Rolling average over the most recent fetch durations."""
        return statistics.fmean(self.durations) if self.durations else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "count": self.count,
            "hits": self.hits,
            "misses": self.misses,
            "avg_time_ms": self.avg_time_ms,
            "slowest_ms": self.slowest_ms,
            "last_used": self.last_used,
        }


class QueryProfiler:
    """
    Rolling per-key query statistics.

    Features:
    - Cache hit/miss accounting per key
    - Rolling average of fetch latency (cache hits add no latency)
    - Slow query warnings above a fixed threshold
    - Performance insights and optimization suggestions
    """

    def __init__(self, slow_query_threshold_ms: float = 500.0, window_size: int = 50):
        self.slow_query_threshold_ms = slow_query_threshold_ms
        self.window_size = window_size
        self._stats: Dict[str, QueryStats] = {}

    def _stats_for(self, key: str) -> QueryStats:
        stats = self._stats.get(key)
        if stats is None:
            stats = QueryStats(key=key, window_size=self.window_size)
            self._stats[key] = stats
        return stats

    def record_hit(self, key: str) -> None:
        stats = self._stats_for(key)
        stats.count += 1
        stats.hits += 1
        stats.last_used = time.time()

    def record_miss(self, key: str, duration_ms: float) -> None:
        """Record a fetch that went to the data store."""
        stats = self._stats_for(key)
        stats.count += 1
        stats.misses += 1
        stats.last_used = time.time()
        stats.durations.append(duration_ms)
        stats.slowest_ms = max(stats.slowest_ms, duration_ms)

        if stats.avg_time_ms > self.slow_query_threshold_ms:
            logger.warning(
                "Slow query detected",
                key=key,
                duration_ms=round(duration_ms, 2),
                avg_time_ms=round(stats.avg_time_ms, 2),
                threshold_ms=self.slow_query_threshold_ms,
                count=stats.count,
            )

    def get_stats(self, key: str) -> Optional[QueryStats]:
        return self._stats.get(key)

    @property
    def cache_hit_rate(self) -> float:
        """Percentage of recorded calls served from cache."""
        total = sum(s.count for s in self._stats.values())
        hits = sum(s.hits for s in self._stats.values())
        return (hits / total) * 100 if total else 0.0

    def get_performance_insights(self) -> Dict[str, Any]:
        """
        Summarize recorded statistics.

        Returns:
            ``slow_queries`` (top keys whose rolling average exceeds the
            threshold, slowest first), ``most_used`` (top keys by call count)
            and ``cache_hit_rate`` as a percentage
        """
        all_stats = list(self._stats.values())

        slow = sorted(
            (s for s in all_stats if s.avg_time_ms > self.slow_query_threshold_ms),
            key=lambda s: s.avg_time_ms,
            reverse=True,
        )[:TOP_N]
        most_used = sorted(all_stats, key=lambda s: s.count, reverse=True)[:TOP_N]

        return {
            "slow_queries": [
                {"key": s.key, "avg_time_ms": s.avg_time_ms, "count": s.count}
                for s in slow
            ],
            "most_used": [
                {"key": s.key, "count": s.count, "last_used": s.last_used}
                for s in most_used
            ],
            "cache_hit_rate": self.cache_hit_rate,
        }

    def get_optimization_suggestions(self) -> List[str]:
        suggestions: List[str] = []
        insights = self.get_performance_insights()

        if insights["slow_queries"]:
            suggestions.append(
                f"Found {len(insights['slow_queries'])} slow queries. "
                "Consider adding database indexes."
            )

        if self._stats and insights["cache_hit_rate"] < LOW_HIT_RATE_PERCENT:
            suggestions.append(
                "Low cache hit rate. Consider increasing cache TTL for stable data."
            )

        if insights["most_used"]:
            top = insights["most_used"][0]
            if top["count"] > HEAVY_USE_THRESHOLD:
                suggestions.append(
                    f'Query "{top["key"]}" is heavily used. '
                    "Consider optimizing or pre-loading."
                )

        return suggestions

    def clear(self) -> None:
        self._stats.clear()
