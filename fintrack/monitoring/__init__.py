"""Query profiling."""

from .query_profiler import QueryProfiler, QueryStats

__all__ = ["QueryProfiler", "QueryStats"]
