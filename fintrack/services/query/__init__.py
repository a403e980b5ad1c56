"""Cache-first query execution."""

from .query_executor import BatchQuery, QueryExecutor

__all__ = ["BatchQuery", "QueryExecutor"]
