"""In-process cache infrastructure."""

from .memory_store import MemoryCacheStore

__all__ = ["MemoryCacheStore"]
