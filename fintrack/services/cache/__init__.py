"""Domain cache strategy."""

from .cache_manager import CacheLoader, FinanceCacheManager
from .regions import CacheRegion, VersionRegistry

__all__ = ["CacheLoader", "CacheRegion", "FinanceCacheManager", "VersionRegistry"]
