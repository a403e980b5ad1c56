"""
Typed cache regions.

A region binds one cache domain to its value type, default TTL and current
version tag, so a statistics region can only hand out ``StatisticsResult``
values and a movements region only movement lists.
"""

from typing import Dict, Generic, Optional, TypeVar

from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import (
    TTL,
    CacheDomain,
    CacheKey,
    CacheScope,
    CacheVersion,
)

T = TypeVar("T")


class VersionRegistry:
    """Current version tag of every cache domain."""

    def __init__(self, initial: Optional[Dict[CacheDomain, CacheVersion]] = None):
        self._versions: Dict[CacheDomain, CacheVersion] = {
            domain: CacheVersion.initial() for domain in CacheDomain
        }
        if initial:
            self._versions.update(initial)

    def current(self, domain: CacheDomain) -> CacheVersion:
        return self._versions[domain]

    def bump(self, domain: CacheDomain) -> CacheVersion:
        self._versions[domain] = self._versions[domain].next()
        return self._versions[domain]

    def as_dict(self) -> Dict[str, str]:
        return {domain.value: str(version) for domain, version in self._versions.items()}


class CacheRegion(Generic[T]):
    """Versioned, typed view over the cache store for a single domain."""

    def __init__(
        self,
        store: CacheStore,
        domain: CacheDomain,
        default_ttl: TTL,
        versions: VersionRegistry,
    ):
        self.store = store
        self.domain = domain
        self.default_ttl = default_ttl
        self.versions = versions

    @property
    def version(self) -> CacheVersion:
        return self.versions.current(self.domain)

    def key(self, scope: CacheScope, qualifier: str) -> CacheKey:
        return CacheKey.build(self.version, self.domain, scope, qualifier)

    def put(
        self, scope: CacheScope, qualifier: str, value: T, ttl: Optional[TTL] = None
    ) -> CacheKey:
        key = self.key(scope, qualifier)
        self.store.set(key.value, value, (ttl or self.default_ttl).milliseconds)
        return key

    def get(self, scope: CacheScope, qualifier: str) -> Optional[T]:
        return self.store.get(self.key(scope, qualifier).value)

    def invalidate_scope(self, scope: CacheScope) -> int:
        """Drop every key of this domain in ``scope``, whatever its version."""
        return self.store.clear(CacheKey.scope_pattern(self.domain, scope))
