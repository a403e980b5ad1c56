"""
Cache Domain Services

Invalidation rules keeping cached data consistent with the authoritative
store after a mutation.

Rules:
- Any movement write drops the scope's movements (every range, limit and
  single entry) and its statistics (every period), since all statistics are
  derived from movements.
- Creating a category drops the scope's categories only. Updating or deleting
  one also drops statistics: the breakdown shows category names and colors,
  and movements of a deleted category regroup under "Sin categoría".
- Budget writes drop budgets only.
"""

from typing import FrozenSet, Iterable, Optional

import structlog
from opentelemetry import trace

from .repository_interfaces import CacheStore
from .value_objects import CacheDomain, CacheKey, CacheScope, MutationType

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def affected_domains(
    changed: CacheDomain, mutation: MutationType
) -> FrozenSet[CacheDomain]:
    """Cache domains that must be dropped when ``changed`` is written."""
    if changed == CacheDomain.MOVEMENTS:
        return frozenset({CacheDomain.MOVEMENTS, CacheDomain.STATISTICS})
    if changed == CacheDomain.CATEGORIES:
        if mutation == MutationType.CREATE:
            return frozenset({CacheDomain.CATEGORIES})
        return frozenset({CacheDomain.CATEGORIES, CacheDomain.STATISTICS})
    return frozenset({changed})


class CacheInvalidationService:
    """
    Domain service for cache invalidation.

    Works purely on key substrings, so it drops entries written under any
    version tag. Invalidating something that is not cached is a no-op.
    """

    def __init__(self, store: CacheStore):
        self.store = store

    def invalidate(
        self,
        domains: Iterable[CacheDomain],
        user_id: str,
        context_id: Optional[str] = None,
        reason: str = "manual",
    ) -> int:
        """
        Drop the given domains for one ``(user, context)`` scope.

        Returns:
            Number of cache entries removed
        """
        scope = CacheScope(user_id, context_id)
        domains = sorted(set(domains), key=lambda d: d.value)

        with tracer.start_as_current_span("cache.invalidate") as span:
            span.set_attribute("scope", scope.token)
            span.set_attribute("reason", reason)

            removed = 0
            for domain in domains:
                removed += self.store.clear(CacheKey.scope_pattern(domain, scope))

            span.set_attribute("invalidated_count", removed)

        logger.info(
            "Cache invalidated",
            scope=scope.token,
            domains=[d.value for d in domains],
            reason=reason,
            count=removed,
        )
        return removed

    def on_mutation(
        self,
        changed: CacheDomain,
        mutation: MutationType,
        user_id: str,
        context_id: Optional[str] = None,
    ) -> int:
        return self.invalidate(
            affected_domains(changed, mutation),
            user_id,
            context_id,
            reason=f"{changed.value}_{mutation.value}",
        )

    def on_movement_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.on_mutation(CacheDomain.MOVEMENTS, mutation, user_id, context_id)

    def on_category_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.on_mutation(CacheDomain.CATEGORIES, mutation, user_id, context_id)

    def on_budget_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.on_mutation(CacheDomain.BUDGETS, mutation, user_id, context_id)

    def invalidate_user(self, user_id: str) -> int:
        """Drop every domain for every context of ``user_id``."""
        removed = 0
        for domain in CacheDomain:
            removed += self.store.clear(CacheKey.user_pattern(domain, user_id))

        logger.info("User cache cleared", user_id=user_id, count=removed)
        return removed
