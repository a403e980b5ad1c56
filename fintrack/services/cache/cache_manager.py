"""
Finance Cache Manager

Domain cache strategy for the finance tracker: TTL profiles per data kind,
versioned key namespaces, invalidation on mutations, and cache warming ahead
of navigation.
"""

import asyncio
from datetime import date
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
)

import structlog
from opentelemetry import trace

from ...constants import (
    DASHBOARD_MOVEMENTS_LIMIT,
    MOVEMENTS_PAGE_LIMIT,
    WARM_RECENT_MOVEMENTS_LIMIT,
)
from ...core.config import Settings, get_settings
from ...domain.cache.domain_services import CacheInvalidationService
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import (
    TTL,
    CacheDomain,
    CacheKey,
    CacheScope,
    CacheVersion,
    MutationType,
)
from ...domain.exceptions import CacheLoaderMissingException
from ...domain.finance.entities import (
    Category,
    Movement,
    MovementSummary,
    StatisticsResult,
)
from .regions import CacheRegion, VersionRegistry

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ALL_QUALIFIER = "all"
TOP_KEYS = 10


class CacheLoader(Protocol):
    """Fetch path used to warm the cache; normally ``FinanceDataService``."""

    async def get_movements(
        self, user_id: str, context_id: Optional[str] = None, limit: int = 50
    ) -> List[Movement]: ...

    async def get_categories(
        self, user_id: str, context_id: Optional[str] = None
    ) -> List[Category]: ...

    async def get_statistics(
        self,
        user_id: str,
        period: str = "month",
        context_id: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> StatisticsResult: ...


def date_range_token(start: date, end: date) -> str:
    """Qualifier segment for an explicit date range."""
    return f"{start.isoformat()}:{end.isoformat()}"


def month_token(reference_date: date) -> str:
    return f"{reference_date.year:04d}-{reference_date.month:02d}"


def _movements_qualifier(date_range: Optional[str], limit: Optional[int]) -> str:
    if date_range:
        return f"range:{date_range}"
    if limit:
        return f"limit:{limit}"
    return ALL_QUALIFIER


def _statistics_qualifier(period: str, reference_date: Optional[date]) -> str:
    if reference_date is None:
        return period
    return f"{period}:{month_token(reference_date)}"


class FinanceCacheManager:
    """
    Domain cache strategy.

    Provides typed cache access for movements, categories, statistics,
    budgets and profiles, the invalidation rules applied after writes, and
    cache warming through an attached ``CacheLoader``.

    Args:
        store: Cache store shared with the query executor
        settings: TTL configuration; process settings when omitted
        loader: Fetch path used by ``warm_user_cache`` and ``preload_for_page``
    """

    def __init__(
        self,
        store: CacheStore,
        settings: Optional[Settings] = None,
        loader: Optional[CacheLoader] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.versions = VersionRegistry()
        self.invalidation_service = CacheInvalidationService(store)
        self._loader = loader

        s = self.settings
        self.recent_movements_ttl = TTL.ms(s.MOVEMENTS_RECENT_TTL_MS)
        self.range_movements_ttl = TTL.ms(s.MOVEMENTS_RANGE_TTL_MS)

        self.movements: CacheRegion[List[Movement]] = CacheRegion(
            store, CacheDomain.MOVEMENTS, self.range_movements_ttl, self.versions
        )
        self.single_movements: CacheRegion[Movement] = CacheRegion(
            store, CacheDomain.MOVEMENTS, self.range_movements_ttl, self.versions
        )
        self.categories: CacheRegion[List[Category]] = CacheRegion(
            store, CacheDomain.CATEGORIES, TTL.ms(s.CATEGORIES_TTL_MS), self.versions
        )
        self.single_categories: CacheRegion[Category] = CacheRegion(
            store, CacheDomain.CATEGORIES, TTL.ms(s.CATEGORIES_TTL_MS), self.versions
        )
        self.statistics: CacheRegion[StatisticsResult] = CacheRegion(
            store, CacheDomain.STATISTICS, TTL.ms(s.STATISTICS_TTL_MS), self.versions
        )
        self.summaries: CacheRegion[MovementSummary] = CacheRegion(
            store, CacheDomain.STATISTICS, TTL.ms(s.STATISTICS_TTL_MS), self.versions
        )
        self.budgets: CacheRegion[List[Dict[str, Any]]] = CacheRegion(
            store, CacheDomain.BUDGETS, TTL.ms(s.BUDGETS_TTL_MS), self.versions
        )
        self.profiles: CacheRegion[Dict[str, Any]] = CacheRegion(
            store, CacheDomain.PROFILE, TTL.ms(s.PROFILE_TTL_MS), self.versions
        )

    # Loader

    def attach_loader(self, loader: CacheLoader) -> None:
        self._loader = loader

    @property
    def loader(self) -> CacheLoader:
        if self._loader is None:
            raise CacheLoaderMissingException("cache warming")
        return self._loader

    # Keys and TTLs

    def movements_key(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        *,
        date_range: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> CacheKey:
        return self.movements.key(
            CacheScope(user_id, context_id), _movements_qualifier(date_range, limit)
        )

    def movements_ttl(self, is_recent: bool) -> TTL:
        """Recent slices change often and live shorter than arbitrary ranges."""
        return self.recent_movements_ttl if is_recent else self.range_movements_ttl

    def categories_key(self, user_id: str, context_id: Optional[str] = None) -> CacheKey:
        return self.categories.key(CacheScope(user_id, context_id), ALL_QUALIFIER)

    def statistics_key(
        self,
        user_id: str,
        period: str,
        context_id: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> CacheKey:
        return self.statistics.key(
            CacheScope(user_id, context_id),
            _statistics_qualifier(period, reference_date),
        )

    def summary_key(
        self, user_id: str, context_id: Optional[str], reference_date: date
    ) -> CacheKey:
        return self.summaries.key(
            CacheScope(user_id, context_id), f"summary:{month_token(reference_date)}"
        )

    def budgets_key(self, user_id: str, context_id: Optional[str] = None) -> CacheKey:
        return self.budgets.key(CacheScope(user_id, context_id), ALL_QUALIFIER)

    def profile_key(self, user_id: str) -> CacheKey:
        return self.profiles.key(CacheScope(user_id), "profile")

    # Movements

    def cache_movements(
        self,
        user_id: str,
        context_id: Optional[str],
        movements: Sequence[Movement],
        *,
        is_recent: bool = False,
        date_range: Optional[str] = None,
        limit: Optional[int] = None,
        ttl: Optional[TTL] = None,
    ) -> CacheKey:
        """
        Cache a movement list and each movement individually.

        Args:
            user_id: Owner of the data
            context_id: Shared context, ``None`` for personal data
            movements: Movement records
            is_recent: Recent slice (short TTL) rather than a range
            date_range: Range token from ``date_range_token``
            limit: Row limit of an un-ranged query
            ttl: Explicit TTL overriding the domain policy

        Returns:
            Key of the cached list
        """
        scope = CacheScope(user_id, context_id)
        cache_ttl = ttl or self.movements_ttl(is_recent)
        key = self.movements.put(
            scope, _movements_qualifier(date_range, limit), list(movements), cache_ttl
        )
        self.cache_movement_items(user_id, context_id, movements, cache_ttl)

        logger.debug(
            "Cached movements",
            key=key.value,
            count=len(movements),
            ttl_ms=cache_ttl.milliseconds,
        )
        return key

    def cache_movement_items(
        self,
        user_id: str,
        context_id: Optional[str],
        movements: Sequence[Movement],
        ttl: Optional[TTL] = None,
    ) -> None:
        scope = CacheScope(user_id, context_id)
        for movement in movements:
            self.single_movements.put(scope, f"single:{movement.id}", movement, ttl)

    def get_cached_movements(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        date_range: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[Movement]]:
        return self.movements.get(
            CacheScope(user_id, context_id), _movements_qualifier(date_range, limit)
        )

    def get_cached_movement(
        self, user_id: str, context_id: Optional[str], movement_id: str
    ) -> Optional[Movement]:
        return self.single_movements.get(
            CacheScope(user_id, context_id), f"single:{movement_id}"
        )

    # Categories

    def cache_categories(
        self,
        user_id: str,
        context_id: Optional[str],
        categories: Sequence[Category],
        ttl: Optional[TTL] = None,
    ) -> CacheKey:
        scope = CacheScope(user_id, context_id)
        key = self.categories.put(scope, ALL_QUALIFIER, list(categories), ttl)
        for category in categories:
            self.single_categories.put(scope, f"single:{category.id}", category, ttl)
        return key

    def get_cached_categories(
        self, user_id: str, context_id: Optional[str] = None
    ) -> Optional[List[Category]]:
        return self.categories.get(CacheScope(user_id, context_id), ALL_QUALIFIER)

    def get_cached_category(
        self, user_id: str, context_id: Optional[str], category_id: str
    ) -> Optional[Category]:
        return self.single_categories.get(
            CacheScope(user_id, context_id), f"single:{category_id}"
        )

    # Statistics

    def cache_statistics(
        self,
        user_id: str,
        period: str,
        context_id: Optional[str],
        statistics: StatisticsResult,
        *,
        reference_date: Optional[date] = None,
        ttl: Optional[TTL] = None,
    ) -> CacheKey:
        return self.statistics.put(
            CacheScope(user_id, context_id),
            _statistics_qualifier(period, reference_date),
            statistics,
            ttl,
        )

    def get_cached_statistics(
        self,
        user_id: str,
        period: str,
        context_id: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> Optional[StatisticsResult]:
        return self.statistics.get(
            CacheScope(user_id, context_id),
            _statistics_qualifier(period, reference_date),
        )

    def get_cached_summary(
        self, user_id: str, context_id: Optional[str], reference_date: date
    ) -> Optional[MovementSummary]:
        return self.summaries.get(
            CacheScope(user_id, context_id), f"summary:{month_token(reference_date)}"
        )

    # Budgets and profile

    def cache_budgets(
        self,
        user_id: str,
        context_id: Optional[str],
        budgets: Sequence[Dict[str, Any]],
        ttl: Optional[TTL] = None,
    ) -> CacheKey:
        return self.budgets.put(
            CacheScope(user_id, context_id), ALL_QUALIFIER, list(budgets), ttl
        )

    def get_cached_budgets(
        self, user_id: str, context_id: Optional[str] = None
    ) -> Optional[List[Dict[str, Any]]]:
        return self.budgets.get(CacheScope(user_id, context_id), ALL_QUALIFIER)

    def cache_profile(
        self, user_id: str, profile: Dict[str, Any], ttl: Optional[TTL] = None
    ) -> CacheKey:
        return self.profiles.put(CacheScope(user_id), "profile", profile, ttl)

    def get_cached_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.profiles.get(CacheScope(user_id), "profile")

    # Invalidation

    def invalidate_movements(self, user_id: str, context_id: Optional[str] = None) -> int:
        """Drop the scope's movements and everything derived from them."""
        return self.invalidation_service.on_movement_changed(
            MutationType.UPDATE, user_id, context_id
        )

    def invalidate_categories(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        *,
        include_statistics: bool = False,
    ) -> int:
        domains = [CacheDomain.CATEGORIES]
        if include_statistics:
            domains.append(CacheDomain.STATISTICS)
        return self.invalidation_service.invalidate(
            domains, user_id, context_id, reason="categories"
        )

    def invalidate_statistics(self, user_id: str, context_id: Optional[str] = None) -> int:
        return self.invalidation_service.invalidate(
            [CacheDomain.STATISTICS], user_id, context_id, reason="statistics"
        )

    def invalidate_budgets(self, user_id: str, context_id: Optional[str] = None) -> int:
        return self.invalidation_service.invalidate(
            [CacheDomain.BUDGETS], user_id, context_id, reason="budgets"
        )

    def invalidate_profile(self, user_id: str) -> int:
        return self.invalidation_service.invalidate(
            [CacheDomain.PROFILE], user_id, reason="profile"
        )

    def on_movement_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.invalidation_service.on_movement_changed(mutation, user_id, context_id)

    def on_category_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.invalidation_service.on_category_changed(mutation, user_id, context_id)

    def on_budget_changed(
        self, mutation: MutationType, user_id: str, context_id: Optional[str] = None
    ) -> int:
        return self.invalidation_service.on_budget_changed(mutation, user_id, context_id)

    def bump_version(self, domain: CacheDomain) -> CacheVersion:
        """
        Move ``domain`` to a new version tag.

        Keys written under the previous tag are no longer reachable and age
        out through TTL or the periodic sweep.
        """
        previous = self.versions.current(domain)
        version = self.versions.bump(domain)
        logger.info(
            "Cache version bumped",
            domain=domain.value,
            previous=str(previous),
            version=str(version),
        )
        return version

    # Warming

    async def _run_warming(
        self, operation: str, jobs: Dict[str, Callable[[], Awaitable[Any]]]
    ) -> Dict[str, bool]:
        names = list(jobs)
        results = await asyncio.gather(
            *(jobs[name]() for name in names), return_exceptions=True
        )

        report: Dict[str, bool] = {}
        for name, result in zip(names, results):
            failed = isinstance(result, BaseException)
            report[name] = not failed
            if failed:
                logger.warning(
                    "Cache warming step failed",
                    operation=operation,
                    step=name,
                    error=str(result),
                )
        return report

    async def warm_user_cache(
        self, user_id: str, context_id: Optional[str] = None
    ) -> Dict[str, bool]:
        """
        Pre-populate the most accessed data: recent movements, categories and
        current-month statistics.

        Failures are logged and never raised; warming is an optimization.

        Returns:
            Mapping of each warming step to whether it succeeded
        """
        if self._loader is None:
            logger.warning("Cache warming skipped, no loader attached", user_id=user_id)
            return {}

        loader = self._loader
        with tracer.start_as_current_span("cache_manager.warm_user_cache") as span:
            span.set_attribute("user_id", user_id)
            return await self._run_warming(
                "warm_user_cache",
                {
                    "movements": lambda: loader.get_movements(
                        user_id, context_id, limit=WARM_RECENT_MOVEMENTS_LIMIT
                    ),
                    "categories": lambda: loader.get_categories(user_id, context_id),
                    "statistics": lambda: loader.get_statistics(
                        user_id, "month", context_id
                    ),
                },
            )

    async def preload_for_page(
        self, page: str, user_id: str, context_id: Optional[str] = None
    ) -> Dict[str, bool]:
        """
        Preload the data the given page renders.

        Args:
            page: ``dashboard``, ``movements``, ``statistics`` or ``categories``
            user_id: Owner of the data
            context_id: Shared context, ``None`` for personal data

        Returns:
            Mapping of each preload step to whether it succeeded; empty for
            an unknown page
        """
        if self._loader is None:
            logger.warning("Preloading skipped, no loader attached", page=page)
            return {}

        loader = self._loader
        plans: Dict[str, Dict[str, Callable[[], Awaitable[Any]]]] = {
            "dashboard": {
                "movements": lambda: loader.get_movements(
                    user_id, context_id, limit=DASHBOARD_MOVEMENTS_LIMIT
                ),
                "statistics": lambda: loader.get_statistics(user_id, "month", context_id),
                "categories": lambda: loader.get_categories(user_id, context_id),
            },
            "movements": {
                "movements": lambda: loader.get_movements(
                    user_id, context_id, limit=MOVEMENTS_PAGE_LIMIT
                ),
                "categories": lambda: loader.get_categories(user_id, context_id),
            },
            "statistics": {
                "month": lambda: loader.get_statistics(user_id, "month", context_id),
                "year": lambda: loader.get_statistics(user_id, "year", context_id),
            },
            "categories": {
                "categories": lambda: loader.get_categories(user_id, context_id),
            },
        }

        plan = plans.get(page)
        if plan is None:
            logger.info("No preload plan for page", page=page)
            return {}

        return await self._run_warming(f"preload_for_page:{page}", plan)

    # Monitoring and maintenance

    def get_cache_stats(self) -> Dict[str, Any]:
        stats = self.store.stats()
        return {
            "total_entries": stats.size,
            "memory_usage": stats.approximate_memory_bytes,
            "hit_rate": stats.hit_rate,
            "top_keys": stats.keys[:TOP_KEYS],
            "versions": self.versions.as_dict(),
        }

    def clear_all_cache(self) -> int:
        removed = self.store.clear()
        logger.info("All cache cleared", count=removed)
        return removed

    def clear_user_cache(self, user_id: str) -> int:
        return self.invalidation_service.invalidate_user(user_id)
