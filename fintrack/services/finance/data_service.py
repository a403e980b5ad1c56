"""
Finance Data Service

Read path of the finance tracker. Every fetch goes through the query executor
under a key built by the cache manager, so invalidation and warming operate on
the same entries this service reads.
"""

import asyncio
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import structlog

from ...constants import (
    DASHBOARD_MOVEMENTS_LIMIT,
    MOVEMENTS_PAGE_LIMIT,
    RECENT_SLICE_MAX_LIMIT,
)
from ...core.config import Settings, get_settings
from ...domain.finance.entities import (
    Category,
    Movement,
    MovementSummary,
    StatisticsResult,
)
from ...domain.finance.repository_interfaces import FinanceDataStore
from ..cache.cache_manager import FinanceCacheManager, date_range_token
from ..query.query_executor import BatchQuery, QueryExecutor
from ..statistics.aggregation import (
    aggregate,
    aggregation_window,
    period_months,
    summarize_movements,
)

logger = structlog.get_logger(__name__)


class FinanceDataService:
    """
    Cached access to movements, categories, budgets, profiles and statistics.

    Implements ``CacheLoader`` so the cache manager can warm entries through
    the same fetch path.
    """

    def __init__(
        self,
        data_store: FinanceDataStore,
        cache_manager: FinanceCacheManager,
        executor: QueryExecutor,
        settings: Optional[Settings] = None,
    ):
        self.data_store = data_store
        self.cache_manager = cache_manager
        self.executor = executor
        self.settings = settings or get_settings()

    def today(self) -> date:
        """Current date in the configured timezone."""
        return datetime.now(ZoneInfo(self.settings.TIMEZONE)).date()

    # Fetches shared by the single reads and the dashboard batch

    async def _fetch_movements(
        self, user_id: str, context_id: Optional[str], limit: int
    ) -> List[Movement]:
        movements = await self.data_store.get_movements(user_id, context_id, limit=limit)
        ttl = self.cache_manager.movements_ttl(limit <= RECENT_SLICE_MAX_LIMIT)
        self.cache_manager.cache_movement_items(user_id, context_id, movements, ttl)
        return movements

    async def _fetch_categories(
        self, user_id: str, context_id: Optional[str]
    ) -> List[Category]:
        categories = await self.data_store.get_categories(user_id, context_id)
        # Fills the per-category entries alongside the list
        self.cache_manager.cache_categories(user_id, context_id, categories)
        return categories

    async def get_movements(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        limit: int = MOVEMENTS_PAGE_LIMIT,
    ) -> List[Movement]:
        ttl = self.cache_manager.movements_ttl(limit <= RECENT_SLICE_MAX_LIMIT)
        key = self.cache_manager.movements_key(user_id, context_id, limit=limit)
        return await self.executor.execute(
            key.value,
            lambda: self._fetch_movements(user_id, context_id, limit),
            ttl_ms=ttl.milliseconds,
        )

    async def get_movements_by_date_range(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        context_id: Optional[str] = None,
    ) -> List[Movement]:
        ttl = self.cache_manager.movements_ttl(False)
        key = self.cache_manager.movements_key(
            user_id, context_id, date_range=date_range_token(start_date, end_date)
        )

        async def fetch() -> List[Movement]:
            movements = await self.data_store.get_movements_by_date_range(
                user_id, start_date, end_date, context_id
            )
            self.cache_manager.cache_movement_items(user_id, context_id, movements, ttl)
            return movements

        return await self.executor.execute(key.value, fetch, ttl_ms=ttl.milliseconds)

    async def get_categories(
        self, user_id: str, context_id: Optional[str] = None
    ) -> List[Category]:
        key = self.cache_manager.categories_key(user_id, context_id)
        return await self.executor.execute(
            key.value,
            lambda: self._fetch_categories(user_id, context_id),
            ttl_ms=self.cache_manager.categories.default_ttl.milliseconds,
        )

    async def get_budgets(
        self, user_id: str, context_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        key = self.cache_manager.budgets_key(user_id, context_id)
        return await self.executor.execute(
            key.value,
            lambda: self.data_store.get_budgets(user_id, context_id),
            ttl_ms=self.cache_manager.budgets.default_ttl.milliseconds,
        )

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        key = self.cache_manager.profile_key(user_id)
        return await self.executor.execute(
            key.value,
            lambda: self.data_store.get_profile(user_id),
            ttl_ms=self.cache_manager.profiles.default_ttl.milliseconds,
        )

    async def get_statistics(
        self,
        user_id: str,
        period: str = "month",
        context_id: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> StatisticsResult:
        """
        Statistics for ``period`` ending at the month of ``reference_date``.

        Without a reference date the current month is used and the entry is
        keyed by period only, the key ``get_cached_statistics`` reads. Such an
        entry computed before the current month started is discarded and
        recomputed instead of being served.

        Raises:
            InvalidAggregationWindowException: Unknown period
        """
        period_months(period)
        key = self.cache_manager.statistics_key(
            user_id, period, context_id, reference_date
        ).value
        ttl_ms = self.cache_manager.statistics.default_ttl.milliseconds

        def fetch():
            return self._aggregate(user_id, period, context_id, reference_date)

        result = await self.executor.execute(key, fetch, ttl_ms=ttl_ms)
        if reference_date is None and result.window_end < self.today():
            logger.info("Statistics window rolled over", key=key)
            self.cache_manager.store.delete(key)
            result = await self.executor.execute(key, fetch, ttl_ms=ttl_ms)
        return result

    async def get_movement_stats(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> MovementSummary:
        """Summary card of the month containing ``reference_date``."""
        reference = reference_date or self.today()
        key = self.cache_manager.summary_key(user_id, context_id, reference)
        start, end = aggregation_window(1, reference)

        async def fetch() -> MovementSummary:
            movements = await self.data_store.get_movements_by_date_range(
                user_id, start, end, context_id
            )
            return summarize_movements(movements)

        return await self.executor.execute(
            key.value,
            fetch,
            ttl_ms=self.cache_manager.summaries.default_ttl.milliseconds,
        )

    async def get_dashboard_bundle(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        period: str = "month",
    ) -> Dict[str, Any]:
        """
        Everything the dashboard renders, fetched concurrently.

        A failing part leaves ``None`` in its slot; the rest is still returned.
        """
        manager = self.cache_manager
        limit = DASHBOARD_MOVEMENTS_LIMIT

        return await self.executor.batch(
            {
                "movements": BatchQuery(
                    key=manager.movements_key(user_id, context_id, limit=limit).value,
                    fetch_fn=lambda: self._fetch_movements(user_id, context_id, limit),
                    ttl_ms=manager.movements_ttl(True).milliseconds,
                ),
                # get_statistics does its own caching and rollover check
                "statistics": BatchQuery(
                    key=manager.statistics_key(user_id, period, context_id).value,
                    fetch_fn=lambda: self.get_statistics(user_id, period, context_id),
                    use_cache=False,
                    profile=False,
                ),
                "categories": BatchQuery(
                    key=manager.categories_key(user_id, context_id).value,
                    fetch_fn=lambda: self._fetch_categories(user_id, context_id),
                    ttl_ms=manager.categories.default_ttl.milliseconds,
                ),
            }
        )

    async def _aggregate(
        self,
        user_id: str,
        period: str,
        context_id: Optional[str],
        reference_date: Optional[date] = None,
    ) -> StatisticsResult:
        months_count = period_months(period)
        reference = reference_date or self.today()
        start, end = aggregation_window(months_count, reference)
        # Rows may carry only category_id; the category list resolves them
        movements, categories = await asyncio.gather(
            self.data_store.get_movements_by_date_range(
                user_id, start, end, context_id
            ),
            self.get_categories(user_id, context_id),
        )
        logger.debug(
            "Aggregating statistics",
            user_id=user_id,
            period=period,
            movements=len(movements),
            categories=len(categories),
        )
        return aggregate(movements, months_count, reference, categories=categories)
