"""
fintrack Core Container

Explicitly constructed cache, executor and data service with a process
lifecycle: ``initialize`` at startup, ``close`` at shutdown or test teardown.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from ..constants import APP_VERSION
from ..domain.finance.repository_interfaces import FinanceDataStore
from ..infrastructure.cache.memory_store import Clock, MemoryCacheStore
from ..monitoring.query_profiler import QueryProfiler
from ..services.cache.cache_manager import FinanceCacheManager
from ..services.finance.data_service import FinanceDataService
from ..services.query.query_executor import QueryExecutor
from .config import Settings, get_settings
from .logging import configure_logging

logger = structlog.get_logger(__name__)


class FinanceCore:
    """
    Wires the finance caching core around one data store.

    Args:
        data_store: Remote data store implementation
        settings: Configuration; process settings when omitted
        clock: Millisecond clock for the cache store, monotonic by default
    """

    def __init__(
        self,
        data_store: FinanceDataStore,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or get_settings()
        self.store = MemoryCacheStore(clock=clock)
        self.profiler = QueryProfiler(
            slow_query_threshold_ms=self.settings.slow_query_threshold_ms,
            window_size=self.settings.PROFILE_WINDOW_SIZE,
        )
        self.executor = QueryExecutor(
            self.store,
            self.profiler,
            default_ttl_ms=self.settings.DEFAULT_QUERY_TTL_MS,
            deduplicate_inflight=self.settings.QUERY_DEDUPLICATE_INFLIGHT,
        )
        self.cache_manager = FinanceCacheManager(self.store, self.settings)
        self.data_service = FinanceDataService(
            data_store, self.cache_manager, self.executor, self.settings
        )
        self.cache_manager.attach_loader(self.data_service)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        if self._initialized:
            return

        configure_logging(self.settings.LOG_LEVEL, self.settings.LOG_JSON)

        if self.settings.CACHE_AUTO_CLEANUP_ENABLED:
            self.store.start_auto_cleanup(self.settings.CACHE_SWEEP_INTERVAL_SECONDS)

        self._initialized = True
        logger.info(
            "Finance core initialized",
            version=APP_VERSION,
            environment=self.settings.ENVIRONMENT,
            auto_cleanup=self.store.auto_cleanup_running,
        )

    async def close(self) -> None:
        await self.store.stop_auto_cleanup()
        removed = self.store.clear()
        self._initialized = False
        logger.info("Finance core closed", cleared_entries=removed)

    @asynccontextmanager
    async def lifespan(self) -> AsyncIterator["FinanceCore"]:
        await self.initialize()
        try:
            yield self
        finally:
            await self.close()
