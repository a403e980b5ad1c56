"""
Unit tests for the Finance Data Service.

The remote data store is an ``AsyncMock``; every other component is real.
"""

from datetime import date
from decimal import Decimal

import pytest

from fintrack.domain.cache.value_objects import MutationType
from fintrack.domain.exceptions import InvalidAggregationWindowException
from fintrack.domain.finance.entities import Category, Movement, MovementType
from fintrack.services.cache.cache_manager import FinanceCacheManager
from fintrack.services.finance.data_service import FinanceDataService
from fintrack.services.query.query_executor import QueryExecutor

MINUTE_MS = 60 * 1000
FEBRUARY_2024 = date(2024, 2, 15)


@pytest.fixture
def cache_manager(store, settings):
    return FinanceCacheManager(store, settings)


@pytest.fixture
def service(data_store, cache_manager, store, settings):
    executor = QueryExecutor(store)
    service = FinanceDataService(data_store, cache_manager, executor, settings)
    cache_manager.attach_loader(service)
    return service


class TestMovements:
    """Test cached movement reads."""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, service, data_store):
        first = await service.get_movements("u1", "c1", limit=50)
        second = await service.get_movements("u1", "c1", limit=50)

        assert first == second
        data_store.get_movements.assert_awaited_once_with("u1", "c1", limit=50)

    @pytest.mark.asyncio
    async def test_recent_slice_uses_short_ttl(self, service, data_store, clock):
        await service.get_movements("u1", limit=20)
        clock.advance(2 * MINUTE_MS + 1)
        await service.get_movements("u1", limit=20)

        assert data_store.get_movements.await_count == 2

    @pytest.mark.asyncio
    async def test_page_slice_uses_range_ttl(self, service, data_store, clock):
        await service.get_movements("u1", limit=50)
        clock.advance(2 * MINUTE_MS + 1)
        await service.get_movements("u1", limit=50)

        assert data_store.get_movements.await_count == 1

    @pytest.mark.asyncio
    async def test_single_movements_cached(self, service, cache_manager):
        await service.get_movements("u1", limit=50)
        assert cache_manager.get_cached_movement("u1", None, "m3").amount == Decimal("50")

    @pytest.mark.asyncio
    async def test_date_range(self, service, data_store, cache_manager):
        start, end = date(2024, 1, 1), date(2024, 1, 31)

        await service.get_movements_by_date_range("u1", start, end)
        await service.get_movements_by_date_range("u1", start, end)

        data_store.get_movements_by_date_range.assert_awaited_once_with(
            "u1", start, end, None
        )
        assert cache_manager.get_cached_movements("u1", date_range="2024-01-01:2024-01-31")

    @pytest.mark.asyncio
    async def test_failure_propagates(self, service, data_store, cache_manager):
        data_store.get_movements.side_effect = ConnectionError("offline")

        with pytest.raises(ConnectionError):
            await service.get_movements("u1", limit=50)

        assert cache_manager.get_cached_movements("u1", limit=50) is None


class TestOtherDomains:
    """Test categories, budgets and profile reads."""

    @pytest.mark.asyncio
    async def test_categories(self, service, data_store, cache_manager, food_category):
        assert await service.get_categories("u1") == [food_category]
        await service.get_categories("u1")

        data_store.get_categories.assert_awaited_once()
        assert cache_manager.get_cached_category("u1", None, "food") == food_category

    @pytest.mark.asyncio
    async def test_budgets(self, service, data_store, cache_manager):
        await service.get_budgets("u1", "c1")
        assert cache_manager.get_cached_budgets("u1", "c1") == [
            {"id": "b1", "amount": "500"}
        ]

    @pytest.mark.asyncio
    async def test_profile(self, service, data_store):
        await service.get_profile("u1")
        profile = await service.get_profile("u1")

        assert profile["full_name"] == "Test User"
        data_store.get_profile.assert_awaited_once_with("u1")


class TestStatistics:
    """Test statistics computed on miss."""

    @pytest.mark.asyncio
    async def test_statistics_for_reference_month(self, service, data_store):
        result = await service.get_statistics("u1", "month", reference_date=FEBRUARY_2024)

        data_store.get_movements_by_date_range.assert_awaited_once_with(
            "u1", date(2023, 9, 1), date(2024, 2, 29), None
        )
        assert result.detailed_stats.balance == Decimal("750")
        assert result.detailed_stats.average_monthly == Decimal("125")

    @pytest.mark.asyncio
    async def test_statistics_cached_until_movement_changes(
        self, service, data_store, cache_manager
    ):
        await service.get_statistics("u1", "year", reference_date=FEBRUARY_2024)
        await service.get_statistics("u1", "year", reference_date=FEBRUARY_2024)
        assert data_store.get_movements_by_date_range.await_count == 1

        cache_manager.on_movement_changed(MutationType.CREATE, "u1")
        await service.get_statistics("u1", "year", reference_date=FEBRUARY_2024)

        assert data_store.get_movements_by_date_range.await_count == 2

    @pytest.mark.asyncio
    async def test_current_month_statistics_keyed_by_period(
        self, service, cache_manager
    ):
        result = await service.get_statistics("u1", "month")

        assert cache_manager.get_cached_statistics("u1", "month") == result
        assert result.window_end.month == service.today().month

    @pytest.mark.asyncio
    async def test_unknown_period_rejected_before_fetch(self, service, data_store):
        with pytest.raises(InvalidAggregationWindowException):
            await service.get_statistics("u1", "decade")
        data_store.get_movements_by_date_range.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_movement_stats(self, service, data_store):
        summary = await service.get_movement_stats("u1", reference_date=FEBRUARY_2024)

        data_store.get_movements_by_date_range.assert_awaited_once_with(
            "u1", date(2024, 2, 1), date(2024, 2, 29), None
        )
        assert summary.movements_count == 3
        assert summary.balance == Decimal("750")


class TestDashboardBundle:
    """Test the batched dashboard read."""

    @pytest.mark.asyncio
    async def test_bundle(self, service, scenario_movements, food_category):
        bundle = await service.get_dashboard_bundle("u1")

        assert bundle["movements"] == scenario_movements
        assert bundle["categories"] == [food_category]
        assert bundle["statistics"].months_count == 6

    @pytest.mark.asyncio
    async def test_bundle_partial_failure(self, service, data_store, food_category):
        data_store.get_movements_by_date_range.side_effect = TimeoutError("slow")

        bundle = await service.get_dashboard_bundle("u1")

        assert bundle["statistics"] is None
        assert bundle["movements"] is not None
        assert bundle["categories"] == [food_category]

    @pytest.mark.asyncio
    async def test_warming_through_service(self, service, cache_manager, data_store):
        report = await cache_manager.warm_user_cache("u1")

        assert report == {"movements": True, "categories": True, "statistics": True}
        assert cache_manager.get_cached_movements("u1", limit=20) is not None
        assert cache_manager.get_cached_statistics("u1", "month") is not None


class TestCategoryResolution:
    """Test statistics over rows that only reference their category."""

    @pytest.mark.asyncio
    async def test_plain_rows_resolved_through_category_list(self, service, data_store):
        data_store.get_movements_by_date_range.return_value = [
            Movement(
                id="m1",
                amount=Decimal("80"),
                type=MovementType.EXPENSE,
                movement_date=date(2024, 2, 3),
                category_id="food",
            )
        ]
        data_store.get_categories.return_value = [
            Category(id="food", name="Comida", color="#22c55e")
        ]

        result = await service.get_statistics("u1", "month", reference_date=FEBRUARY_2024)

        assert len(result.category_stats) == 1
        bucket = result.category_stats[0]
        assert (bucket.nombre, bucket.color, bucket.valor) == (
            "Comida",
            "#22c55e",
            Decimal("80"),
        )

    @pytest.mark.asyncio
    async def test_category_list_read_from_cache(self, service, data_store):
        await service.get_categories("u1")
        await service.get_statistics("u1", "month", reference_date=FEBRUARY_2024)

        data_store.get_categories.assert_awaited_once_with("u1", None)


class TestMonthRollover:
    """Test current-month statistics across a month boundary."""

    @pytest.mark.asyncio
    async def test_same_month_served_from_cache(self, service, data_store, monkeypatch):
        monkeypatch.setattr(service, "today", lambda: date(2024, 2, 10))

        await service.get_statistics("u1", "month")
        await service.get_statistics("u1", "month")

        assert data_store.get_movements_by_date_range.await_count == 1

    @pytest.mark.asyncio
    async def test_previous_month_entry_recomputed(
        self, service, data_store, cache_manager, monkeypatch
    ):
        monkeypatch.setattr(service, "today", lambda: date(2024, 2, 29))
        february = await service.get_statistics("u1", "month")
        assert february.window_end == date(2024, 2, 29)

        monkeypatch.setattr(service, "today", lambda: date(2024, 3, 1))
        march = await service.get_statistics("u1", "month")

        assert march.window_end == date(2024, 3, 31)
        assert data_store.get_movements_by_date_range.await_count == 2
        assert cache_manager.get_cached_statistics("u1", "month") == march


class TestDashboardCacheFill:
    """Test the batch fills the same entries as the single reads."""

    @pytest.mark.asyncio
    async def test_bundle_fills_single_entries(self, service, cache_manager, food_category):
        await service.get_dashboard_bundle("u1", "c1")

        assert cache_manager.get_cached_category("u1", "c1", "food") == food_category
        assert cache_manager.get_cached_movement("u1", "c1", "m1").id == "m1"
        assert cache_manager.get_cached_movements("u1", "c1", limit=10) is not None

    @pytest.mark.asyncio
    async def test_bundle_reuses_cached_statistics(self, service, data_store):
        await service.get_statistics("u1", "month", "c1")
        bundle = await service.get_dashboard_bundle("u1", "c1")

        assert bundle["statistics"].months_count == 6
        assert data_store.get_movements_by_date_range.await_count == 1

    @pytest.mark.asyncio
    async def test_movement_stats_cached_as_summary(self, service, cache_manager):
        summary = await service.get_movement_stats("u1", reference_date=FEBRUARY_2024)
        assert cache_manager.get_cached_summary("u1", None, FEBRUARY_2024) == summary
