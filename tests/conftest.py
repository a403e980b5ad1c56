"""
Main pytest configuration for fintrack tests.

Fixtures shared by the unit tests: a controllable millisecond clock,
settings isolated from the host environment, and sample movements.
"""

import os
from datetime import date
from decimal import Decimal
from typing import List
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing fintrack modules
os.environ["FINTRACK_ENVIRONMENT"] = "test"
os.environ["FINTRACK_LOG_LEVEL"] = "DEBUG"

from fintrack.core.config import Settings
from fintrack.domain.finance.entities import Category, Movement, MovementType
from fintrack.domain.finance.repository_interfaces import FinanceDataStore
from fintrack.infrastructure.cache.memory_store import MemoryCacheStore


class FakeClock:
    """Millisecond clock advanced explicitly by tests."""

    def __init__(self, start_ms: float = 1_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def settings():
    """Settings with defaults, ignoring any .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        CACHE_AUTO_CLEANUP_ENABLED=False,
    )


@pytest.fixture
def food_category():
    return Category(id="food", name="food-display-name", color="#ef4444")


def make_movement(
    movement_id: str,
    movement_type: MovementType,
    amount: str,
    movement_date: date,
    category: Category = None,
    category_id: str = None,
) -> Movement:
    return Movement(
        id=movement_id,
        amount=Decimal(amount),
        type=movement_type,
        movement_date=movement_date,
        category_id=category_id or (category.id if category else None),
        category=category,
    )


@pytest.fixture
def movement_factory():
    return make_movement


@pytest.fixture
def scenario_movements(food_category) -> List[Movement]:
    """Income in January, a food expense in January, an uncategorized one in February."""
    return [
        make_movement("m1", MovementType.INCOME, "1000", date(2024, 1, 5)),
        make_movement(
            "m2", MovementType.EXPENSE, "200", date(2024, 1, 10), category=food_category
        ),
        make_movement("m3", MovementType.EXPENSE, "50", date(2024, 2, 1)),
    ]


@pytest.fixture
def data_store(scenario_movements, food_category):
    """Mocked remote data store answering with the scenario rows."""
    store = AsyncMock(spec=FinanceDataStore)
    store.get_movements.return_value = scenario_movements
    store.get_movements_by_date_range.return_value = scenario_movements
    store.get_categories.return_value = [food_category]
    store.get_budgets.return_value = [{"id": "b1", "amount": "500"}]
    store.get_profile.return_value = {"id": "u1", "full_name": "Test User"}
    return store
