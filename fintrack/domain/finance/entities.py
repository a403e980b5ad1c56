"""
Finance Domain Entities

Read-only views of the rows returned by the data store, and the immutable
statistics produced from them. All models are frozen: cached instances are
shared between readers and must never be mutated in place.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MovementType(str, Enum):
    """Direction of a movement."""

    INCOME = "income"
    EXPENSE = "expense"


class Category(BaseModel):
    """Category row, either standalone or embedded in a movement."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    type: Optional[MovementType] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    context_id: Optional[str] = None


class Movement(BaseModel):
    """
    A single income or expense record.

    The data store embeds the joined category under ``categories``; both
    ``category`` and ``categories`` are accepted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    amount: Decimal
    type: MovementType
    movement_date: date
    category_id: Optional[str] = None
    category: Optional[Category] = Field(
        default=None, validation_alias=AliasChoices("category", "categories")
    )
    description: Optional[str] = None
    user_id: Optional[str] = None
    context_id: Optional[str] = None

    @field_validator("movement_date", mode="before")
    @classmethod
    def strip_time_component(cls, v: Any) -> Any:
        """Accept full timestamps by keeping only their calendar date."""
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v

    @field_validator("category_id", mode="before")
    @classmethod
    def blank_category_is_none(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @property
    def is_income(self) -> bool:
        return self.type == MovementType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type == MovementType.EXPENSE


class _StatisticsModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class DetailedStats(_StatisticsModel):
    """Totals over the whole aggregation window."""

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    average_monthly: Decimal = Decimal("0")
    movements_count: int = 0


class MonthBucket(_StatisticsModel):
    """Income, expenses and balance for one calendar month."""

    mes: str
    year: int
    month: int
    ingresos: Decimal = Decimal("0")
    egresos: Decimal = Decimal("0")
    saldo: Decimal = Decimal("0")


class CategoryBucket(_StatisticsModel):
    """Expenses summed for one category (or the uncategorized group)."""

    category_id: Optional[str] = None
    nombre: str
    valor: Decimal = Decimal("0")
    color: str


class StatisticsResult(_StatisticsModel):
    """Every statistics view derived from a single movement window."""

    detailed_stats: DetailedStats
    monthly_comparison: Tuple[MonthBucket, ...]
    category_stats: Tuple[CategoryBucket, ...]
    months_count: int
    window_start: date
    window_end: date


class MovementSummary(_StatisticsModel):
    """Current-month summary card."""

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    movements_count: int = 0
