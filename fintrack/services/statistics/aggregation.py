"""
Statistics Aggregation Engine

Pure functions turning a window of movements into the statistics views:
totals, a fixed-length month-by-month series and an expense breakdown by
category. No I/O, no shared state; identical inputs in any order produce
value-equal results.

Amounts are summed as ``Decimal``. Rounding belongs to presentation.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ...constants import (
    DEFAULT_CATEGORY_COLOR,
    MONTH_LABELS,
    PERIOD_MONTHS,
    UNCATEGORIZED_COLOR,
    UNCATEGORIZED_LABEL,
)
from ...domain.exceptions import InvalidAggregationWindowException
from ...domain.finance.entities import (
    Category,
    CategoryBucket,
    DetailedStats,
    MonthBucket,
    Movement,
    MovementSummary,
    StatisticsResult,
)

ZERO = Decimal("0")

YearMonth = Tuple[int, int]


def period_months(period: str) -> int:
    """Number of monthly buckets a statistics period spans."""
    try:
        return PERIOD_MONTHS[period]
    except KeyError:
        raise InvalidAggregationWindowException(
            f"Unknown statistics period: {period!r}",
            period=period,
            allowed=sorted(PERIOD_MONTHS),
        ) from None


def _month_sequence(months_count: int, reference_date: date) -> List[YearMonth]:
    if months_count < 1:
        raise InvalidAggregationWindowException(
            "months_count must be at least 1", months_count=months_count
        )
    last = reference_date.year * 12 + (reference_date.month - 1)
    first = last - (months_count - 1)
    return [(index // 12, index % 12 + 1) for index in range(first, last + 1)]


def aggregation_window(months_count: int, reference_date: date) -> Tuple[date, date]:
    """
    Calendar range covered by ``months_count`` months ending at the month of
    ``reference_date``.

    Returns:
        ``(first day of the oldest month, last day of the reference month)``
    """
    months = _month_sequence(months_count, reference_date)
    first_year, first_month = months[0]
    last_year, last_month = months[-1]
    last_day = calendar.monthrange(last_year, last_month)[1]
    return date(first_year, first_month, 1), date(last_year, last_month, last_day)


def _resolve_category(
    movement: Movement, lookup: Mapping[str, Category]
) -> Optional[Category]:
    category_id = movement.category_id or (
        movement.category.id if movement.category else None
    )
    if category_id is None:
        return None
    if category_id in lookup:
        return lookup[category_id]
    if movement.category is not None and movement.category.id == category_id:
        return movement.category
    return None


def _category_buckets(
    totals: Dict[str, Decimal],
    names: Dict[str, Tuple[str, str]],
    uncategorized: Decimal,
    has_uncategorized: bool,
) -> Tuple[CategoryBucket, ...]:
    buckets = [
        CategoryBucket(
            category_id=category_id,
            nombre=names[category_id][0],
            valor=amount,
            color=names[category_id][1],
        )
        for category_id, amount in totals.items()
    ]
    if has_uncategorized:
        buckets.append(
            CategoryBucket(
                category_id=None,
                nombre=UNCATEGORIZED_LABEL,
                valor=uncategorized,
                color=UNCATEGORIZED_COLOR,
            )
        )
    buckets.sort(key=lambda b: (-b.valor, b.nombre, b.category_id or ""))
    return tuple(buckets)


def aggregate(
    movements: Iterable[Movement],
    months_count: int,
    reference_date: date,
    *,
    categories: Optional[Sequence[Category]] = None,
) -> StatisticsResult:
    """
    Derive every statistics view from one window of movements.

    Movements dated outside the ``months_count`` months ending at
    ``reference_date`` are ignored by all views, so the monthly series always
    sums to the totals.

    Args:
        movements: Movement records, in any order
        months_count: Number of monthly buckets (6 for ``month``, 12 for ``year``)
        reference_date: Any date inside the newest month
        categories: Optional category rows; they take precedence over the
            category embedded in each movement when resolving names and colors

    Returns:
        A new immutable ``StatisticsResult``
    """
    months = _month_sequence(months_count, reference_date)
    slots = {year_month: index for index, year_month in enumerate(months)}
    lookup = {category.id: category for category in categories or ()}

    income = [ZERO] * months_count
    expenses = [ZERO] * months_count
    category_totals: Dict[str, Decimal] = {}
    category_names: Dict[str, Tuple[str, str]] = {}
    uncategorized = ZERO
    has_uncategorized = False
    counted = 0

    for movement in movements:
        slot = slots.get((movement.movement_date.year, movement.movement_date.month))
        if slot is None:
            continue
        counted += 1

        if movement.is_income:
            income[slot] += movement.amount
            continue

        expenses[slot] += movement.amount
        category = _resolve_category(movement, lookup)
        if category is None:
            uncategorized += movement.amount
            has_uncategorized = True
            continue

        category_totals[category.id] = (
            category_totals.get(category.id, ZERO) + movement.amount
        )
        display = (category.name, category.color or DEFAULT_CATEGORY_COLOR)
        # Smallest display wins when embedded rows disagree
        if category.id not in category_names or display < category_names[category.id]:
            category_names[category.id] = display

    total_income = sum(income, ZERO)
    total_expenses = sum(expenses, ZERO)
    balance = total_income - total_expenses

    monthly = tuple(
        MonthBucket(
            mes=MONTH_LABELS[month - 1],
            year=year,
            month=month,
            ingresos=income[index],
            egresos=expenses[index],
            saldo=income[index] - expenses[index],
        )
        for index, (year, month) in enumerate(months)
    )

    window_start, window_end = aggregation_window(months_count, reference_date)

    return StatisticsResult(
        detailed_stats=DetailedStats(
            total_income=total_income,
            total_expenses=total_expenses,
            balance=balance,
            average_monthly=balance / months_count,
            movements_count=counted,
        ),
        monthly_comparison=monthly,
        category_stats=_category_buckets(
            category_totals, category_names, uncategorized, has_uncategorized
        ),
        months_count=months_count,
        window_start=window_start,
        window_end=window_end,
    )


def summarize_movements(movements: Iterable[Movement]) -> MovementSummary:
    """Totals and count over every movement given, without any date filter."""
    total_income = ZERO
    total_expenses = ZERO
    count = 0
    for movement in movements:
        count += 1
        if movement.is_income:
            total_income += movement.amount
        else:
            total_expenses += movement.amount

    return MovementSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
        movements_count=count,
    )
