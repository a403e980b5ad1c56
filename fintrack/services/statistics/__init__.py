"""Statistics aggregation."""

from .aggregation import (
    aggregate,
    aggregation_window,
    period_months,
    summarize_movements,
)

__all__ = ["aggregate", "aggregation_window", "period_months", "summarize_movements"]
