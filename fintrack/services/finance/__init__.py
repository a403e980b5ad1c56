"""Cached finance data access."""

from .data_service import FinanceDataService

__all__ = ["FinanceDataService"]
