"""
Finance Repository Interfaces

Contract of the remote data store. Row-level filtering by user and shared
context is applied by the store itself; this core only reads.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from .entities import Category, Movement


class FinanceDataStore(ABC):
    """Async read API of the external data store."""

    @abstractmethod
    async def get_movements(
        self, user_id: str, context_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Movement]:
        """Most recent movements, newest first."""

    @abstractmethod
    async def get_movements_by_date_range(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        context_id: Optional[str] = None,
    ) -> List[Movement]:
        """Movements dated within ``[start_date, end_date]``."""

    @abstractmethod
    async def get_categories(
        self, user_id: str, context_id: Optional[str] = None
    ) -> List[Category]:
        """Categories visible in the scope."""

    @abstractmethod
    async def get_budgets(
        self, user_id: str, context_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Budget rows visible in the scope."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Profile row of the user."""
