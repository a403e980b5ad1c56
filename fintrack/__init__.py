"""
fintrack core

Tiered caching and statistics aggregation for the finance tracker.
"""

from .constants import APP_NAME, APP_VERSION

__all__ = ["APP_NAME", "APP_VERSION"]
