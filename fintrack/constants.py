"""
fintrack Global Constants

Centralized location for constants shared by the cache and statistics layers.
"""

# Application Constants
APP_NAME = "fintrack"
APP_VERSION = "0.1.0"

# Scope placeholder used in cache keys when no shared context is active
PERSONAL_CONTEXT = "personal"

# Statistics presentation
UNCATEGORIZED_LABEL = "Sin categoría"
UNCATEGORIZED_COLOR = "#9ca3af"
DEFAULT_CATEGORY_COLOR = "#8b5cf6"
MONTH_LABELS = (
    "Ene",
    "Feb",
    "Mar",
    "Abr",
    "May",
    "Jun",
    "Jul",
    "Ago",
    "Sep",
    "Oct",
    "Nov",
    "Dic",
)

# Statistics periods and the number of monthly buckets each one spans
PERIOD_MONTHS = {
    "month": 6,
    "year": 12,
}

# Cache warming sizes
WARM_RECENT_MOVEMENTS_LIMIT = 20
DASHBOARD_MOVEMENTS_LIMIT = 10
MOVEMENTS_PAGE_LIMIT = 50
RECENT_SLICE_MAX_LIMIT = 20
