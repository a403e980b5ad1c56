"""
fintrack Configuration

Configuration management with environment variable support.
Every cache TTL and profiling threshold can be overridden through
``FINTRACK_``-prefixed environment variables or a ``.env`` file.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()

MINUTE_MS = 60 * 1000


class Settings(BaseSettings):
    """Core settings with validation and sane defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    TIMEZONE: str = Field(
        default="America/Bogota",
        description="Timezone used to resolve the current month for statistics",
    )

    # Cache TTL policy (milliseconds)
    MOVEMENTS_RECENT_TTL_MS: int = Field(
        default=2 * MINUTE_MS, gt=0, description="TTL for recent movement slices"
    )
    MOVEMENTS_RANGE_TTL_MS: int = Field(
        default=10 * MINUTE_MS, gt=0, description="TTL for arbitrary movement ranges"
    )
    CATEGORIES_TTL_MS: int = Field(
        default=30 * MINUTE_MS, gt=0, description="TTL for category lists"
    )
    STATISTICS_TTL_MS: int = Field(
        default=5 * MINUTE_MS, gt=0, description="TTL for derived statistics"
    )
    BUDGETS_TTL_MS: int = Field(
        default=10 * MINUTE_MS, gt=0, description="TTL for budget lists"
    )
    PROFILE_TTL_MS: int = Field(
        default=60 * MINUTE_MS, gt=0, description="TTL for user profiles"
    )
    DEFAULT_QUERY_TTL_MS: int = Field(
        default=5 * MINUTE_MS,
        gt=0,
        description="TTL applied by the query executor when none is given",
    )

    # Cache maintenance
    CACHE_AUTO_CLEANUP_ENABLED: bool = Field(
        default=True, description="Run the periodic expired-entry sweep"
    )
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=300.0, gt=0, le=86400, description="Interval between cache sweeps"
    )

    # Query profiling
    SLOW_QUERY_THRESHOLD_MS: float = Field(
        default=500.0,
        gt=0,
        le=60000,
        description="Rolling average above which a query is reported as slow",
    )
    PROFILE_WINDOW_SIZE: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Number of recent fetch durations kept per key",
    )
    QUERY_DEDUPLICATE_INFLIGHT: bool = Field(
        default=False,
        description="Let concurrent misses on one key share a single fetch",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def slow_query_threshold_ms(self) -> float:
        """Alias for SLOW_QUERY_THRESHOLD_MS."""
        return self.SLOW_QUERY_THRESHOLD_MS


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
