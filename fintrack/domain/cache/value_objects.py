"""
Cache Value Objects

Immutable value objects for the cache domain.
Keys follow ``{version}-{domain}-{user}:{context}:{qualifier}``; identifiers
may not contain ``:`` so a ``(user, context)`` prefix never collides with a
longer identifier sharing the same leading characters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...constants import PERSONAL_CONTEXT
from ..exceptions import InvalidCacheKeyException, InvalidTTLException

MAX_KEY_LENGTH = 250


class CacheDomain(str, Enum):
    """Data kinds with their own TTL profile and key namespace."""

    MOVEMENTS = "movements"
    CATEGORIES = "categories"
    STATISTICS = "statistics"
    BUDGETS = "budgets"
    PROFILE = "profile"


class MutationType(str, Enum):
    """Write operations that trigger invalidation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Stored in milliseconds, the resolution the memory store works with.
    """

    milliseconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if isinstance(self.milliseconds, bool) or self.milliseconds <= 0:
            raise InvalidTTLException(self.milliseconds)
        if self.milliseconds > 86400 * 365 * 1000:
            raise InvalidTTLException(self.milliseconds)

    @classmethod
    def ms(cls, milliseconds: int) -> "TTL":
        """Create TTL from milliseconds."""
        return cls(int(milliseconds))

    @classmethod
    def seconds(cls, seconds: float) -> "TTL":
        """Create TTL from seconds."""
        return cls(int(seconds * 1000))

    @classmethod
    def minutes(cls, minutes: float) -> "TTL":
        """Create TTL from minutes."""
        return cls(int(minutes * 60 * 1000))

    @classmethod
    def hours(cls, hours: float) -> "TTL":
        """Create TTL from hours."""
        return cls(int(hours * 3600 * 1000))

    def __str__(self) -> str:
        return f"{self.milliseconds}ms"


@dataclass(frozen=True)
class CacheVersion:
    """
    Cache version tag.

    Bumping a domain's version makes every key written under the previous tag
    unreachable, without enumerating them.
    """

    value: int

    def __post_init__(self) -> None:
        """Validate version value."""
        if self.value < 1:
            raise ValueError("Cache version must be at least 1")

    @classmethod
    def initial(cls) -> "CacheVersion":
        """Create initial cache version."""
        return cls(1)

    def next(self) -> "CacheVersion":
        """Get next version."""
        return CacheVersion(self.value + 1)

    def __str__(self) -> str:
        return f"v{self.value}"


def _validate_segment(name: str, value: str) -> str:
    if not value:
        raise InvalidCacheKeyException(f"{name} cannot be empty")
    if ":" in value:
        raise InvalidCacheKeyException(f"{name} cannot contain ':'", key=value)
    if any(char.isspace() for char in value):
        raise InvalidCacheKeyException(f"{name} cannot contain whitespace", key=value)
    return value


@dataclass(frozen=True)
class CacheScope:
    """Owner of a cached value: a user, optionally inside a shared context."""

    user_id: str
    context_id: Optional[str] = None

    def __post_init__(self) -> None:
        _validate_segment("user_id", str(self.user_id))
        if self.context_id is not None:
            _validate_segment("context_id", str(self.context_id))

    @property
    def token(self) -> str:
        return f"{self.user_id}:{self.context_id or PERSONAL_CONTEXT}"

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Enforces key naming conventions and provides validation.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise InvalidCacheKeyException("Cache key cannot be empty")

        if len(self.value) > MAX_KEY_LENGTH:
            raise InvalidCacheKeyException(
                f"Cache key too long (max {MAX_KEY_LENGTH} characters)",
                key=self.value,
            )

        if any(char.isspace() for char in self.value):
            raise InvalidCacheKeyException(
                "Cache key cannot contain whitespace", key=self.value
            )

    @classmethod
    def build(
        cls,
        version: CacheVersion,
        domain: CacheDomain,
        scope: CacheScope,
        qualifier: str,
    ) -> "CacheKey":
        """Create a versioned key for ``qualifier`` inside ``scope``."""
        if not qualifier:
            raise InvalidCacheKeyException("Cache key qualifier cannot be empty")
        return cls(f"{version}-{domain.value}-{scope.token}:{qualifier}")

    @staticmethod
    def scope_pattern(domain: CacheDomain, scope: CacheScope) -> str:
        """Substring shared by every key of ``domain`` within ``scope``."""
        return f"-{domain.value}-{scope.token}:"

    @staticmethod
    def user_pattern(domain: CacheDomain, user_id: str) -> str:
        """Substring shared by every key of ``domain`` owned by ``user_id``."""
        return f"-{domain.value}-{_validate_segment('user_id', str(user_id))}:"

    def __str__(self) -> str:
        return self.value
