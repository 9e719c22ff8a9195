"""
Core cache data structures.
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Any, Optional, Union
from enum import Enum

from config.settings import settings


# Durations may be given as seconds or as a timedelta
Duration = Union[int, float, timedelta]

DEFAULT_CACHE_DURATION = 5 * 60   # 5 minutes
DEFAULT_CLEANUP_INTERVAL = 5 * 60  # 5 minutes


def to_seconds(duration: Duration) -> float:
    """Normalize a duration to seconds."""
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


class CacheSource(Enum):
    """Where the data returned for a cache access came from."""
    CACHE = "cache"        # Valid entry, producer not called
    UPSTREAM = "upstream"  # Fresh producer result
    EXPIRED = "expired"    # Producer failed, expired entry served instead


@dataclass
class CacheEntry:
    """
    A cached value with its write time and expiry, both in clock seconds.
    """
    key: str
    value: Any
    created_at: float
    expires_at: float

    def age_seconds(self, now: float) -> float:
        """Seconds since the entry was written."""
        return now - self.created_at

    def is_valid(self, now: float) -> bool:
        """Valid until the clock reaches expires_at."""
        return now < self.expires_at


@dataclass(frozen=True)
class CacheConfig:
    """
    Per call-site cache options. Frozen: changing options means rebinding.
    """
    duration: Duration = field(default_factory=lambda: settings.cache_default_duration_seconds)
    enabled: bool = field(default_factory=lambda: settings.cache_enabled)
    stale_time: Duration = field(default_factory=lambda: settings.cache_stale_time_seconds)
    refetch_on_mount: bool = True

    @property
    def duration_seconds(self) -> float:
        return to_seconds(self.duration)

    @property
    def stale_time_seconds(self) -> float:
        return to_seconds(self.stale_time)


@dataclass
class CacheStats:
    """Snapshot of store occupancy. valid + expired always equals total."""
    total: int
    valid: int
    expired: int
    memory_usage: int  # Approximate, length of the JSON-serialized entries

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CacheMeta:
    """
    Metadata about a cache access, included in API responses.
    """
    last_updated: str  # ISO timestamp
    cache_source: str  # "cache", "upstream" or "expired"
    key: Optional[str] = None
    age_seconds: Optional[float] = None

    @classmethod
    def for_access(
        cls,
        source: CacheSource,
        key: Optional[str] = None,
        age_seconds: Optional[float] = None,
    ) -> "CacheMeta":
        return cls(
            last_updated=datetime.utcnow().isoformat() + "Z",
            cache_source=source.value,
            key=key,
            age_seconds=age_seconds,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        result = {
            "lastUpdated": self.last_updated,
            "cacheSource": self.cache_source,
        }
        if self.key:
            result["_debug"] = {
                "key": self.key,
                "age": round(self.age_seconds, 1) if self.age_seconds else None,
            }
        return result
