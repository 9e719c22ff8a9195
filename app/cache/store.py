"""
In-memory TTL store.

Values, write times and expiry times live in three maps keyed by the same
cache key. Every write and delete touches all three with no await in
between, so readers never see a partial entry.
"""
import time
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .core import CacheEntry, Duration, to_seconds, DEFAULT_CACHE_DURATION

logger = logging.getLogger("cache.store")

Clock = Callable[[], float]


class TTLStore:
    """
    Key/value store with per-entry expiry.

    get() only returns valid entries. peek() and has() look at the raw maps
    and ignore expiry; expired entries stay physically present until they
    are deleted or swept.
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Args:
            clock: Returns the current time in seconds (default time.time)
        """
        self._clock: Clock = clock or time.time
        self._values: Dict[str, Any] = {}
        self._created: Dict[str, float] = {}
        self._expires: Dict[str, float] = {}

    def now(self) -> float:
        return self._clock()

    def set(self, key: str, value: Any, duration: Duration = DEFAULT_CACHE_DURATION) -> None:
        """
        Write or overwrite an entry. A duration <= 0 stores an entry that is
        already expired.
        """
        now = self._clock()
        self._values[key] = value
        self._created[key] = now
        self._expires[key] = now + to_seconds(duration)
        logger.debug(f"SET {key} [ttl={to_seconds(duration):.1f}s]")

    def get(self, key: str) -> Optional[Any]:
        """Return the value if the entry is valid, otherwise None."""
        if not self.is_valid(key):
            return None
        return self._values.get(key)

    def peek(self, key: str) -> Optional[Any]:
        """Return the stored value whether or not it has expired."""
        return self._values.get(key)

    def has(self, key: str) -> bool:
        """True if the key is physically present, regardless of expiry."""
        return key in self._values

    def is_valid(self, key: str, now: Optional[float] = None) -> bool:
        """True if the key is present and the clock has not reached its expiry."""
        if key not in self._values:
            return False
        expires_at = self._expires.get(key)
        if expires_at is None:
            return False
        if now is None:
            now = self._clock()
        return now < expires_at

    def created_at(self, key: str) -> Optional[float]:
        return self._created.get(key)

    def expires_at(self, key: str) -> Optional[float]:
        return self._expires.get(key)

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Full entry for a key, or None if absent."""
        if key not in self._values:
            return None
        return CacheEntry(
            key=key,
            value=self._values[key],
            created_at=self._created.get(key, 0.0),
            expires_at=self._expires.get(key, 0.0),
        )

    def delete(self, key: str) -> bool:
        """
        Remove an entry.

        Returns:
            True if the key was present
        """
        existed = key in self._values
        self._values.pop(key, None)
        self._created.pop(key, None)
        self._expires.pop(key, None)
        return existed

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        count = len(self._values)
        self._values.clear()
        self._created.clear()
        self._expires.clear()
        return count

    def keys(self) -> List[str]:
        """Snapshot of the current keys."""
        return list(self._values.keys())

    def items(self) -> List[Tuple[str, Any]]:
        """Snapshot of (key, value) pairs."""
        return list(self._values.items())

    def expirations(self) -> List[Tuple[str, Any]]:
        """Snapshot of (key, expires_at) pairs for every present key."""
        return [(key, self._expires.get(key)) for key in self._values]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
