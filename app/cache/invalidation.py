"""
Exact-key, pattern and expiry-based removal of store entries.
"""
import re
import logging
from typing import Optional

from .errors import InvalidPatternError
from .store import TTLStore

logger = logging.getLogger("cache.invalidation")


class Invalidator:
    """Bulk and single-key deletes over a TTLStore."""

    def __init__(self, store: TTLStore):
        self._store = store

    def invalidate(self, key: str) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed
        """
        removed = self._store.delete(key)
        if removed:
            logger.info(f"Invalidated cache: {key}")
        return removed

    def invalidate_by_pattern(self, pattern: str) -> int:
        """
        Invalidate all cache entries whose key matches a pattern.

        Args:
            pattern: Regular expression, searched anywhere in the key

        Returns:
            Number of entries invalidated

        Raises:
            InvalidPatternError: If pattern does not compile
        """
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise InvalidPatternError(pattern, str(e)) from e

        # Collect first, then delete, so the key set isn't mutated mid-scan
        to_delete = [key for key in self._store.keys() if regex.search(key)]
        for key in to_delete:
            self._store.delete(key)
        if to_delete:
            logger.info(f"Invalidated {len(to_delete)} entries matching '{pattern}'")
        return len(to_delete)

    def clear_all(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        count = self._store.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Delete every entry whose expiry is at or before now.

        An entry whose expiry bookkeeping is missing or malformed is treated
        as not expired and left in place.

        Returns:
            Number of entries purged
        """
        if now is None:
            now = self._store.now()

        expired_keys = []
        for key, expires_at in self._store.expirations():
            try:
                if now >= expires_at:
                    expired_keys.append(key)
            except TypeError:
                logger.warning(f"Skipping entry with bad expiry bookkeeping: {key}")

        for key in expired_keys:
            self._store.delete(key)
        return len(expired_keys)
