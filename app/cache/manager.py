"""
Main cache orchestration: store, invalidation, fetch coordination and
sweeping behind one owned object with an explicit lifecycle.
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from config.settings import settings

from .core import CacheConfig, CacheMeta, CacheStats, Duration, DEFAULT_CACHE_DURATION
from .coordinator import FetchCoordinator, FetchObserver, Producer
from .errors import CacheNotInitializedError
from .fallback import cached_fetch
from .invalidation import Invalidator
from .policy import is_stale
from .store import Clock, TTLStore
from .sweeper import Sweeper

logger = logging.getLogger("cache.manager")


class CacheManager:
    """
    Main cache orchestration with:
    - TTL store with validity and staleness checks
    - Fetch coordination with supersession of in-flight requests
    - Exact, pattern and expiry-based invalidation
    - Background sweeping of expired entries
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the cache manager.

        Args:
            clock: Time source in seconds for the store (default time.time)
            sleep: Awaited by the sweeper between passes
        """
        self.store = TTLStore(clock)
        self.invalidator = Invalidator(self.store)
        self.coordinator = FetchCoordinator(self.store)
        self.sweeper = Sweeper(self.invalidator, sleep=sleep)
        # Metadata from the most recent cached_fetch access
        self.last_meta: Optional[CacheMeta] = None

    # -- lifecycle -----------------------------------------------------------

    def init(
        self,
        auto_cleanup: Optional[bool] = None,
        period: Optional[Duration] = None,
    ) -> "CacheManager":
        """
        Start background work. Auto cleanup needs a running event loop;
        without one it is skipped.
        """
        if auto_cleanup is None:
            auto_cleanup = settings.cache_auto_cleanup
        if period is None:
            period = settings.cache_cleanup_interval_seconds

        if auto_cleanup:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop, auto cleanup not started")
            else:
                self.start_auto_cleanup(period)
        return self

    async def shutdown(self) -> None:
        """Stop the sweeper and cancel in-flight fetches. Entries are kept."""
        await self.sweeper.aclose()
        cancelled = self.coordinator.cancel_all("shutdown")
        if cancelled:
            logger.info(f"Cancelled {cancelled} in-flight fetches on shutdown")

    # -- store access --------------------------------------------------------

    def set(self, key: str, value: Any, duration: Duration = DEFAULT_CACHE_DURATION) -> None:
        self.store.set(key, value, duration)

    def get(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    def has(self, key: str) -> bool:
        return self.store.has(key)

    def has_valid(self, key: str, stale_time: Duration = 0) -> bool:
        """
        True if the entry exists and has not expired.

        stale_time is accepted for call-site symmetry with is_stale() but does
        not affect validity: expiry and staleness are separate checks.
        """
        return self.store.is_valid(key)

    def is_stale(self, key: str, stale_time: Duration = 0) -> bool:
        return is_stale(self.store, key, stale_time)

    # -- invalidation --------------------------------------------------------

    def invalidate(self, key: str) -> bool:
        return self.invalidator.invalidate(key)

    def invalidate_by_pattern(self, pattern: str) -> int:
        return self.invalidator.invalidate_by_pattern(pattern)

    def clear(self) -> int:
        return self.invalidator.clear_all()

    def cleanup_expired(self) -> int:
        """Purge expired entries now. Returns the number purged."""
        return self.sweeper.sweep()

    def start_auto_cleanup(self, period: Duration = settings.cache_cleanup_interval_seconds) -> bool:
        return self.sweeper.start(period)

    def stop_auto_cleanup(self) -> bool:
        return self.sweeper.stop()

    # -- fetching ------------------------------------------------------------

    async def fetch(
        self,
        key: Optional[str],
        producer: Producer,
        config: Optional[CacheConfig] = None,
        force: bool = False,
        observer: Optional[FetchObserver] = None,
    ) -> Optional[Any]:
        """See FetchCoordinator.fetch."""
        return await self.coordinator.fetch(key, producer, config, force, observer)

    async def cached_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        duration: Duration = DEFAULT_CACHE_DURATION,
        force: bool = False,
    ) -> Any:
        """See fallback.cached_fetch."""
        return await cached_fetch(self, key, producer, duration, force)

    # -- stats ---------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        """
        Count valid and expired entries.

        Entries with malformed expiry bookkeeping count as valid, matching
        the sweeper which never purges them.
        """
        now = self.store.now()
        valid = 0
        expired = 0
        for _, expires_at in self.store.expirations():
            try:
                is_expired = now >= expires_at
            except TypeError:
                is_expired = False
            if is_expired:
                expired += 1
            else:
                valid += 1

        memory_usage = len(json.dumps(self.store.items(), default=str))
        return CacheStats(
            total=len(self.store),
            valid=valid,
            expired=expired,
            memory_usage=memory_usage,
        )

    def describe(self) -> Dict[str, Any]:
        """Stats plus coordinator and sweeper state, for the admin endpoint."""
        stats = self.get_stats().to_dict()
        stats["coordinator"] = self.coordinator.get_stats()
        stats["sweeper"] = {
            "running": self.sweeper.running,
            "period_seconds": self.sweeper.period,
            "cycles": self.sweeper.cycles,
            "last_purged": self.sweeper.last_purged,
            "total_purged": self.sweeper.total_purged,
        }
        return stats


# Process-wide cache manager
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get or create the process-wide cache manager."""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = CacheManager()
    return _cache_manager


def require_cache_manager() -> CacheManager:
    """Get the process-wide cache manager, failing if none was created."""
    if _cache_manager is None:
        raise CacheNotInitializedError("Cache manager has not been initialized")
    return _cache_manager


def init_cache_manager(
    manager: Optional[CacheManager] = None,
    auto_cleanup: Optional[bool] = None,
    period: Optional[Duration] = None,
) -> CacheManager:
    """
    Install and start the process-wide cache manager.

    Args:
        manager: Manager to install (a new one is created if omitted)
        auto_cleanup: Start the sweeper (default from settings)
        period: Sweep period (default from settings)
    """
    global _cache_manager
    _cache_manager = manager or CacheManager()
    return _cache_manager.init(auto_cleanup=auto_cleanup, period=period)


async def shutdown_cache_manager() -> None:
    """Shut down and forget the process-wide cache manager."""
    global _cache_manager
    manager, _cache_manager = _cache_manager, None
    if manager is not None:
        await manager.shutdown()


# Module-level helpers bound to the process-wide manager

def set_cache_data(key: str, data: Any, duration: Duration = DEFAULT_CACHE_DURATION) -> None:
    get_cache_manager().set(key, data, duration)


def get_cache_data(key: str) -> Optional[Any]:
    return get_cache_manager().get(key)


def has_cache(key: str) -> bool:
    return get_cache_manager().has(key)


def has_valid_cache(key: str, stale_time: Duration = 0) -> bool:
    return get_cache_manager().has_valid(key, stale_time)


def is_cache_stale(key: str, stale_time: Duration = 0) -> bool:
    return get_cache_manager().is_stale(key, stale_time)


def invalidate_cache(key: str) -> bool:
    return get_cache_manager().invalidate(key)


def invalidate_cache_by_pattern(pattern: str) -> int:
    return get_cache_manager().invalidate_by_pattern(pattern)


def clear_all_cache() -> int:
    return get_cache_manager().clear()


def cleanup_expired_cache() -> int:
    return get_cache_manager().cleanup_expired()


def get_cache_stats() -> CacheStats:
    return get_cache_manager().get_stats()


def start_auto_cleanup(period: Duration = settings.cache_cleanup_interval_seconds) -> bool:
    """Start the sweeper on the running loop. No-op if already running."""
    return get_cache_manager().start_auto_cleanup(period)


def stop_auto_cleanup() -> bool:
    return get_cache_manager().stop_auto_cleanup()
