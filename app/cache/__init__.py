"""
Request-result cache with TTL expiry, staleness tracking, supersession of
in-flight fetches, pattern invalidation and background sweeping.
"""
from .core import (
    CacheConfig,
    CacheEntry,
    CacheMeta,
    CacheSource,
    CacheStats,
    DEFAULT_CACHE_DURATION,
)
from .errors import (
    CacheError,
    CacheNotInitializedError,
    FetchCancelled,
    InvalidPatternError,
)
from .cancellation import CancellationToken
from .store import TTLStore
from .policy import (
    CACHE_DURATIONS,
    is_valid,
    is_stale,
    get_duration_for_key,
    make_cache_key,
    resource_of,
    resource_prefix,
)
from .invalidation import Invalidator
from .coordinator import FetchCoordinator, FetchObserver, InFlightRequest
from .fallback import cached_fetch, invalidate_after, invalidates
from .sweeper import Sweeper
from .manager import (
    CacheManager,
    get_cache_manager,
    require_cache_manager,
    init_cache_manager,
    shutdown_cache_manager,
    set_cache_data,
    get_cache_data,
    has_cache,
    has_valid_cache,
    is_cache_stale,
    invalidate_cache,
    invalidate_cache_by_pattern,
    clear_all_cache,
    cleanup_expired_cache,
    get_cache_stats,
    start_auto_cleanup,
    stop_auto_cleanup,
)
from .binding import CacheBinding, bind_cache

__all__ = [
    # Core types
    "CacheConfig",
    "CacheEntry",
    "CacheMeta",
    "CacheSource",
    "CacheStats",
    "DEFAULT_CACHE_DURATION",
    # Errors
    "CacheError",
    "CacheNotInitializedError",
    "FetchCancelled",
    "InvalidPatternError",
    # Building blocks
    "CancellationToken",
    "TTLStore",
    "Invalidator",
    "FetchCoordinator",
    "FetchObserver",
    "InFlightRequest",
    "Sweeper",
    # Policy
    "CACHE_DURATIONS",
    "is_valid",
    "is_stale",
    "get_duration_for_key",
    "make_cache_key",
    "resource_of",
    "resource_prefix",
    # Fallback wrapper
    "cached_fetch",
    "invalidate_after",
    "invalidates",
    # Manager
    "CacheManager",
    "get_cache_manager",
    "require_cache_manager",
    "init_cache_manager",
    "shutdown_cache_manager",
    # Module-level helpers
    "set_cache_data",
    "get_cache_data",
    "has_cache",
    "has_valid_cache",
    "is_cache_stale",
    "invalidate_cache",
    "invalidate_cache_by_pattern",
    "clear_all_cache",
    "cleanup_expired_cache",
    "get_cache_stats",
    "start_auto_cleanup",
    "stop_auto_cleanup",
    # Binding
    "CacheBinding",
    "bind_cache",
]
