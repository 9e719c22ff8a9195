"""
Resilient cached fetch for API wrappers.

Serves valid entries, otherwise calls the producer once. If the producer
fails and an expired entry is still stored, the expired value is returned
instead of the error.
"""
import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from .core import CacheMeta, CacheSource, Duration, DEFAULT_CACHE_DURATION

if TYPE_CHECKING:
    from .manager import CacheManager

logger = logging.getLogger("cache.fallback")

T = TypeVar("T")


async def cached_fetch(
    cache: "CacheManager",
    key: str,
    producer: Callable[[], Awaitable[Any]],
    duration: Duration = DEFAULT_CACHE_DURATION,
    force: bool = False,
) -> Any:
    """
    Get data from cache or fetch it, falling back to expired data on failure.

    Args:
        cache: Cache manager holding the store
        key: Cache key
        producer: Zero-argument async callable
        duration: Lifetime of a freshly fetched value
        force: Bypass the cache read

    Returns:
        Cached, fresh or (on producer failure) expired value

    Raises:
        Exception: The producer's error, when nothing is stored for the key
    """
    store = cache.store

    if not force and store.is_valid(key):
        cached = store.get(key)
        if cached is not None:
            entry = store.entry(key)
            cache.last_meta = CacheMeta.for_access(
                CacheSource.CACHE, key, entry.age_seconds(store.now()) if entry else None
            )
            return cached

    try:
        result = await producer()
    except Exception as e:
        expired = store.peek(key)
        if expired is not None:
            logger.warning(f"Using expired cache for {key} due to fetch error: {e}")
            entry = store.entry(key)
            cache.last_meta = CacheMeta.for_access(
                CacheSource.EXPIRED, key, entry.age_seconds(store.now()) if entry else None
            )
            return expired
        raise

    store.set(key, result, duration)
    cache.last_meta = CacheMeta.for_access(CacheSource.UPSTREAM, key, 0)
    return result


async def invalidate_after(
    cache: "CacheManager",
    pattern: str,
    mutation: Awaitable[T],
) -> T:
    """
    Await a mutation, then invalidate keys matching pattern.

    Nothing is invalidated if the mutation raises.
    """
    result = await mutation
    cache.invalidate_by_pattern(pattern)
    return result


def invalidates(pattern: str, cache_attr: str = "cache"):
    """
    Decorator for async mutation methods of an object that holds a cache
    manager in `cache_attr`. Invalidates `pattern` after a successful call.
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(self, *args, **kwargs) -> T:
            cache: Optional["CacheManager"] = getattr(self, cache_attr)
            return await invalidate_after(cache, pattern, func(self, *args, **kwargs))
        return wrapper
    return decorator
