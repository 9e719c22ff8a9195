"""
Validity and staleness policy, per-resource durations and key naming.

Validity decides whether an entry may be served at all. Staleness decides
whether a valid entry should still be refreshed. The two are independent.
"""
import json
from typing import Any, Dict, Optional

from config.settings import settings

from .core import Duration, to_seconds, DEFAULT_CACHE_DURATION
from .store import TTLStore


# Durations by resource (in seconds)
CACHE_DURATIONS: Dict[str, float] = {
    "wifi": settings.cache_wifi_duration_seconds,            # 1 minute
    "locations": settings.cache_locations_duration_seconds,  # 10 minutes
    "users": settings.cache_users_duration_seconds,          # 5 minutes
}


def is_valid(store: TTLStore, key: str, now: Optional[float] = None) -> bool:
    """Present and not yet expired."""
    return store.is_valid(key, now)


def is_stale(
    store: TTLStore,
    key: str,
    stale_time: Duration = 0,
    now: Optional[float] = None,
) -> bool:
    """
    True if the entry is older than stale_time.

    An absent key counts as stale, meaning "needs refresh". With the default
    stale_time of 0 every entry is stale as soon as it is written.
    """
    if not store.has(key):
        return True
    created_at = store.created_at(key)
    if created_at is None:
        return True
    if now is None:
        now = store.now()
    return (now - created_at) > to_seconds(stale_time)


def resource_of(key: str) -> str:
    """Resource part of a "<resource>:<operation>:<params>" key."""
    return key.split(":", 1)[0]


def resource_prefix(resource: str) -> str:
    """Prefix that matches every key of a resource, for pattern invalidation."""
    return f"{resource}:"


def get_duration_for_key(key: str, default: Duration = DEFAULT_CACHE_DURATION) -> float:
    """
    Look up the cache duration for a key by its resource prefix.

    Args:
        key: Cache key following the "<resource>:..." convention
        default: Duration used for unknown resources

    Returns:
        Duration in seconds
    """
    return CACHE_DURATIONS.get(resource_of(key), to_seconds(default))


def serialize_params(params: Optional[Dict[str, Any]]) -> str:
    """Compact JSON with sorted keys, so equal params give equal keys."""
    return json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)


def make_cache_key(
    resource: str,
    operation: str,
    params: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Build a cache key.

    make_cache_key("users", "list", {"page": 1}) -> 'users:list:{"page":1}'
    make_cache_key("users", "pending-approvals") -> 'users:pending-approvals'
    """
    if ":" in resource:
        raise ValueError(f"Resource name must not contain ':' ({resource!r})")
    if params is None:
        return f"{resource}:{operation}"
    return f"{resource}:{operation}:{serialize_params(params)}"
