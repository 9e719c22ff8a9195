"""
Cached views over the backend API.

Reads go through cached_fetch with per-resource durations and fall back to
expired data when the backend is unreachable. Mutations invalidate every
key of their resource once they succeed.
"""
from typing import Any, Dict, Optional

from app.api_client import ApiClient
from app.cache import (
    CACHE_DURATIONS,
    CacheManager,
    get_cache_manager,
    invalidates,
    make_cache_key,
    resource_prefix,
)

USERS = "users"
LOCATIONS = "locations"
WIFI = "wifi"


class CachedApi:
    """API client facade whose reads are cached."""

    def __init__(self, client: Optional[ApiClient] = None, cache: Optional[CacheManager] = None):
        self.client = client or ApiClient()
        self.cache = cache or get_cache_manager()

    # WiFi tracking

    async def wifi_pending_explanations(self, force: bool = False) -> Any:
        return await self.cache.cached_fetch(
            make_cache_key(WIFI, "pending-explanations"),
            self.client.get_pending_explanations,
            CACHE_DURATIONS[WIFI],
            force,
        )

    # Locations

    async def get_locations(self, params: Optional[Dict[str, Any]] = None, force: bool = False) -> Any:
        params = params or {}
        return await self.cache.cached_fetch(
            make_cache_key(LOCATIONS, "list", params),
            lambda: self.client.get_locations(params),
            CACHE_DURATIONS[LOCATIONS],
            force,
        )

    @invalidates(resource_prefix(LOCATIONS))
    async def create_location(self, location_data: Dict[str, Any]) -> Any:
        return await self.client.create_location(location_data)

    @invalidates(resource_prefix(LOCATIONS))
    async def update_location(self, location_id: str, location_data: Dict[str, Any]) -> Any:
        return await self.client.update_location(location_id, location_data)

    @invalidates(resource_prefix(LOCATIONS))
    async def delete_location(self, location_id: str) -> Any:
        return await self.client.delete_location(location_id)

    # Users

    async def get_users(self, params: Optional[Dict[str, Any]] = None, force: bool = False) -> Any:
        params = params or {}
        return await self.cache.cached_fetch(
            make_cache_key(USERS, "list", params),
            lambda: self.client.get_users(params),
            CACHE_DURATIONS[USERS],
            force,
        )

    async def pending_staff_approvals(self, force: bool = False) -> Any:
        return await self.cache.cached_fetch(
            make_cache_key(USERS, "pending-approvals"),
            self.client.get_pending_staff_approvals,
            CACHE_DURATIONS[USERS],
            force,
        )

    @invalidates(resource_prefix(USERS))
    async def create_user(self, user_data: Dict[str, Any]) -> Any:
        return await self.client.create_user(user_data)

    @invalidates(resource_prefix(USERS))
    async def update_user(self, user_id: str, user_data: Dict[str, Any]) -> Any:
        return await self.client.update_user(user_id, user_data)

    @invalidates(resource_prefix(USERS))
    async def delete_user(self, user_id: str, confirm_text: str) -> Any:
        return await self.client.delete_user(user_id, confirm_text)

    @invalidates(resource_prefix(USERS))
    async def deactivate_user(self, user_id: str) -> Any:
        return await self.client.deactivate_user(user_id)

    @invalidates(resource_prefix(USERS))
    async def reactivate_user(self, user_id: str) -> Any:
        return await self.client.reactivate_user(user_id)

    @invalidates(resource_prefix(USERS))
    async def approve_staff(self, user_id: str) -> Any:
        return await self.client.approve_staff(user_id)

    @invalidates(resource_prefix(USERS))
    async def reject_staff(self, user_id: str, reason: Optional[str] = None) -> Any:
        return await self.client.reject_staff(user_id, reason)
