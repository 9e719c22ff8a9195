"""
Stateful cache binding for call sites.

A binding mirrors one key's value, loading flag and last error, fetches
once when created (if configured) and cancels its own in-flight producer
call when closed.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional

from .coordinator import Producer
from .core import CacheConfig
from .manager import CacheManager, get_cache_manager

logger = logging.getLogger("cache.binding")

Subscriber = Callable[["CacheBinding"], None]


class CacheBinding:
    """
    Value / is_loading / error view over one cache key.

    Usage:
        async with bind_cache("users:list:{}", fetch_users) as users:
            await users.ready()
            render(users.value)
    """

    def __init__(
        self,
        key: Optional[str],
        producer: Producer,
        config: Optional[CacheConfig] = None,
        manager: Optional[CacheManager] = None,
    ):
        self.key = key
        self.config = config or CacheConfig()
        self._producer = producer
        self._manager = manager or get_cache_manager()

        self.value: Optional[Any] = None
        self.is_loading = False
        self.error: Optional[BaseException] = None

        self._subscribers: List[Subscriber] = []
        self._mount_task: Optional[asyncio.Task] = None
        self._mount_pending = False
        self._closed = False

        if self._active:
            self.value = self._manager.get(key)

    @property
    def _active(self) -> bool:
        return bool(self.config.enabled and self.key)

    @property
    def is_stale(self) -> bool:
        if not self.key:
            return False
        return self._manager.is_stale(self.key, self.config.stale_time)

    @property
    def is_cached(self) -> bool:
        if not self.key:
            return False
        return self._manager.has(self.key)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- observer callbacks from the coordinator ------------------------------

    def on_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._notify()

    def on_value(self, value: Any) -> None:
        self.value = value
        self._notify()

    def on_error(self, error: Optional[BaseException]) -> None:
        self.error = error
        self._notify()

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Call `callback(binding)` on every state change.

        Returns:
            A function that unsubscribes the callback
        """
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self) -> None:
        if self._closed:
            return
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                logger.exception(f"Subscriber failed for {self.key}")

    # -- fetching ------------------------------------------------------------

    async def fetch(self, force: bool = False) -> Optional[Any]:
        """Fetch through the coordinator with this binding as observer."""
        if self._closed:
            return None
        return await self._manager.fetch(
            self.key, self._producer, self.config, force, observer=self
        )

    async def refresh(self) -> Optional[Any]:
        """Fetch, bypassing the validity check. Producer errors propagate."""
        return await self.fetch(force=True)

    def invalidate(self) -> None:
        """Delete this binding's key from the cache."""
        if self.key:
            self._manager.invalidate(self.key)

    def _mount(self) -> None:
        """Schedule the one automatic fetch of this binding's lifetime."""
        if not (self._active and self.config.refetch_on_mount):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Run on the first ready() instead
            self._mount_pending = True
            return
        self._mount_task = loop.create_task(self._initial_fetch())

    async def _initial_fetch(self) -> None:
        # A valid but stale entry is already being served; refresh it anyway
        force = self._manager.has_valid(self.key) and self.is_stale
        try:
            await self.fetch(force=force)
        except Exception as e:
            # Already recorded on self.error by the coordinator
            logger.debug(f"Initial fetch failed for {self.key}: {e}")

    async def ready(self) -> None:
        """Wait for the automatic fetch to finish (errors land on `error`)."""
        if self._mount_pending:
            self._mount_pending = False
            await self._initial_fetch()
        elif self._mount_task is not None:
            await self._mount_task

    # -- teardown ------------------------------------------------------------

    def close(self) -> None:
        """Cancel this binding's in-flight fetch and drop subscribers."""
        if self._closed:
            return
        self._closed = True
        self._mount_pending = False
        if self.key:
            self._manager.coordinator.cancel(self.key, owner=self, reason="binding closed")
        self._subscribers.clear()

    async def __aenter__(self) -> "CacheBinding":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


def bind_cache(
    key: Optional[str],
    producer: Producer,
    config: Optional[CacheConfig] = None,
    manager: Optional[CacheManager] = None,
) -> CacheBinding:
    """
    Create a binding and schedule its initial fetch.

    Args:
        key: Cache key; None or "" gives an inert binding
        producer: Async callable taking a CancellationToken
        config: Per call-site options (defaults to CacheConfig())
        manager: Cache manager (defaults to the process-wide one)

    With the default stale_time of 0, a valid cached value is served at once
    and then always refetched in the background on mount.
    """
    binding = CacheBinding(key, producer, config, manager)
    binding._mount()
    return binding
