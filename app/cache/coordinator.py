"""
Cache-aware fetch coordination with supersession.

A fetch for a key first consults the store. On a miss (or a forced
refresh) any in-flight producer call for the same key is cancelled before
the new one starts, so at most one producer call per key is ever awaited.
A superseded call's outcome, success or failure, is discarded.
"""
import asyncio
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from .cancellation import CancellationToken
from .core import CacheConfig
from .errors import FetchCancelled
from .store import TTLStore

logger = logging.getLogger("cache.coordinator")

Producer = Callable[[CancellationToken], Awaitable[Any]]


class FetchObserver(Protocol):
    """
    Receives state changes for a fetch.

    Implementations:
    - CacheBinding: mirrors value / loading / error for a call site
    """

    def on_loading(self, loading: bool) -> None:
        ...

    def on_value(self, value: Any) -> None:
        ...

    def on_error(self, error: Optional[BaseException]) -> None:
        ...


@dataclass
class InFlightRequest:
    """Tracks an in-progress producer call."""
    key: str
    token: CancellationToken = field(default_factory=CancellationToken)
    owner: Optional[FetchObserver] = None
    started_at: float = field(default_factory=time.time)


class FetchCoordinator:
    """
    Wraps async producers with cache reads, write-through and supersession.

    Usage:
        coordinator = FetchCoordinator(store)
        users = await coordinator.fetch(
            "users:list:{}",
            lambda token: api.get_users(),
            CacheConfig(duration=300),
        )
    """

    def __init__(self, store: TTLStore):
        self._store = store
        self._in_flight: Dict[str, InFlightRequest] = {}

    async def fetch(
        self,
        key: Optional[str],
        producer: Producer,
        config: Optional[CacheConfig] = None,
        force: bool = False,
        observer: Optional[FetchObserver] = None,
    ) -> Optional[Any]:
        """
        Serve from cache or run the producer.

        Args:
            key: Cache key; empty or None makes this a no-op
            producer: Async callable taking a CancellationToken
            config: Duration and enabled flag for this call site
            force: Skip the validity check and always call the producer
            observer: Notified of loading, value and error changes

        Returns:
            The cached or fresh value, or None for a no-op or a superseded call

        Raises:
            Exception: Any producer failure other than cancellation
        """
        config = config or CacheConfig()
        if not config.enabled or not key:
            return None

        if not force and self._store.is_valid(key):
            cached = self._store.get(key)
            if cached is not None:
                logger.debug(f"CACHE HIT: {key}")
                if observer is not None:
                    observer.on_value(cached)
                return cached

        previous = self._in_flight.get(key)
        if previous is not None:
            logger.debug(f"Superseding in-flight fetch for {key}")
            previous.token.cancel("superseded")

        request = InFlightRequest(key=key, owner=observer)
        self._in_flight[key] = request
        logger.debug(f"CACHE {'REFRESH' if force else 'MISS'}: {key}")

        if observer is not None:
            observer.on_loading(True)
            observer.on_error(None)

        try:
            try:
                result = await producer(request.token)
            except FetchCancelled:
                logger.debug(f"Fetch cancelled for {key}")
                return None
            except asyncio.CancelledError:
                if not request.token.cancelled:
                    raise
                logger.debug(f"Fetch cancelled for {key}")
                return None
            except Exception as e:
                if request.token.cancelled:
                    logger.debug(f"Discarding failure of superseded fetch for {key}: {e}")
                    return None
                logger.error(f"Cache fetch error for key \"{key}\": {e}")
                if observer is not None:
                    observer.on_error(e)
                raise

            if request.token.cancelled:
                # Producer ignored the signal; drop its result
                logger.debug(f"Discarding result of superseded fetch for {key}")
                return None

            self._store.set(key, result, config.duration)
            if observer is not None:
                observer.on_value(result)
            return result
        finally:
            released = self._release(request)
            current = self._in_flight.get(key)
            # Leave the flag alone only if this observer started the newer request
            if observer is not None and (
                released or current is None or current.owner is not observer
            ):
                observer.on_loading(False)

    def _release(self, request: InFlightRequest) -> bool:
        """Drop the in-flight record if it is still this request's."""
        if self._in_flight.get(request.key) is request:
            del self._in_flight[request.key]
            return True
        return False

    def cancel(
        self,
        key: str,
        owner: Optional[FetchObserver] = None,
        reason: str = "cancelled",
    ) -> bool:
        """
        Cancel the in-flight fetch for a key.

        Args:
            key: Cache key
            owner: If given, only cancel when the request was started by it

        Returns:
            True if a request was cancelled
        """
        request = self._in_flight.get(key)
        if request is None:
            return False
        if owner is not None and request.owner is not owner:
            return False
        del self._in_flight[key]
        request.token.cancel(reason)
        logger.debug(f"Cancelled in-flight fetch for {key} ({reason})")
        return True

    def cancel_all(self, reason: str = "shutdown") -> int:
        """Cancel every in-flight fetch. Returns the number cancelled."""
        requests = list(self._in_flight.values())
        self._in_flight.clear()
        for request in requests:
            request.token.cancel(reason)
        return len(requests)

    def is_loading(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight_keys(self) -> list:
        return list(self._in_flight.keys())

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
