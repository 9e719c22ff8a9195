"""
Cooperative cancellation handle passed to producers.

The coordinator creates a token per producer call and triggers it when a
newer call for the same key supersedes it. Producers observe the token:
poll `cancelled`, call `raise_if_cancelled()` between steps, or race
their work against `wait()`.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from .errors import FetchCancelled

logger = logging.getLogger("cache.cancellation")


class CancellationToken:
    """One-shot cancellation signal."""

    def __init__(self):
        self._cancelled = False
        self._reason: Optional[str] = None
        self._event: Optional[asyncio.Event] = None
        self._callbacks: List[Callable[["CancellationToken"], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "superseded") -> bool:
        """
        Trigger the token.

        Returns:
            False if the token was already cancelled
        """
        if self._cancelled:
            return False
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def raise_if_cancelled(self) -> None:
        """Raise FetchCancelled if the token has been triggered."""
        if self._cancelled:
            raise FetchCancelled(self._reason or "cancelled")

    def add_callback(self, callback: Callable[["CancellationToken"], None]) -> None:
        """Run callback on cancel, immediately if already cancelled."""
        if self._cancelled:
            callback(self)
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return
        # Created lazily so the token can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def __repr__(self) -> str:
        state = f"cancelled:{self._reason}" if self._cancelled else "active"
        return f"<CancellationToken {state}>"
