"""
Cache exceptions.

Producer failures are not wrapped: they propagate with their own type.
"""


class CacheError(Exception):
    """Base class for cache errors."""


class FetchCancelled(CacheError):
    """
    Raised inside a producer when its cancellation token was triggered.

    The coordinator treats this as supersession, not failure, and never
    surfaces it to observers.
    """

    def __init__(self, reason: str = "superseded"):
        super().__init__(reason)
        self.reason = reason


class InvalidPatternError(CacheError, ValueError):
    """Invalidation pattern is not a valid regular expression."""

    def __init__(self, pattern: str, detail: str):
        super().__init__(f"Invalid cache key pattern {pattern!r}: {detail}")
        self.pattern = pattern


class CacheNotInitializedError(CacheError, RuntimeError):
    """The process-wide cache manager has not been initialized."""
