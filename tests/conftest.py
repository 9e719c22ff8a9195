"""
Shared fixtures: a controllable clock and a cache manager driven by it.
"""
import pytest

import app.cache.manager as manager_module
from app.cache import CacheManager, TTLStore


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TTLStore(clock)


@pytest.fixture
def manager(clock):
    return CacheManager(clock=clock)


@pytest.fixture
def global_manager(clock, monkeypatch):
    """Install a fresh process-wide manager for module-level helpers."""
    manager = CacheManager(clock=clock)
    monkeypatch.setattr(manager_module, "_cache_manager", manager)
    return manager
