"""
Unit tests for CacheBinding / bind_cache.
"""
import asyncio

import pytest

from app.cache import CacheConfig, FetchCancelled, bind_cache


def counting_producer(value, calls):
    async def producer(token):
        calls.append(token)
        return value
    return producer


class TestBinding:
    """Tests for the binding layer."""

    @pytest.mark.asyncio
    async def test_initial_value_from_valid_cache(self, manager, clock):
        """Test that a valid entry populates value before any fetch."""
        manager.set("k", "cached", 60)
        calls = []
        binding = bind_cache("k", counting_producer("fresh", calls),
                             CacheConfig(stale_time=300), manager=manager)
        assert binding.value == "cached"
        assert binding.is_cached
        await binding.ready()
        # Valid and not stale: served from cache, no producer call
        assert calls == []
        assert binding.value == "cached"
        binding.close()

    @pytest.mark.asyncio
    async def test_mount_fetch_on_miss(self, manager):
        """Test the automatic fetch for an empty cache."""
        calls = []
        binding = bind_cache("k", counting_producer("fresh", calls), manager=manager)
        assert binding.value is None
        await binding.ready()
        assert binding.value == "fresh"
        assert binding.is_loading is False
        assert binding.error is None
        assert len(calls) == 1
        assert manager.get("k") == "fresh"

    @pytest.mark.asyncio
    async def test_mount_refreshes_stale_valid_entry(self, manager, clock):
        """Test that a valid but stale entry is served, then refreshed."""
        manager.set("k", "old", 300)
        clock.advance(10)
        calls = []
        binding = bind_cache("k", counting_producer("new", calls),
                             CacheConfig(stale_time=5), manager=manager)
        assert binding.value == "old"
        assert binding.is_stale
        await binding.ready()
        assert binding.value == "new"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_no_mount_fetch_when_disabled_by_config(self, manager):
        """Test refetch_on_mount=False."""
        calls = []
        binding = bind_cache("k", counting_producer("v", calls),
                             CacheConfig(refetch_on_mount=False), manager=manager)
        await binding.ready()
        assert calls == []
        assert await binding.fetch() == "v"

    @pytest.mark.asyncio
    async def test_inert_binding_without_key(self, manager):
        """Test that a missing key produces an inert binding."""
        calls = []
        binding = bind_cache(None, counting_producer("v", calls), manager=manager)
        await binding.ready()
        assert calls == []
        assert binding.value is None
        assert binding.is_stale is False
        assert binding.is_cached is False
        assert await binding.refresh() is None

    @pytest.mark.asyncio
    async def test_enabled_false(self, manager):
        """Test that a disabled binding neither reads nor fetches."""
        manager.set("k", "cached", 60)
        calls = []
        binding = bind_cache("k", counting_producer("v", calls),
                             CacheConfig(enabled=False), manager=manager)
        await binding.ready()
        assert binding.value is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_mount_failure_recorded_not_raised(self, manager):
        """Test that an initial fetch failure lands on error."""
        async def failing(token):
            raise ConnectionError("down")

        binding = bind_cache("k", failing, manager=manager)
        await binding.ready()
        assert isinstance(binding.error, ConnectionError)
        assert binding.value is None
        assert binding.is_loading is False

    @pytest.mark.asyncio
    async def test_refresh_forces_and_propagates(self, manager):
        """Test that refresh bypasses validity and raises producer errors."""
        manager.set("k", "cached", 60)
        outcomes = ["fresh", ConnectionError("down")]

        async def producer(token):
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        binding = bind_cache("k", producer, CacheConfig(refetch_on_mount=False), manager=manager)
        assert await binding.refresh() == "fresh"
        assert binding.value == "fresh"

        with pytest.raises(ConnectionError):
            await binding.refresh()
        # Value unchanged, error populated
        assert binding.value == "fresh"
        assert isinstance(binding.error, ConnectionError)

    @pytest.mark.asyncio
    async def test_invalidate_removes_only_own_key(self, manager):
        """Test binding.invalidate()."""
        manager.set("k", 1, 60)
        manager.set("other", 2, 60)
        binding = bind_cache("k", counting_producer(1, []),
                             CacheConfig(refetch_on_mount=False), manager=manager)
        binding.invalidate()
        assert not manager.has("k")
        assert manager.has("other")

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, manager):
        """Test that subscribers see state changes until unsubscribed."""
        seen = []
        binding = bind_cache("k", counting_producer("v", []),
                             CacheConfig(refetch_on_mount=False), manager=manager)
        unsubscribe = binding.subscribe(lambda b: seen.append((b.is_loading, b.value)))

        await binding.fetch()
        assert seen[0] == (True, None)
        assert seen[-1] == (False, "v")

        unsubscribe()
        count = len(seen)
        await binding.refresh()
        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_close_cancels_own_in_flight_fetch(self, manager):
        """Test that teardown cancels the binding's producer call."""
        started = asyncio.Event()
        tokens = []

        async def cooperative(token):
            tokens.append(token)
            started.set()
            await token.wait()
            raise FetchCancelled(token.reason)

        async with bind_cache("k", cooperative, manager=manager) as binding:
            await started.wait()
            assert binding.is_loading

        assert binding.closed
        await binding.ready()
        assert tokens[0].cancelled
        assert tokens[0].reason == "binding closed"
        assert binding.error is None
        assert not manager.has("k")
        assert await binding.fetch() is None

    @pytest.mark.asyncio
    async def test_close_leaves_other_bindings_request(self, manager):
        """Test that closing one binding does not cancel another's fetch."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(token):
            started.set()
            await release.wait()
            return "shared"

        first = bind_cache("k", slow, CacheConfig(refetch_on_mount=False), manager=manager)
        second = bind_cache("k", slow, manager=manager)
        await started.wait()

        first.close()
        release.set()
        await second.ready()
        assert second.value == "shared"
        assert manager.get("k") == "shared"

    def test_bind_outside_loop_defers_mount(self, manager):
        """Test that the mount fetch runs on ready() when no loop was running."""
        calls = []
        binding = bind_cache("k", counting_producer("v", calls), manager=manager)
        assert calls == []
        asyncio.run(binding.ready())
        assert binding.value == "v"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_binding_superseded_by_other_binding_stops_loading(self, manager):
        """Test that a binding whose fetch is replaced by another binding's is not left loading."""
        started = asyncio.Event()

        async def cooperative(token):
            started.set()
            await token.wait()
            raise FetchCancelled(token.reason)

        first = bind_cache("users:list:{}", cooperative, manager=manager)
        await started.wait()
        assert first.is_loading

        second = bind_cache("users:list:{}", counting_producer("v", []), manager=manager)
        await second.ready()
        await first.ready()

        assert first.is_loading is False
        assert first.error is None
        assert second.is_loading is False
        assert second.value == "v"
