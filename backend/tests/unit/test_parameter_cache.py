"""
Unit tests for the per-user parameter cache.

Covers TTL expiry, invalidation, failure handling and invalidation racing an
in-flight resolution.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from deckstudy.errors import ParametersUnavailable
from deckstudy.services.learning.fsrs import CardScheduler
from deckstudy.services.learning.parameter_cache import ParameterCache
from deckstudy.services.learning.ports import SettingsStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(mock_settings_store, clock) -> ParameterCache:
    return ParameterCache(mock_settings_store, ttl_seconds=60, clock=clock)


class TestParameterCache:
    """Tests for cache hits, misses and expiry."""

    @pytest.mark.asyncio
    async def test_get_returns_parameters(self, cache, parameters):
        assert await cache.get("user-1") == parameters

    @pytest.mark.asyncio
    async def test_get_scheduler_compiles(self, cache, parameters):
        scheduler = await cache.get_scheduler("user-1")
        assert isinstance(scheduler, CardScheduler)
        assert scheduler.parameters == parameters

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, cache, mock_settings_store, clock):
        """Test two calls within the TTL resolve once."""
        first = await cache.get_scheduler("user-1")
        clock.advance(59)
        second = await cache.get_scheduler("user-1")

        assert first is second
        mock_settings_store.get_parameters.assert_awaited_once_with("user-1")

    @pytest.mark.asyncio
    async def test_expires_after_ttl(self, cache, mock_settings_store, clock):
        await cache.get("user-1")
        clock.advance(60)
        await cache.get("user-1")

        assert mock_settings_store.get_parameters.await_count == 2

    @pytest.mark.asyncio
    async def test_users_are_cached_separately(self, cache, mock_settings_store):
        await cache.get("user-1")
        await cache.get("user-2")
        await cache.get("user-1")

        assert mock_settings_store.get_parameters.await_count == 2

    def test_default_ttl_from_settings(self, mock_settings_store):
        from deckstudy.config.settings import settings

        cache = ParameterCache(mock_settings_store)
        assert cache.ttl_seconds == settings.PARAMETER_CACHE_TTL_SECONDS


class TestInvalidation:
    """Tests for explicit invalidation."""

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, cache, mock_settings_store):
        await cache.get("user-1")
        cache.invalidate("user-1")
        await cache.get("user-1")

        assert mock_settings_store.get_parameters.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_only_affects_user(self, cache, mock_settings_store):
        await cache.get("user-1")
        await cache.get("user-2")
        cache.invalidate("user-1")
        await cache.get("user-2")

        assert mock_settings_store.get_parameters.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_all(self, cache, mock_settings_store):
        await cache.get("user-1")
        await cache.get("user-2")
        cache.invalidate_all()
        await cache.get("user-1")
        await cache.get("user-2")

        assert mock_settings_store.get_parameters.await_count == 4

    @pytest.mark.asyncio
    async def test_settings_changed_hook(self, cache, mock_settings_store, parameters):
        """Test a settings change is picked up on the next call."""
        await cache.get("user-1")

        changed = parameters.model_copy(update={"request_retention": 0.85})
        mock_settings_store.get_parameters.return_value = changed
        cache.on_settings_changed("user-1")

        assert (await cache.get("user-1")).request_retention == 0.85

    def test_invalidate_unknown_user(self, cache):
        cache.invalidate("nobody")

    @pytest.mark.asyncio
    async def test_invalidation_during_resolution_wins(self, parameters, clock):
        """Test a value resolved before an invalidation is not stored."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_lookup(user_id):
            started.set()
            await release.wait()
            return parameters

        store = AsyncMock(spec=SettingsStore)
        store.get_parameters.side_effect = slow_lookup
        cache = ParameterCache(store, ttl_seconds=60, clock=clock)

        pending = asyncio.create_task(cache.get("user-1"))
        await started.wait()
        cache.invalidate("user-1")
        release.set()

        assert await pending == parameters

        store.get_parameters.side_effect = None
        store.get_parameters.return_value = parameters
        await cache.get("user-1")
        assert store.get_parameters.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_all_during_resolution_wins(self, parameters, clock):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_lookup(user_id):
            started.set()
            await release.wait()
            return parameters

        store = AsyncMock(spec=SettingsStore)
        store.get_parameters.side_effect = slow_lookup
        cache = ParameterCache(store, ttl_seconds=60, clock=clock)

        pending = asyncio.create_task(cache.get("user-1"))
        await started.wait()
        cache.invalidate_all()
        release.set()
        await pending

        store.get_parameters.side_effect = None
        store.get_parameters.return_value = parameters
        await cache.get("user-1")
        assert store.get_parameters.await_count == 2


class TestBookkeeping:
    """Tests that internal state does not outlive its use."""

    @pytest.mark.asyncio
    async def test_expired_entry_dropped_on_miss(self, cache, mock_settings_store, clock):
        """Test an expired entry is removed even when the refresh fails."""
        await cache.get("user-1")
        clock.advance(61)
        mock_settings_store.get_parameters.return_value = None

        with pytest.raises(ParametersUnavailable):
            await cache.get("user-1")

        assert "user-1" not in cache._slots

    @pytest.mark.asyncio
    async def test_invalidate_leaves_no_generation(self, cache):
        await cache.get("user-1")
        cache.invalidate("user-1")
        cache.invalidate("nobody")

        assert cache._generations == {}
        assert cache._pending == {}

    @pytest.mark.asyncio
    async def test_generation_released_after_race(self, parameters, clock):
        """Test the counter bumped during a resolution is dropped once it ends."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_lookup(user_id):
            started.set()
            await release.wait()
            return parameters

        store = AsyncMock(spec=SettingsStore)
        store.get_parameters.side_effect = slow_lookup
        cache = ParameterCache(store, ttl_seconds=60, clock=clock)

        pending = asyncio.create_task(cache.get("user-1"))
        await started.wait()
        cache.invalidate("user-1")
        assert cache._generations == {"user-1": 1}
        release.set()
        await pending

        assert cache._generations == {}
        assert cache._pending == {}
        assert "user-1" not in cache._slots

    @pytest.mark.asyncio
    async def test_failed_resolution_releases_pending(self, cache, mock_settings_store):
        mock_settings_store.get_parameters.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await cache.get("user-1")

        assert cache._pending == {}


class TestFailures:
    """Tests for resolution failures."""

    @pytest.mark.asyncio
    async def test_missing_parameters(self, cache, mock_settings_store):
        mock_settings_store.get_parameters.return_value = None

        with pytest.raises(ParametersUnavailable) as exc_info:
            await cache.get("user-1")

        assert exc_info.value.details == {"user_id": "user-1"}

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, cache, mock_settings_store, parameters):
        """Test the next call retries after a failure."""
        mock_settings_store.get_parameters.return_value = None
        with pytest.raises(ParametersUnavailable):
            await cache.get("user-1")

        mock_settings_store.get_parameters.return_value = parameters
        assert await cache.get("user-1") == parameters

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, cache, mock_settings_store):
        mock_settings_store.get_parameters.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await cache.get("user-1")

    @pytest.mark.asyncio
    async def test_compile_failure_not_cached(self, mock_settings_store, clock, parameters):
        factory = MagicMock(
            side_effect=[ParametersUnavailable("rejected"), CardScheduler(parameters)]
        )
        cache = ParameterCache(
            mock_settings_store, ttl_seconds=60, clock=clock, scheduler_factory=factory
        )

        with pytest.raises(ParametersUnavailable):
            await cache.get_scheduler("user-1")
        await cache.get_scheduler("user-1")

        assert factory.call_count == 2
