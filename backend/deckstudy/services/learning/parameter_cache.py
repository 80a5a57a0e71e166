"""
Per-user Scheduling Parameter Cache

Resolves a user's SchedulingParameters from the settings store and keeps the
compiled CardScheduler for them, so the FSRS scheduler is not rebuilt on
every request.

Cache behaviour:
- Entries expire PARAMETER_CACHE_TTL_SECONDS after they were stored and are
  dropped on the next lookup.
- invalidate() / invalidate_all() drop entries immediately; the settings
  service calls on_settings_changed() after a user edits their parameters.
- Entries are immutable and replaced as a whole. The lock is only held while
  reading or replacing an entry, never while the store is being awaited.
- If an invalidation happens while a resolution is in flight, the resolved
  value is still returned to that caller but is not stored.
- Failures are never cached: the next call retries the store.

Usage:
    cache = ParameterCache(settings_store)

    scheduler = await cache.get_scheduler(user_id)
    parameters = await cache.get(user_id)

    cache.on_settings_changed(user_id)
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from deckstudy.config.settings import settings
from deckstudy.errors import ParametersUnavailable
from deckstudy.models.learning import SchedulingParameters
from deckstudy.services.learning.fsrs import CardScheduler
from deckstudy.services.learning.ports import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CacheSlot:
    scheduler: CardScheduler
    loaded_at: float


class ParameterCache:
    """
    TTL cache of compiled schedulers keyed by user id.

    Attributes:
        ttl_seconds: Entry lifetime in seconds
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler_factory: Callable[[SchedulingParameters], CardScheduler] = CardScheduler,
    ):
        """
        Args:
            settings_store: Source of per-user scheduling parameters
            ttl_seconds: Entry lifetime (defaults to settings.PARAMETER_CACHE_TTL_SECONDS)
            clock: Monotonic clock in seconds, injectable for tests
            scheduler_factory: Compiles a parameter set into a scheduler
        """
        self._settings_store = settings_store
        self.ttl_seconds = (
            ttl_seconds
            if ttl_seconds is not None
            else settings.PARAMETER_CACHE_TTL_SECONDS
        )
        self._clock = clock
        self._scheduler_factory = scheduler_factory

        self._lock = threading.Lock()
        self._slots: dict[str, _CacheSlot] = {}
        # Resolutions in flight per user; generations only exist while one is
        # pending and are bumped on invalidation so it knows not to store
        self._pending: dict[str, int] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0

    async def get(self, user_id: str) -> SchedulingParameters:
        """
        Get the user's scheduling parameters.

        Raises:
            ParametersUnavailable: If the user has no usable parameters
        """
        scheduler = await self.get_scheduler(user_id)
        return scheduler.parameters

    async def get_scheduler(self, user_id: str) -> CardScheduler:
        """
        Get the compiled scheduler for a user, resolving it on a miss.

        Raises:
            ParametersUnavailable: If the user has no parameters or FSRS
                rejects them
        """
        now = self._clock()
        with self._lock:
            slot = self._slots.get(user_id)
            if slot is not None and now - slot.loaded_at < self.ttl_seconds:
                logger.debug(f"Parameter cache hit for user {user_id}")
                return slot.scheduler
            if slot is not None:
                # Expired
                del self._slots[user_id]
            self._pending[user_id] = self._pending.get(user_id, 0) + 1
            token = (self._epoch, self._generations.get(user_id, 0))

        logger.debug(f"Parameter cache miss for user {user_id}")
        try:
            scheduler = await self._resolve(user_id)
            with self._lock:
                current = (self._epoch, self._generations.get(user_id, 0))
                if current == token:
                    self._slots[user_id] = _CacheSlot(scheduler, self._clock())
                else:
                    logger.debug(
                        f"Parameters for user {user_id} invalidated during "
                        "resolution; not caching"
                    )
        finally:
            with self._lock:
                self._release(user_id)

        return scheduler

    def invalidate(self, user_id: str) -> None:
        """Drop the cached entry for one user."""
        with self._lock:
            self._slots.pop(user_id, None)
            if user_id in self._pending:
                self._generations[user_id] = self._generations.get(user_id, 0) + 1
        logger.debug(f"Invalidated cached parameters for user {user_id}")

    def invalidate_all(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._slots.clear()
            self._epoch += 1
        logger.debug("Invalidated all cached parameters")

    def on_settings_changed(self, user_id: str) -> None:
        """Hook for the settings service after a user's parameters change."""
        self.invalidate(user_id)

    def _release(self, user_id: str) -> None:
        """Finish one pending resolution. Caller holds the lock."""
        remaining = self._pending[user_id] - 1
        if remaining:
            self._pending[user_id] = remaining
        else:
            del self._pending[user_id]
            self._generations.pop(user_id, None)

    async def _resolve(self, user_id: str) -> CardScheduler:
        parameters = await self._settings_store.get_parameters(user_id)
        if parameters is None:
            raise ParametersUnavailable(
                f"No scheduling parameters for user {user_id}",
                details={"user_id": user_id},
            )
        return self._scheduler_factory(parameters)
