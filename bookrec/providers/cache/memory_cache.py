"""In-memory recommendation cache using cachetools.TTLCache.

Suitable for single-process deployments.  Adds two things on top of a plain
TTL map:

* **Single-flight** -- concurrent misses on the same ``(user, request key)``
  share one computation task; at most one computation per user runs at a
  time (a per-user ``asyncio.Lock``).
* **Generation-checked writes** -- ``invalidate`` bumps a per-user
  generation counter.  A computation that started before the bump still
  answers the callers already waiting on it, but its result is not stored.

The per-user lock and generation live only while that user has a
computation queued or running; an idle user leaves nothing behind.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable

import structlog
from cachetools import TTLCache

from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.models.profile import utc_now
from bookrec.models.recommendation import RecommendationSet

logger = structlog.get_logger(logger_name=__name__)

_CacheKey = tuple[str, str]


class _InFlight:
    """A shared computation and the number of callers awaiting it."""

    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task[RecommendationSet]) -> None:
        self.task = task
        self.waiters = 0


class _UserState:
    """Lock and generation shared by one user's active computations."""

    __slots__ = ("lock", "generation", "active")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.generation = 0
        self.active = 0


class MemoryRecommendationCache(IRecommendationCache):
    """TTL cache of :class:`RecommendationSet` keyed by user and request key.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry is
        evicted.
    ttl:
        Eviction backstop in seconds.  Freshness is decided by each set's
        own ``expires_at``.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        max_size: int = 10_000,
        ttl: int = 900,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self._entries: TTLCache[_CacheKey, RecommendationSet] = TTLCache(
            maxsize=max_size, ttl=ttl, timer=lambda: clock().timestamp()
        )
        self._inflight: dict[_CacheKey, _InFlight] = {}
        self._users: dict[str, _UserState] = {}

    # ------------------------------------------------------------------
    # IRecommendationCache implementation
    # ------------------------------------------------------------------

    async def get(self, user_id: str, request_key: str) -> RecommendationSet | None:
        """Return the entry if present and ``generated_at <= now < expires_at``."""
        key = (user_id, request_key)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("cache_miss", user_id=user_id, request_key=request_key)
            return None
        if not entry.is_fresh(self._clock()):
            self._entries.pop(key, None)
            logger.debug("cache_expired", user_id=user_id, request_key=request_key)
            return None
        logger.debug("cache_hit", user_id=user_id, request_key=request_key)
        return entry

    async def put(self, user_id: str, request_key: str, result: RecommendationSet) -> None:
        self._entries[(user_id, request_key)] = result
        logger.debug("cache_set", user_id=user_id, request_key=request_key)

    def invalidate(self, user_id: str) -> None:
        """Drop the user's entries and detach their in-flight computations.

        Detached computations keep running for the callers already awaiting
        them; later callers start a new computation.
        """
        state = self._users.get(user_id)
        if state is not None:
            state.generation += 1
        dropped = 0
        for key in [k for k in list(self._entries.keys()) if k[0] == user_id]:
            self._entries.pop(key, None)
            dropped += 1
        for key in [k for k in self._inflight if k[0] == user_id]:
            del self._inflight[key]
        logger.info("cache_invalidated", user_id=user_id, entries=dropped)

    def invalidate_all(self) -> None:
        # Every running computation has registered its user state.
        for state in self._users.values():
            state.generation += 1
        self._entries.clear()
        self._inflight.clear()
        logger.info("cache_invalidated_all")

    async def get_or_compute(
        self,
        user_id: str,
        request_key: str,
        compute: Callable[[], Awaitable[RecommendationSet]],
        *,
        bypass: bool = False,
    ) -> RecommendationSet:
        if not bypass:
            cached = await self.get(user_id, request_key)
            if cached is not None:
                return cached

        # Callers for the same key join the running task; a key detached by
        # invalidate() starts a fresh one.
        key = (user_id, request_key)
        flight = self._inflight.get(key)
        if flight is None:
            task = asyncio.ensure_future(self._run(user_id, request_key, compute))
            flight = _InFlight(task)
            self._inflight[key] = flight
            task.add_done_callback(lambda _t, k=key, f=flight: self._forget(k, f))
            logger.debug("cache_compute_started", user_id=user_id, request_key=request_key)
        else:
            logger.debug("cache_compute_joined", user_id=user_id, request_key=request_key)

        # shield() keeps one caller's cancellation (client disconnect, request
        # timeout) from cancelling the shared task under the other waiters.
        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            # Only the last caller may abandon a shared computation.
            if flight.waiters == 1 and not flight.task.done():
                flight.task.cancel()
                logger.info("cache_compute_abandoned", user_id=user_id, request_key=request_key)
            raise
        finally:
            flight.waiters -= 1

    def get_provider_name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(
        self,
        user_id: str,
        request_key: str,
        compute: Callable[[], Awaitable[RecommendationSet]],
    ) -> RecommendationSet:
        state = self._users.get(user_id)
        if state is None:
            state = self._users[user_id] = _UserState()
        state.active += 1
        try:
            async with state.lock:
                generation = state.generation
                result = await compute()
            if state.generation == generation:
                self._entries[(user_id, request_key)] = result
            else:
                logger.info("cache_stale_result_dropped", user_id=user_id, request_key=request_key)
            return result
        finally:
            state.active -= 1
            if state.active == 0 and self._users.get(user_id) is state:
                del self._users[user_id]

    def _forget(self, key: _CacheKey, flight: _InFlight) -> None:
        if self._inflight.get(key) is flight:
            del self._inflight[key]

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def tracked_users(self) -> int:
        """Users with a computation queued or running."""
        return len(self._users)
