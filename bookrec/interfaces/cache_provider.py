"""Abstract base class for the per-user recommendation cache.

Entries are keyed by ``(user_id, request_key)``.  Besides plain get/put the
contract includes user-wide invalidation and single-flight computation, so
that a backend swap (Redis, memcached) keeps the freshness guarantees the
orchestrator relies on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from bookrec.models.recommendation import RecommendationSet


class IRecommendationCache(ABC):
    """Contract for recommendation result caches.

    All operations are async to allow for network-backed stores.
    """

    @abstractmethod
    async def get(self, user_id: str, request_key: str) -> RecommendationSet | None:
        """Return the cached set for *user_id* / *request_key*.

        Returns
        -------
        RecommendationSet or None
            The cached set if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def put(self, user_id: str, request_key: str, result: RecommendationSet) -> None:
        """Store *result*, replacing any previous entry for the same key."""

    @abstractmethod
    def invalidate(self, user_id: str) -> None:
        """Drop every entry for *user_id*, whatever the request key.

        Synchronous on purpose: the effect is visible to the very next
        ``get`` without the caller awaiting in-flight work.
        """

    @abstractmethod
    def invalidate_all(self) -> None:
        """Drop every entry for every user."""

    @abstractmethod
    async def get_or_compute(
        self,
        user_id: str,
        request_key: str,
        compute: Callable[[], Awaitable[RecommendationSet]],
        *,
        bypass: bool = False,
    ) -> RecommendationSet:
        """Return a cached set or compute, store and return a new one.

        Concurrent misses for the same key share one computation
        (single-flight).

        Parameters
        ----------
        user_id:
            Owner of the entry.
        request_key:
            Canonical request key (see ``RecommendationRequest.cache_key``).
        compute:
            Zero-argument coroutine factory producing a fresh set.
        bypass:
            Skip the cache read (explicit refresh); the result is still
            stored.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this cache backend."""
