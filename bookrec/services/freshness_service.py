"""Freshness coordination for out-of-band training-pipeline signals.

The external pipeline announces finished model training, embedding updates
and similarity calculations, with at-least-once delivery.  The coordinator

    1. validates the signal (malformed ones are logged and dropped),
    2. deduplicates it by event id, else by content hash, using a
       ``cachetools.TTLCache`` of recently seen keys,
    3. refreshes the similarity index when the signal carries new
       similarity data, and
    4. invalidates cached recommendations for the signal's scope.

Step 4 goes through the same cache ``invalidate`` calls as the synchronous
interaction and feedback paths.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

import structlog
from cachetools import TTLCache
from pydantic import ValidationError as PydanticValidationError

from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.interfaces.similarity_source import ISimilaritySource
from bookrec.models.profile import utc_now
from bookrec.models.signals import SignalStatus, TrainingSignal
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.errors import BookRecError
from bookrec.utils.logging import get_logger


class FreshnessCoordinator:
    """Turns completion signals into index refreshes and cache invalidations.

    Parameters
    ----------
    index:
        Similarity index to refresh.
    cache:
        Recommendation cache to invalidate.
    source:
        Builds replacement similarity payloads; ``None`` disables refreshes.
    dedup_ttl:
        Seconds a seen signal key is remembered.
    max_tracked:
        Maximum number of remembered signal keys.
    """

    def __init__(
        self,
        index: SimilarityIndex,
        cache: IRecommendationCache,
        source: ISimilaritySource | None = None,
        dedup_ttl: int = 86_400,
        max_tracked: int = 10_000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._index = index
        self._cache = cache
        self._source = source
        self._seen: TTLCache[str, datetime] = TTLCache(
            maxsize=max_tracked, ttl=dedup_ttl, timer=lambda: clock().timestamp()
        )
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Signal intake
    # ------------------------------------------------------------------

    def accept(self, payload: TrainingSignal | Mapping[str, Any]) -> tuple[SignalStatus, TrainingSignal | None]:
        """Validate and deduplicate a signal without acting on it."""
        if isinstance(payload, TrainingSignal):
            signal = payload
        else:
            try:
                signal = TrainingSignal.model_validate(payload)
            except PydanticValidationError as exc:
                self._logger.warning(
                    "signal_rejected",
                    error_count=exc.error_count(),
                    errors=[e["msg"] for e in exc.errors()][:3],
                )
                return SignalStatus.REJECTED, None

        key = signal.dedup_key()
        if key in self._seen:
            self._logger.info("signal_duplicate", key=key[:24], kind=signal.kind.value)
            return SignalStatus.DUPLICATE, signal

        self._seen[key] = self._clock()
        self._logger.info(
            "signal_accepted",
            key=key[:24],
            kind=signal.kind.value,
            scope="global" if signal.is_global else len(signal.user_ids),
        )
        return SignalStatus.ACCEPTED, signal

    async def process(self, signal: TrainingSignal) -> None:
        """Refresh the index if the signal calls for it, then invalidate."""
        if signal.kind.refreshes_index:
            await self.refresh_index(reason=signal.kind.value)

        if signal.is_global:
            self._cache.invalidate_all()
        else:
            self.invalidate_users(signal.user_ids)

    async def handle_signal(self, payload: TrainingSignal | Mapping[str, Any]) -> SignalStatus:
        """``accept`` followed by ``process`` for accepted signals."""
        status, signal = self.accept(payload)
        if status is SignalStatus.ACCEPTED and signal is not None:
            await self.process(signal)
        return status

    # ------------------------------------------------------------------
    # Shared refresh / invalidation interface
    # ------------------------------------------------------------------

    async def refresh_index(self, reason: str = "manual") -> bool:
        """Rebuild the similarity index from the source.

        Failures are logged and leave the current index in place.

        Returns
        -------
        bool
            ``True`` if the index content changed.
        """
        if self._source is None:
            self._logger.debug("similarity_refresh_skipped", reason=reason)
            return False
        try:
            payload = await self._source.build_payload()
            changed = self._index.refresh(payload)
        except BookRecError as exc:
            self._logger.error(
                "similarity_refresh_failed",
                reason=reason,
                source=self._source.get_provider_name(),
                error=str(exc),
            )
            return False
        return changed

    def invalidate_users(self, user_ids: Iterable[str]) -> None:
        for user_id in user_ids:
            self._cache.invalidate(user_id)
