"""Recommendation service facade.

Single entry point for the API layer.  Wires together the orchestrator, the
profile store, the feedback tracker, the cache and the freshness
coordinator, and owns the feedback -> interaction mapping:

    clicked  -> click
    accepted -> like
    rejected -> reject
    shown    -> (no profile change)

Every newly recorded feedback event invalidates the user's cached sets;
duplicates change nothing.  Stated preferences go through the profile
store, whose listener invalidates the cache the same way interactions do.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

import structlog

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.models.book import Book
from bookrec.models.feedback import AccuracyMetric, FeedbackAction
from bookrec.models.profile import InteractionEvent, PreferenceUpdate, SignalType, UserProfile
from bookrec.models.recommendation import RecommendationSet
from bookrec.models.request import RecommendationRequest
from bookrec.models.signals import SignalStatus, TrainingSignal
from bookrec.pipeline.orchestrator import RecommendationOrchestrator
from bookrec.services.feedback_tracker import FeedbackTracker
from bookrec.services.freshness_service import FreshnessCoordinator
from bookrec.services.profile_store import UserProfileStore
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.errors import NotFoundError
from bookrec.utils.logging import get_logger

FEEDBACK_SIGNALS: dict[FeedbackAction, SignalType] = {
    FeedbackAction.CLICKED: SignalType.CLICK,
    FeedbackAction.ACCEPTED: SignalType.LIKE,
    FeedbackAction.REJECTED: SignalType.REJECT,
}


class RecommendationService:
    """Facade over the recommendation subsystem.

    All collaborators are injected at construction time (see
    ``bookrec.main._build_all``).
    """

    def __init__(
        self,
        orchestrator: RecommendationOrchestrator,
        profiles: UserProfileStore,
        tracker: FeedbackTracker,
        cache: IRecommendationCache,
        freshness: FreshnessCoordinator,
        index: SimilarityIndex,
        catalog: IBookCatalog,
    ) -> None:
        self._orchestrator = orchestrator
        self._profiles = profiles
        self._tracker = tracker
        self._cache = cache
        self._freshness = freshness
        self._index = index
        self._catalog = catalog
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def recommend(self, user_id: str, request: RecommendationRequest) -> RecommendationSet:
        return await self._orchestrator.recommend(user_id, request)

    async def apply_interaction(self, user_id: str, event: InteractionEvent) -> UserProfile:
        """Update the profile; the store's listener invalidates the cache."""
        return await self._profiles.apply_interaction(user_id, event)

    def get_profile(self, user_id: str) -> UserProfile:
        return self._profiles.get(user_id)

    async def update_preferences(self, user_id: str, update: PreferenceUpdate) -> UserProfile:
        """Pin stated preferences; the store's listener invalidates the cache."""
        return await self._profiles.update_preferences(user_id, update)

    async def similar_books(self, book_id: str, limit: int = 10) -> list[tuple[Book, float]]:
        """Nearest catalog neighbours of *book_id* from the similarity index.

        Neighbours the catalog no longer holds are skipped.

        Raises
        ------
        NotFoundError
            If *book_id* is not in the catalog.
        """
        if await self._catalog.get_book(book_id) is None:
            raise NotFoundError(f"unknown book {book_id!r}", provider_name=self._catalog.get_provider_name())

        similar: list[tuple[Book, float]] = []
        for neighbour_id, score in self._index.book_similarity(book_id):
            book = await self._catalog.get_book(neighbour_id)
            if book is None:
                continue
            similar.append((book, score))
            if len(similar) >= limit:
                break
        return similar

    async def record_feedback(
        self,
        user_id: str,
        book_id: str,
        action: FeedbackAction | str,
        timestamp: datetime | None = None,
    ) -> bool:
        """Record feedback; returns ``False`` for a duplicate delivery."""
        is_new = await self._tracker.record(user_id, book_id, action, timestamp)
        if not is_new:
            return False

        signal = FEEDBACK_SIGNALS.get(FeedbackAction(action))
        if signal is not None:
            event = InteractionEvent(book_id=book_id, signal=signal)
            if timestamp is not None:
                event = event.model_copy(update={"timestamp": timestamp})
            await self._profiles.apply_interaction(user_id, event)
        self._cache.invalidate(user_id)
        return True

    async def accuracy(self, user_id: str, window_days: int = 30) -> AccuracyMetric:
        return await self._tracker.accuracy(user_id, timedelta(days=window_days))

    async def overall_accuracy(self, window_days: int = 30) -> AccuracyMetric:
        return await self._tracker.overall_accuracy(timedelta(days=window_days))

    def refresh(self, user_id: str) -> None:
        """Explicit refresh request: the next read recomputes."""
        self._cache.invalidate(user_id)
        self._logger.info("refresh_requested", user_id=user_id)

    def accept_signal(
        self, payload: TrainingSignal | Mapping[str, Any]
    ) -> tuple[SignalStatus, TrainingSignal | None]:
        return self._freshness.accept(payload)

    async def process_signal(self, signal: TrainingSignal) -> None:
        await self._freshness.process(signal)

    async def handle_signal(self, payload: TrainingSignal | Mapping[str, Any]) -> SignalStatus:
        return await self._freshness.handle_signal(payload)

    @property
    def strategy_names(self) -> list[str]:
        return self._orchestrator.strategy_names
