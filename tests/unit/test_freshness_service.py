"""Unit tests for FreshnessCoordinator and RecommendationService."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookrec.interfaces.cache_provider import IRecommendationCache
from bookrec.interfaces.similarity_source import ISimilaritySource
from bookrec.models.feedback import FeedbackAction
from bookrec.models.profile import InteractionEvent, PreferenceUpdate, SignalType, UserProfile
from bookrec.models.request import RecommendationRequest
from bookrec.models.signals import SignalKind, SignalStatus, TrainingSignal
from bookrec.models.similarity import SimilarityPair, SimilarityPayload
from bookrec.pipeline.orchestrator import RecommendationOrchestrator
from bookrec.providers.cache.memory_cache import MemoryRecommendationCache
from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog
from bookrec.providers.feedback.memory_feedback_store import InMemoryFeedbackStore
from bookrec.services.feedback_tracker import FeedbackTracker
from bookrec.services.freshness_service import FreshnessCoordinator
from bookrec.services.profile_store import UserProfileStore
from bookrec.services.recommendation_service import RecommendationService
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies import PersonalizedStrategy
from bookrec.utils.errors import NotFoundError, ValidationError

_PAYLOAD = SimilarityPayload(books=(SimilarityPair(a="m-1", b="m-2", score=0.9),))


def _source(payload: SimilarityPayload = _PAYLOAD, **kwargs) -> MagicMock:
    source = MagicMock(spec=ISimilaritySource)
    source.build_payload = AsyncMock(return_value=payload, **kwargs)
    source.get_provider_name.return_value = "content_similarity"
    return source


# ======================================================================
# FreshnessCoordinator
# ======================================================================


class TestFreshnessCoordinator:
    @pytest.fixture()
    def cache(self) -> MagicMock:
        return MagicMock(spec=IRecommendationCache)

    @pytest.fixture()
    def index(self, clock) -> SimilarityIndex:
        return SimilarityIndex(clock=clock)

    @pytest.fixture()
    def coordinator(self, index, cache, clock) -> FreshnessCoordinator:
        return FreshnessCoordinator(index, cache, _source(), dedup_ttl=3600, clock=clock)

    def test_accept_valid_signal(self, coordinator: FreshnessCoordinator) -> None:
        status, signal = coordinator.accept({"event_id": "e1", "kind": "model.training.completed"})
        assert status is SignalStatus.ACCEPTED
        assert signal is not None and signal.kind is SignalKind.MODEL_TRAINING_COMPLETED

    @pytest.mark.parametrize(
        "payload",
        [
            {"kind": "model.exploded"},
            {"event_id": "e1"},
            {"kind": "model.training.completed", "scope": []},
            {"kind": "model.training.completed", "scope": "somebody"},
        ],
    )
    def test_malformed_signal_rejected(self, coordinator: FreshnessCoordinator, cache, payload) -> None:
        status, signal = coordinator.accept(payload)
        assert status is SignalStatus.REJECTED
        assert signal is None
        cache.invalidate_all.assert_not_called()

    def test_redelivery_by_event_id_is_duplicate(self, coordinator: FreshnessCoordinator) -> None:
        coordinator.accept({"event_id": "e1", "kind": "model.training.completed"})
        status, _ = coordinator.accept({"event_id": "e1", "kind": "model.training.completed", "data": {"x": 1}})
        assert status is SignalStatus.DUPLICATE

    def test_redelivery_without_id_deduplicated_by_content(self, coordinator: FreshnessCoordinator) -> None:
        payload = {"kind": "similarity.calculation.completed", "data": {"run": 3}}
        assert coordinator.accept(payload)[0] is SignalStatus.ACCEPTED
        assert coordinator.accept(dict(payload))[0] is SignalStatus.DUPLICATE
        assert coordinator.accept({**payload, "data": {"run": 4}})[0] is SignalStatus.ACCEPTED

    def test_seen_keys_expire(self, coordinator: FreshnessCoordinator, clock) -> None:
        coordinator.accept({"event_id": "e1", "kind": "model.training.completed"})
        clock.advance(hours=2)
        status, _ = coordinator.accept({"event_id": "e1", "kind": "model.training.completed"})
        assert status is SignalStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_global_signal_invalidates_everything(self, coordinator: FreshnessCoordinator, cache) -> None:
        status = await coordinator.handle_signal({"kind": "model.training.completed"})
        assert status is SignalStatus.ACCEPTED
        cache.invalidate_all.assert_called_once_with()
        cache.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_scoped_signal_invalidates_listed_users(self, coordinator: FreshnessCoordinator, cache) -> None:
        await coordinator.handle_signal({"kind": "model.training.completed", "scope": ["u1", "u2"]})
        assert [c.args[0] for c in cache.invalidate.call_args_list] == ["u1", "u2"]
        cache.invalidate_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_signal_changes_nothing(self, coordinator: FreshnessCoordinator, cache) -> None:
        await coordinator.handle_signal({"event_id": "e1", "kind": "model.training.completed"})
        status = await coordinator.handle_signal({"event_id": "e1", "kind": "model.training.completed"})
        assert status is SignalStatus.DUPLICATE
        assert cache.invalidate_all.call_count == 1

    @pytest.mark.asyncio
    async def test_similarity_signal_refreshes_index(
        self, coordinator: FreshnessCoordinator, index: SimilarityIndex
    ) -> None:
        await coordinator.handle_signal({"kind": "similarity.calculation.completed"})
        assert index.book_similarity("m-1") == (("m-2", 0.9),)

    @pytest.mark.asyncio
    async def test_training_signal_does_not_refresh_index(self, index, cache, clock) -> None:
        source = _source()
        coordinator = FreshnessCoordinator(index, cache, source, clock=clock)
        await coordinator.handle_signal({"kind": "model.training.completed"})
        source.build_payload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_old_index_and_still_invalidates(self, index, cache, clock) -> None:
        index.refresh(_PAYLOAD)
        digest = index.digest
        bad = SimilarityPayload(books=(SimilarityPair(a="x", b="x", score=0.5),))
        coordinator = FreshnessCoordinator(index, cache, _source(bad), clock=clock)

        await coordinator.handle_signal({"kind": "embeddings.update.completed"})

        assert index.digest == digest
        cache.invalidate_all.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_refresh_without_source(self, index, cache) -> None:
        assert await FreshnessCoordinator(index, cache).refresh_index() is False

    @pytest.mark.asyncio
    async def test_accepts_model_instances(self, coordinator: FreshnessCoordinator, cache) -> None:
        signal = TrainingSignal(kind=SignalKind.MODEL_TRAINING_COMPLETED, scope=("u9",))
        assert await coordinator.handle_signal(signal) is SignalStatus.ACCEPTED
        cache.invalidate.assert_called_once_with("u9")


# ======================================================================
# RecommendationService
# ======================================================================


class TestRecommendationService:
    @pytest.fixture()
    def parts(self, catalog: InMemoryBookCatalog, clock) -> dict:
        cache = MemoryRecommendationCache(clock=clock)
        profiles = UserProfileStore(catalog, clock=clock)
        profiles.register_listener(lambda user_id, _profile: cache.invalidate(user_id))
        index = SimilarityIndex(clock=clock)
        tracker = FeedbackTracker(InMemoryFeedbackStore(), clock=clock)
        orchestrator = RecommendationOrchestrator(
            {"personalized": PersonalizedStrategy(catalog)},
            profiles=profiles,
            index=index,
            cache=cache,
            catalog=catalog,
            feedback=tracker,
            clock=clock,
        )
        freshness = FreshnessCoordinator(index, cache, clock=clock)
        service = RecommendationService(orchestrator, profiles, tracker, cache, freshness, index, catalog)
        return {"service": service, "cache": cache, "profiles": profiles, "index": index}

    @pytest.mark.asyncio
    async def test_interaction_invalidates_before_next_read(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        parts["profiles"].put_profile(UserProfile(user_id="u1", interests={"genre:fantasy": 0.6}))
        first = await service.recommend("u1", RecommendationRequest(count=3))

        for _ in range(4):
            await service.apply_interaction("u1", InteractionEvent(book_id="m-1", signal=SignalType.LIKE))
        second = await service.recommend("u1", RecommendationRequest(count=3))

        assert second is not first
        assert second.generated_at >= first.generated_at
        assert "m-1" in second.book_ids

    @pytest.mark.asyncio
    async def test_feedback_maps_to_profile_signal(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        assert await service.record_feedback("u1", "m-1", "accepted") is True

        profile = service.get_profile("u1")
        assert profile.recent[-1].signal is SignalType.LIKE
        assert profile.interests["genre:mystery"] > 0

    @pytest.mark.asyncio
    async def test_shown_feedback_leaves_profile_alone(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        await service.record_feedback("u1", "m-1", FeedbackAction.SHOWN)
        assert service.get_profile("u1").recent == ()

    @pytest.mark.asyncio
    async def test_duplicate_feedback_is_a_noop(self, parts: dict, clock) -> None:
        service: RecommendationService = parts["service"]
        assert await service.record_feedback("u1", "m-1", "rejected", clock.now) is True
        cached = await service.recommend("u1", RecommendationRequest())

        assert await service.record_feedback("u1", "m-1", "rejected", clock.now) is False
        assert len(service.get_profile("u1").recent) == 1
        assert await service.recommend("u1", RecommendationRequest()) is cached

    @pytest.mark.asyncio
    async def test_rejected_feedback_excludes_book(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        parts["profiles"].put_profile(UserProfile(user_id="u1", interests={"genre:mystery": 0.8}))
        before = await service.recommend("u1", RecommendationRequest())
        assert "m-1" in before.book_ids

        await service.record_feedback("u1", "m-1", "rejected")
        after = await service.recommend("u1", RecommendationRequest())
        assert "m-1" not in after.book_ids

    @pytest.mark.asyncio
    async def test_explicit_refresh_forces_recompute(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        first = await service.recommend("u1", RecommendationRequest())
        service.refresh("u1")
        assert await service.recommend("u1", RecommendationRequest()) is not first

    @pytest.mark.asyncio
    async def test_accuracy_window_in_days(self, parts: dict, clock) -> None:
        service: RecommendationService = parts["service"]
        await service.record_feedback("u1", "m-1", "shown", clock.now - timedelta(days=3))
        await service.record_feedback("u1", "m-1", "clicked", clock.now - timedelta(days=3))
        metric = await service.accuracy("u1", window_days=7)
        assert metric.click_through_rate == 1.0
        assert (await service.accuracy("u1", window_days=1)).sample_size == 0

    @pytest.mark.asyncio
    async def test_invalid_feedback_action(self, parts: dict) -> None:
        with pytest.raises(ValidationError):
            await parts["service"].record_feedback("u1", "m-1", "adored")

    @pytest.mark.asyncio
    async def test_preferences_invalidate_cached_sets(self, parts: dict) -> None:
        service: RecommendationService = parts["service"]
        first = await service.recommend("u1", RecommendationRequest(count=3))
        assert first.book_ids[0] == "f-1"

        await service.update_preferences("u1", PreferenceUpdate(preferred_genres=("mystery",)))
        second = await service.recommend("u1", RecommendationRequest(count=3))

        assert second is not first
        assert second.book_ids == ["m-1", "m-2", "m-3"]

    @pytest.mark.asyncio
    async def test_similar_books_skips_neighbours_missing_from_catalog(self, parts: dict) -> None:
        parts["index"].refresh(
            SimilarityPayload(
                books=(
                    SimilarityPair(a="m-1", b="m-2", score=0.9),
                    SimilarityPair(a="m-1", b="retired", score=0.8),
                    SimilarityPair(a="m-1", b="m-3", score=0.7),
                )
            )
        )
        similar = await parts["service"].similar_books("m-1", limit=2)
        assert [(book.book_id, score) for book, score in similar] == [("m-2", 0.9), ("m-3", 0.7)]

    @pytest.mark.asyncio
    async def test_similar_books_unknown_book(self, parts: dict) -> None:
        with pytest.raises(NotFoundError):
            await parts["service"].similar_books("nope")

    @pytest.mark.asyncio
    async def test_overall_accuracy_window_in_days(self, parts: dict, clock) -> None:
        service: RecommendationService = parts["service"]
        await service.record_feedback("u1", "m-1", "accepted", clock.now - timedelta(days=2))
        await service.record_feedback("u2", "m-2", "rejected", clock.now - timedelta(days=2))
        metric = await service.overall_accuracy(window_days=7)
        assert (metric.user_count, metric.acceptance_rate) == (2, 0.5)
        assert (await service.overall_accuracy(window_days=1)).sample_size == 0
