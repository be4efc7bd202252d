"""End-to-end recommendation flow through the fully wired service layer.

Components come from ``bookrec.main._build_all`` with the sample catalog, an
in-memory ratings table and a SQLite feedback store in ``tmp_path``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from bookrec.main import _build_all
from bookrec.models.profile import InteractionEvent, SignalType
from bookrec.models.request import RecommendationRequest, RecommendationType
from bookrec.models.signals import SignalStatus
from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog
from bookrec.providers.ratings.memory_ratings import InMemoryRatingsProvider
from bookrec.services.recommendation_service import RecommendationService


async def _start(app_settings, books) -> dict[str, Any]:
    components = _build_all(
        app_settings,
        catalog=InMemoryBookCatalog(books),
        ratings=InMemoryRatingsProvider({"u2": {"f-1": 0.9, "m-1": 0.4}}),
    )
    await components["feedback_store"].initialize()
    await components["freshness"].refresh_index(reason="startup")
    return components


@pytest_asyncio.fixture()
async def components(settings, books, tmp_path) -> AsyncIterator[dict[str, Any]]:
    app_settings = settings.model_copy(update={"feedback_db_path": str(tmp_path / "feedback.db")})
    built = await _start(app_settings, books)
    yield built
    await built["http_client"].aclose()


async def _like(service: RecommendationService, user_id: str, book_id: str, times: int = 3) -> None:
    for _ in range(times):
        await service.apply_interaction(user_id, InteractionEvent(book_id=book_id, signal=SignalType.LIKE))


# ======================================================================
# Tests
# ======================================================================


class TestRecommendationFlow:
    @pytest.mark.asyncio
    async def test_wiring(self, components: dict[str, Any]) -> None:
        registry = components["provider_registry"]
        assert registry["catalog_books"] == 7
        assert registry["feedback_store"] == "sqlite_feedback"
        assert registry["oracle"] is False
        assert set(registry["strategies"]) == {t.value for t in RecommendationType}

    @pytest.mark.asyncio
    async def test_sequential_uses_startup_similarity(self, components: dict[str, Any]) -> None:
        service: RecommendationService = components["recommendation_service"]
        request = RecommendationRequest(type=RecommendationType.SEQUENTIAL, last_book_id="m-1")

        result = await service.recommend("u1", request)

        assert result.book_ids == ["m-2", "m-3"]
        assert result.candidates[0].explanations == ("similar to m-1",)

    @pytest.mark.asyncio
    async def test_social_picks_up_neighbours_after_similarity_signal(self, components: dict[str, Any]) -> None:
        service: RecommendationService = components["recommendation_service"]
        await _like(service, "u1", "m-1")
        await _like(service, "u2", "m-1")
        request = RecommendationRequest(type=RecommendationType.SOCIAL)

        before = await service.recommend("u1", request)
        assert before.book_ids == []

        status = await service.handle_signal({"kind": "similarity.calculation.completed", "event_id": "sim-7"})
        assert status is SignalStatus.ACCEPTED

        after = await service.recommend("u1", request)
        assert after.book_ids == ["f-1", "m-1"]
        assert after.candidates[0].combined_score == pytest.approx(0.9)
        assert after.candidates[0].explanations == ("liked by 1 similar reader",)

    @pytest.mark.asyncio
    async def test_group_blends_member_tastes(self, components: dict[str, Any]) -> None:
        service: RecommendationService = components["recommendation_service"]
        await _like(service, "u1", "m-1")
        await _like(service, "u2", "f-1")

        result = await service.recommend(
            "u1", RecommendationRequest(type=RecommendationType.GROUP, group_members=("u2",), count=4)
        )

        genres = {book_id.split("-")[0] for book_id in result.book_ids}
        assert genres == {"m", "f"}
        assert all(c.explanations[0].startswith("group pick: ") for c in result.candidates)

    @pytest.mark.asyncio
    async def test_multi_objective_reports_unknown_objectives(self, components: dict[str, Any]) -> None:
        service: RecommendationService = components["recommendation_service"]
        await _like(service, "u1", "m-1")
        request = RecommendationRequest(
            type=RecommendationType.MULTI_OBJECTIVE,
            objectives={"accuracy": 0.7, "diversity": 0.5, "serendipity": 1.0},
            count=3,
        )

        result = await service.recommend("u1", request)

        assert len(result.candidates) == 3
        assert result.book_ids[0] == "m-1"
        assert any("serendipity" in warning for warning in result.warnings)

    @pytest.mark.asyncio
    async def test_mixed_strategies_merge(self, components: dict[str, Any]) -> None:
        service: RecommendationService = components["recommendation_service"]
        await _like(service, "u1", "m-1")
        request = RecommendationRequest(
            additional_strategies=(RecommendationType.EXPLORATORY, RecommendationType.CONTEXTUAL),
            seed=11,
        )

        result = await service.recommend("u1", request)

        assert result.strategy_mix == ("personalized", "exploratory", "contextual")
        assert result.degraded is False
        scores = [c.combined_score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_feedback_survives_restart(self, components: dict[str, Any], settings, books, tmp_path) -> None:
        service: RecommendationService = components["recommendation_service"]
        await service.record_feedback("u1", "f-1", "shown")
        await service.record_feedback("u1", "f-1", "rejected")

        app_settings = settings.model_copy(update={"feedback_db_path": str(tmp_path / "feedback.db")})
        restarted = await _start(app_settings, books)
        try:
            metric = await restarted["recommendation_service"].accuracy("u1")
            result = await restarted["recommendation_service"].recommend("u1", RecommendationRequest())
        finally:
            await restarted["http_client"].aclose()

        assert metric.rejected == 1
        assert metric.sample_size == 2
        assert "f-1" not in result.book_ids
