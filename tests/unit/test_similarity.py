"""Unit tests for SimilarityIndex and the content similarity source."""

from __future__ import annotations

import pytest

from bookrec.models.profile import UserProfile
from bookrec.models.similarity import SimilarityPair, SimilarityPayload
from bookrec.providers.catalog.memory_catalog import InMemoryBookCatalog
from bookrec.providers.similarity.content_similarity_source import ContentSimilaritySource, cosine_pairs
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.errors import ValidationError


def _payload(*books: tuple[str, str, float], users: tuple[tuple[str, str, float], ...] = ()) -> SimilarityPayload:
    return SimilarityPayload(
        books=tuple(SimilarityPair(a=a, b=b, score=s) for a, b, s in books),
        users=tuple(SimilarityPair(a=a, b=b, score=s) for a, b, s in users),
    )


# ======================================================================
# SimilarityIndex
# ======================================================================


class TestSimilarityIndex:
    @pytest.fixture()
    def index(self, clock) -> SimilarityIndex:
        idx = SimilarityIndex(clock=clock)
        idx.refresh(
            _payload(
                ("a", "b", 0.9),
                ("a", "c", 0.9),
                ("a", "d", 0.2),
                users=(("u1", "u2", 0.7),),
            )
        )
        return idx

    def test_neighbours_sorted_score_desc_then_id(self, index: SimilarityIndex) -> None:
        assert index.book_similarity("a") == (("b", 0.9), ("c", 0.9), ("d", 0.2))

    def test_pairs_are_symmetric(self, index: SimilarityIndex) -> None:
        assert index.book_similarity("d") == (("a", 0.2),)
        assert index.pair_similarity("a", "b") == index.pair_similarity("b", "a") == 0.9

    def test_limit(self, index: SimilarityIndex) -> None:
        assert index.book_similarity("a", limit=1) == (("b", 0.9),)

    def test_unknown_ids(self, index: SimilarityIndex) -> None:
        assert index.book_similarity("zzz") == ()
        assert index.pair_similarity("a", "zzz") == 0.0
        assert index.pair_similarity("a", "a") == 1.0

    def test_user_similarity(self, index: SimilarityIndex) -> None:
        assert index.user_similarity("u2") == (("u1", 0.7),)

    def test_same_payload_is_a_noop(self, index: SimilarityIndex, clock) -> None:
        before = (index.digest, index.refreshed_at)
        clock.advance(minutes=5)
        changed = index.refresh(
            _payload(("c", "a", 0.9), ("b", "a", 0.9), ("d", "a", 0.2), users=(("u2", "u1", 0.7),))
        )
        assert changed is False
        assert (index.digest, index.refreshed_at) == before

    def test_new_payload_replaces_content(self, index: SimilarityIndex, clock) -> None:
        clock.advance(minutes=5)
        assert index.refresh(_payload(("x", "y", 0.4))) is True
        assert index.book_similarity("a") == ()
        assert index.book_similarity("x") == (("y", 0.4),)
        assert index.refreshed_at == clock.now

    @pytest.mark.parametrize(
        "bad",
        [("a", "a", 0.5), ("a", "b", 1.2), ("a", "b", -0.1), ("", "b", 0.5)],
    )
    def test_invalid_payload_rejected_whole(self, index: SimilarityIndex, bad: tuple[str, str, float]) -> None:
        digest = index.digest
        with pytest.raises(ValidationError):
            index.refresh(_payload(("x", "y", 0.4), bad))
        assert index.digest == digest
        assert index.book_similarity("x") == ()

    def test_empty_index(self) -> None:
        idx = SimilarityIndex()
        assert idx.refreshed_at is None
        assert idx.book_similarity("a") == ()


# ======================================================================
# cosine_pairs / ContentSimilaritySource
# ======================================================================


class TestCosinePairs:
    def test_identical_vectors_score_one(self) -> None:
        pairs = cosine_pairs(["a", "b"], [{"g": 1.0}, {"g": 2.0}])
        assert pairs == [SimilarityPair(a="a", b="b", score=1.0)]

    def test_orthogonal_vectors_dropped(self) -> None:
        assert cosine_pairs(["a", "b"], [{"g": 1.0}, {"h": 1.0}]) == []

    def test_opposite_vectors_clipped_and_dropped(self) -> None:
        assert cosine_pairs(["a", "b"], [{"g": 1.0}, {"g": -1.0}]) == []

    def test_top_n_limits_neighbours(self) -> None:
        ids = ["a", "b", "c", "d"]
        vectors = [{"g": 1.0}, {"g": 1.0, "h": 0.1}, {"g": 1.0, "h": 0.5}, {"g": 1.0, "h": 2.0}]
        pairs = cosine_pairs(ids, vectors, top_n=1)
        # Every item keeps its best neighbour; the union may hold more than one pair per item.
        involved = {p.a for p in pairs} | {p.b for p in pairs}
        assert involved == set(ids)
        assert len(pairs) < 6

    def test_too_few_items(self) -> None:
        assert cosine_pairs(["a"], [{"g": 1.0}]) == []


class TestContentSimilaritySource:
    @pytest.mark.asyncio
    async def test_builds_book_and_user_pairs(self, catalog: InMemoryBookCatalog) -> None:
        profiles = [
            UserProfile(user_id="u1", interests={"genre:mystery": 0.8}),
            UserProfile(user_id="u2", interests={"genre:mystery": 0.4, "genre:fantasy": -0.3}),
            UserProfile(user_id="u3", interests={"genre:science": 0.9}),
        ]
        source = ContentSimilaritySource(catalog, lambda: profiles)

        payload = await source.build_payload()
        index = SimilarityIndex()
        index.refresh(payload)

        # Negative interests are ignored, so u1 and u2 point the same way.
        assert index.user_similarity("u1")[0] == ("u2", 1.0)
        assert index.user_similarity("u3") == ()
        assert index.book_similarity("m-1")[0][0] in {"m-2", "m-3"}
        assert all(0.0 <= p.score <= 1.0 for p in payload.books)

    @pytest.mark.asyncio
    async def test_payload_is_deterministic(self, catalog: InMemoryBookCatalog) -> None:
        source = ContentSimilaritySource(catalog, lambda: [])
        first = await source.build_payload()
        second = await source.build_payload()
        assert first.digest() == second.digest()
