"""Unit tests for candidate merging, filtering and diversity-aware ranking."""

from __future__ import annotations

import pytest

from bookrec.models.recommendation import Candidate, ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationFilters
from bookrec.models.similarity import SimilarityPair, SimilarityPayload
from bookrec.pipeline.ranking import apply_filters, diversify, merge, sort_candidates
from bookrec.services.similarity_index import SimilarityIndex


def _output(strategy: str, *items: tuple[str, float, str]) -> StrategyOutput:
    return StrategyOutput(
        strategy=strategy,
        items=tuple(ScoredBook(book_id=b, raw_score=s, explanation=e) for b, s, e in items),
    )


def _candidates(**scores: float) -> list[Candidate]:
    return [Candidate(book_id=book_id.replace("_", "-"), combined_score=s) for book_id, s in scores.items()]


# ======================================================================
# merge
# ======================================================================


class TestMerge:
    def test_weighted_sum_across_strategies(self) -> None:
        outputs = [
            _output("personalized", ("m-1", 0.8, "matches genre:mystery"), ("m-2", 0.5, "matches genre:mystery")),
            _output("social", ("m-1", 0.6, "liked by 2 similar readers")),
        ]
        merged = {c.book_id: c for c in merge(outputs, {"personalized": 1.0, "social": 0.5})}

        assert merged["m-1"].combined_score == pytest.approx(0.8 + 0.3)
        assert merged["m-1"].scores == {"personalized": 0.8, "social": 0.6}
        assert merged["m-1"].strategies == ("personalized", "social")
        assert merged["m-1"].explanations == ("matches genre:mystery", "liked by 2 similar readers")
        assert merged["m-2"].combined_score == pytest.approx(0.5)

    def test_unlisted_strategy_weighs_one(self) -> None:
        merged = merge([_output("exploratory", ("b", 0.4, "hidden gem"))], {})
        assert merged[0].combined_score == pytest.approx(0.4)

    def test_duplicate_explanations_collapse(self) -> None:
        outputs = [
            _output("personalized", ("b", 0.5, "popular")),
            _output("contextual", ("b", 0.5, "popular")),
        ]
        assert merge(outputs, {})[0].explanations == ("popular",)

    def test_first_score_per_strategy_wins(self) -> None:
        merged = merge([_output("social", ("b", 0.9, "x"), ("b", 0.1, "y"))], {})
        assert merged[0].scores == {"social": 0.9}


# ======================================================================
# Filters
# ======================================================================


class TestApplyFilters:
    @pytest.fixture()
    def by_id(self, books) -> dict:
        return {b.book_id: b for b in books}

    def _all(self, by_id: dict) -> list[Candidate]:
        return [Candidate(book_id=book_id, combined_score=1.0) for book_id in [*by_id, "not-in-catalog"]]

    def test_no_filters_drops_only_unknown_books(self, by_id) -> None:
        kept = apply_filters(self._all(by_id), by_id, RecommendationFilters(), frozenset())
        assert {c.book_id for c in kept} == set(by_id)

    def test_genre_filter_case_insensitive(self, by_id) -> None:
        kept = apply_filters(self._all(by_id), by_id, RecommendationFilters(genres=("Fantasy",)), frozenset())
        assert {c.book_id for c in kept} == {"f-1", "f-2"}

    def test_language_and_length(self, by_id) -> None:
        filters = RecommendationFilters(languages=("en",), max_word_count=70_000)
        kept = apply_filters(self._all(by_id), by_id, filters, frozenset())
        assert {c.book_id for c in kept} == {"m-3", "s-1", "ss-1"}

    def test_excluded_books_removed(self, by_id) -> None:
        kept = apply_filters(self._all(by_id), by_id, RecommendationFilters(), frozenset({"m-1", "f-2"}))
        assert "m-1" not in {c.book_id for c in kept}
        assert "f-2" not in {c.book_id for c in kept}


# ======================================================================
# Ranking
# ======================================================================


class TestSortCandidates:
    def test_score_desc_then_id_asc(self) -> None:
        ranked = sort_candidates(_candidates(b=0.5, a=0.5, c=0.9))
        assert [c.book_id for c in ranked] == ["c", "a", "b"]


class TestDiversify:
    @pytest.fixture()
    def index(self) -> SimilarityIndex:
        idx = SimilarityIndex()
        idx.refresh(
            SimilarityPayload(
                books=(
                    SimilarityPair(a="dup-1", b="dup-2", score=0.95),
                    SimilarityPair(a="dup-1", b="dup-3", score=0.95),
                    SimilarityPair(a="dup-2", b="dup-3", score=0.95),
                )
            )
        )
        return idx

    @pytest.fixture()
    def candidates(self) -> list[Candidate]:
        return _candidates(dup_1=1.0, dup_2=0.95, dup_3=0.9, solo_1=0.8, solo_2=0.78, solo_3=0.76)

    def test_without_diversity_near_duplicates_cluster(self, candidates) -> None:
        ranked = sort_candidates(candidates)
        assert [c.book_id for c in ranked][:3] == ["dup-1", "dup-2", "dup-3"]

    def test_near_duplicates_pushed_down(self, candidates, index: SimilarityIndex) -> None:
        ranked = diversify(candidates, 1.0, index.pair_similarity, limit=6)
        assert [c.book_id for c in ranked] == ["dup-1", "solo-1", "solo-2", "solo-3", "dup-2", "dup-3"]

    def test_picked_value_becomes_combined_score(self, candidates, index: SimilarityIndex) -> None:
        ranked = diversify(candidates, 1.0, index.pair_similarity, limit=2)
        assert ranked[0].combined_score == pytest.approx(2.0)
        assert ranked[1].combined_score == pytest.approx(1.8)

    def test_result_sorted_when_greedy_values_rise(self) -> None:
        pairs = {("a", "x"): 0.4, ("a", "y"): 0.5}

        def similarity(first: str, second: str) -> float:
            return pairs.get((first, second), pairs.get((second, first), 0.0))

        ranked = diversify(_candidates(a=1.0, x=0.5, y=0.5), 1.0, similarity, limit=3)

        assert [c.book_id for c in ranked] == ["a", "y", "x"]
        assert [c.combined_score for c in ranked] == pytest.approx([2.0, 1.25, 1.1])
        scores = [c.combined_score for c in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_limit_and_zero_weight(self, candidates, index: SimilarityIndex) -> None:
        ranked = diversify(candidates, 0.0, index.pair_similarity, limit=3)
        assert [c.book_id for c in ranked] == ["dup-1", "dup-2", "dup-3"]

    def test_ties_go_to_lower_id(self, index: SimilarityIndex) -> None:
        ranked = diversify(_candidates(b=0.5, a=0.5), 0.3, index.pair_similarity, limit=2)
        assert [c.book_id for c in ranked] == ["a", "b"]

    def test_empty(self, index: SimilarityIndex) -> None:
        assert diversify([], 0.5, index.pair_similarity, limit=5) == []
