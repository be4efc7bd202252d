"""Multi-objective strategy.

Raw score is a weighted sum of per-book objective sub-scores:

* ``accuracy`` -- personalized dot product normalised by the best book, [0, 1]
* ``novelty``  -- ``1 - popularity percentile``

``diversity`` depends on what is ranked above a book, so it cannot be
scored per book here; the ranking step applies it greedily (see
:func:`bookrec.pipeline.ranking.diversify`).  Unknown objective names are
ignored, logged and reported in the output's ``warnings``.

Every catalog book is returned, zero scores included, so that diversity
has room to reorder.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np
import structlog

from bookrec.config.domain_knowledge import KNOWN_OBJECTIVES
from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.book import Book
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies.base import dot, rank
from bookrec.utils.logging import get_logger

DEFAULT_OBJECTIVES: dict[str, float] = {"accuracy": 1.0}


def popularity_percentiles(books: Sequence[Book]) -> dict[str, float]:
    """Share of other books strictly less popular than each book, in [0, 1]."""
    if not books:
        return {}
    # side="left" counts strictly smaller values, so tied books share a
    # percentile.
    pops = np.array([b.popularity for b in books], dtype=float)
    ordered = np.sort(pops)
    below = np.searchsorted(ordered, pops, side="left")
    denom = max(len(books) - 1, 1)
    return {b.book_id: float(below[i]) / denom for i, b in enumerate(books)}


class MultiObjectiveStrategy(IStrategy):
    name = "multi_objective"

    def __init__(self, catalog: IBookCatalog) -> None:
        self._catalog = catalog
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        objectives, warnings = self._resolve_objectives(profile.user_id, request.objectives)
        books = await self._catalog.all_books()

        accuracy = _normalised_accuracy(profile.interests, books)
        novelty = {book_id: 1.0 - pct for book_id, pct in popularity_percentiles(books).items()}
        sub_scores = {"accuracy": accuracy, "novelty": novelty}

        items = []
        for book in books:
            parts = {
                name: weight * sub_scores[name].get(book.book_id, 0.0)
                for name, weight in objectives.items()
                if name in sub_scores
            }
            total = sum(parts.values())
            # sorted() first so ties name the alphabetically first objective.
            leading = max(sorted(parts), key=lambda n: parts[n]) if parts and total > 0 else None
            tag = f"strong on {leading}" if leading else "balances objectives"
            items.append(ScoredBook(book_id=book.book_id, raw_score=total, explanation=tag))

        return StrategyOutput(strategy=self.name, items=rank(items), warnings=tuple(warnings))

    def _resolve_objectives(
        self, user_id: str, requested: Mapping[str, float]
    ) -> tuple[dict[str, float], list[str]]:
        if not requested:
            return dict(DEFAULT_OBJECTIVES), []
        known: dict[str, float] = {}
        warnings: list[str] = []
        for name, weight in requested.items():
            if name not in KNOWN_OBJECTIVES:
                self._logger.warning("unknown_objective_ignored", user_id=user_id, objective=name)
                warnings.append(f"unknown objective ignored: {name}")
                continue
            known[name] = weight
        return known, warnings


def _normalised_accuracy(interests: Mapping[str, float], books: Sequence[Book]) -> dict[str, float]:
    raw = {b.book_id: max(0.0, dot(interests, b.features)) for b in books}
    peak = max(raw.values(), default=0.0)
    if peak <= 0:
        return {book_id: 0.0 for book_id in raw}
    return {book_id: score / peak for book_id, score in raw.items()}
