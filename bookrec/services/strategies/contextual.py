"""Contextual strategy: personalized scores re-weighted by reading context.

The request context (time of day, mood, location) is looked up in the
context boost table; each matching dimension of the interest vector is
multiplied by its boost before the dot product.  Missing context is
neutral.  When ``available_minutes`` is given, books whose estimated
reading time fits the budget get an extra boost.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from bookrec.config.domain_knowledge import (
    CONTEXT_BOOSTS,
    TIME_BUDGET_BOOST,
    WORDS_PER_MINUTE,
    context_multipliers,
)
from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies.base import dot, match_tag, popularity_fallback, rank
from bookrec.utils.logging import get_logger


class ContextualStrategy(IStrategy):
    name = "contextual"

    def __init__(
        self,
        catalog: IBookCatalog,
        boosts: Mapping[str, Mapping[str, Mapping[str, float]]] | None = None,
    ) -> None:
        self._catalog = catalog
        self._boosts = boosts if boosts is not None else CONTEXT_BOOSTS
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        books = await self._catalog.all_books()
        context = request.context
        multipliers = context_multipliers(context.lookup_fields(), self._boosts)
        budget = context.available_minutes

        if not profile.has_interests:
            base_items = {item.book_id: item for item in popularity_fallback(books)}
        else:
            interests = {
                dim: weight * multipliers.get(dim, 1.0)
                for dim, weight in profile.interests.items()
            }
            base_items = {}
            for book in books:
                score = dot(interests, book.features)
                if score <= 0:
                    continue
                boosted = any(multipliers.get(dim, 1.0) > 1.0 for dim in book.features)
                tag = _context_tag(context.lookup_fields()) if boosted else match_tag(interests, book.features)
                base_items[book.book_id] = ScoredBook(book_id=book.book_id, raw_score=score, explanation=tag)

        if budget is None:
            items = rank(base_items.values())
        else:
            by_id = {b.book_id: b for b in books}
            adjusted = []
            for item in base_items.values():
                minutes = by_id[item.book_id].reading_minutes(WORDS_PER_MINUTE)
                if 0 < minutes <= budget:
                    item = item.model_copy(
                        update={
                            "raw_score": item.raw_score * TIME_BUDGET_BOOST,
                            "explanation": f"fits in {budget} minutes",
                        }
                    )
                adjusted.append(item)
            items = rank(adjusted)

        self._logger.debug(
            "contextual_scored",
            user_id=profile.user_id,
            boosted_dimensions=len(multipliers),
            candidates=len(items),
        )
        return StrategyOutput(strategy=self.name, items=items)


def _context_tag(fields: Mapping[str, str | None]) -> str:
    parts = [str(value) for value in fields.values() if value]
    return "suits your " + "/".join(parts) if parts else "suits your context"
