"""Sequential strategy: what to read after the book just finished."""

from __future__ import annotations

from bookrec.interfaces.strategy import IStrategy
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.errors import ValidationError


class SequentialStrategy(IStrategy):
    """Nearest neighbours of ``request.last_book_id`` the user has not read."""

    name = "sequential"

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        last = request.last_book_id
        if not last:
            raise ValidationError("sequential recommendations need last_book_id", self.name)

        read = profile.completed_books | {last}
        items = tuple(
            ScoredBook(book_id=book_id, raw_score=score, explanation=f"similar to {last}")
            for book_id, score in index.book_similarity(last)
            if book_id not in read
        )
        return StrategyOutput(strategy=self.name, items=items)
