"""Social and group strategies.

*Social* boosts books rated highly by the reader's most similar users
(``SimilarityIndex.user_similarity``): each book scores the
similarity-weighted sum of neighbour ratings divided by the total
neighbour similarity, so books liked by many close neighbours rank first.

*Group* averages the members' interest vectors with equal weight and hands
the result to the personalized scorer; books any member has completed are
dropped.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

import structlog

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.ratings_provider import IRatingsProvider
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.profile_store import UserProfileStore
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.services.strategies.base import rank
from bookrec.services.strategies.personalized import PersonalizedStrategy
from bookrec.utils.errors import ValidationError
from bookrec.utils.logging import get_logger


class SocialStrategy(IStrategy):
    """Collaborative boost from the top-k most similar readers."""

    name = "social"

    def __init__(self, ratings: IRatingsProvider, top_k: int = 5, ratings_per_user: int = 20) -> None:
        self._ratings = ratings
        self._top_k = top_k
        self._ratings_per_user = ratings_per_user
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        neighbours = [(uid, sim) for uid, sim in index.user_similarity(profile.user_id, self._top_k) if sim > 0]
        if not neighbours:
            self._logger.debug("social_no_neighbours", user_id=profile.user_id)
            return StrategyOutput(strategy=self.name)

        rated = await asyncio.gather(
            *(self._ratings.top_rated(uid, self._ratings_per_user) for uid, _ in neighbours)
        )
        # Similarity-weighted mean rating over all neighbours; a neighbour who
        # did not rate a book contributes 0 to it.
        total_similarity = sum(sim for _, sim in neighbours)
        weighted: defaultdict[str, float] = defaultdict(float)
        supporters: defaultdict[str, int] = defaultdict(int)
        for (_, sim), ratings in zip(neighbours, rated):
            for book_id, rating in ratings:
                weighted[book_id] += sim * rating
                supporters[book_id] += 1

        items = rank(
            ScoredBook(
                book_id=book_id,
                raw_score=score / total_similarity,
                explanation=f"liked by {supporters[book_id]} similar reader{'s' if supporters[book_id] != 1 else ''}",
            )
            for book_id, score in weighted.items()
            if score > 0
        )
        return StrategyOutput(strategy=self.name, items=items)


class GroupStrategy(IStrategy):
    """Recommendations for several readers at once."""

    name = "group"

    def __init__(
        self,
        catalog: IBookCatalog,
        profiles: UserProfileStore,
        personalized: PersonalizedStrategy,
    ) -> None:
        self._catalog = catalog
        self._profiles = profiles
        self._personalized = personalized
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def members(self, profile: UserProfile, request: RecommendationRequest) -> list[UserProfile]:
        """Requesting user first, then the listed members, without repeats."""
        if not request.group_members:
            raise ValidationError("group recommendations need group_members", self.name)
        ids = list(dict.fromkeys([profile.user_id, *request.group_members]))
        return [profile if uid == profile.user_id else self._profiles.get(uid) for uid in ids]

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        # A book any member has finished is out for the whole group.
        members = self.members(profile, request)
        averaged = average_interests(members)
        completed = frozenset().union(*(m.completed_books for m in members))

        books = [b for b in await self._catalog.all_books() if b.book_id not in completed]
        group_profile = profile.model_copy(update={"interests": averaged})
        output = await self._personalized.score_books(group_profile, averaged, books, strategy=self.name)

        items = tuple(
            item.model_copy(update={"explanation": f"group pick: {item.explanation}"})
            for item in output.items
        )
        self._logger.debug("group_scored", members=len(members), excluded=len(completed))
        return output.model_copy(update={"items": items})


def average_interests(profiles: list[UserProfile]) -> dict[str, float]:
    """Equal-weight mean of interest vectors; missing dimensions count as 0."""
    if not profiles:
        return {}
    totals: defaultdict[str, float] = defaultdict(float)
    for p in profiles:
        for dim, weight in p.interests.items():
            totals[dim] += weight
    return {dim: total / len(profiles) for dim, total in totals.items()}
