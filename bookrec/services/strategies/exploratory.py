"""Exploratory strategy: seeded sampling from the long tail.

Books in the bottom popularity quantile are sampled without replacement.
Each book's draw weight is a small floor plus its feature weight on the
reader's strongest interest dimension, so the long tail is explored near
what the reader already likes.  The generator is seeded from the request
(``seed``) or from a stable digest of user and request, so the same
request reproduces the same draw.
"""

from __future__ import annotations

import hashlib

import numpy as np
import structlog

from bookrec.interfaces.book_catalog import IBookCatalog
from bookrec.interfaces.strategy import IStrategy
from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import ScoredBook, StrategyOutput
from bookrec.models.request import RecommendationRequest
from bookrec.services.similarity_index import SimilarityIndex
from bookrec.utils.logging import get_logger

_WEIGHT_FLOOR = 0.05


def derive_seed(user_id: str, request: RecommendationRequest) -> int:
    """Request seed if given, otherwise a digest of user and request key."""
    if request.seed is not None:
        return request.seed
    digest = hashlib.sha256(f"{user_id}|{request.cache_key()}".encode()).hexdigest()
    return int(digest[:16], 16)


class ExploratoryStrategy(IStrategy):
    """Long-tail sampler.

    Parameters
    ----------
    catalog:
        Book source.
    quantile:
        Popularity quantile bounding the long tail, in (0, 1].
    sample_size:
        Draws when the request gives no ``count``.
    """

    name = "exploratory"

    def __init__(self, catalog: IBookCatalog, quantile: float = 0.3, sample_size: int = 10) -> None:
        self._catalog = catalog
        self._quantile = quantile
        self._sample_size = sample_size
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        # Completed books always stay out; rejected ones return with include_rejected.
        excluded = set(profile.completed_books)
        if not request.include_rejected:
            excluded |= profile.rejected_books
        books = [b for b in await self._catalog.all_books() if b.book_id not in excluded]
        if not books:
            return StrategyOutput(strategy=self.name)

        pops = np.array([b.popularity for b in books], dtype=float)
        cutoff = float(np.quantile(pops, self._quantile))
        tail = [b for b in books if b.popularity <= cutoff]

        top_dim = profile.top_dimension()
        weights = np.array(
            [_WEIGHT_FLOOR + max(0.0, b.features.get(top_dim, 0.0)) if top_dim else 1.0 for b in tail],
            dtype=float,
        )
        size = min(request.count or self._sample_size, len(tail))
        seed = derive_seed(profile.user_id, request)
        rng = np.random.default_rng(seed)
        picks = rng.choice(len(tail), size=size, replace=False, p=weights / weights.sum())

        tag = f"hidden gem near {top_dim}" if top_dim else "hidden gem"
        items = tuple(
            ScoredBook(book_id=tail[int(i)].book_id, raw_score=1.0 - position / size, explanation=tag)
            for position, i in enumerate(picks)
        )
        self._logger.debug(
            "exploratory_sampled",
            user_id=profile.user_id,
            tail=len(tail),
            drawn=size,
            cutoff=round(cutoff, 4),
        )
        return StrategyOutput(strategy=self.name, items=items)
