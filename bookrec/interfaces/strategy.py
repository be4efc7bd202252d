"""Abstract base class for recommendation strategies (generators).

A strategy turns a frozen profile snapshot plus the current similarity
index into an ordered list of scored books.  Collaborators such as the
catalog or the oracle are injected through the constructor; ``generate``
itself must be finite and must not block beyond bounded external calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from bookrec.models.profile import UserProfile
from bookrec.models.recommendation import StrategyOutput
from bookrec.models.request import RecommendationRequest

if TYPE_CHECKING:
    from bookrec.services.similarity_index import SimilarityIndex


class IStrategy(ABC):
    """Contract for one pluggable scoring algorithm."""

    #: Strategy name; matches a ``RecommendationType`` value.
    name: str = ""

    @abstractmethod
    async def generate(
        self,
        profile: UserProfile,
        index: SimilarityIndex,
        request: RecommendationRequest,
    ) -> StrategyOutput:
        """Score books for *profile*.

        Returns
        -------
        StrategyOutput
            Scored books, best first.  ``degraded`` is set when a bounded
            external call failed and a fallback signal was used.

        Raises
        ------
        ValidationError
            If *request* lacks parameters this strategy needs.
        """
