"""Abstract base class for the external personalized scoring oracle.

The oracle is a trained model hosted elsewhere.  It is untrusted: callers
must bound each call with a timeout and validate every returned score.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from bookrec.models.profile import UserProfile


class IScoringOracle(ABC):
    """Contract for model-backed book scoring services."""

    @abstractmethod
    async def score(self, profile: UserProfile, book_ids: Sequence[str]) -> dict[str, float]:
        """Score *book_ids* for the reader described by *profile*.

        Parameters
        ----------
        profile:
            Frozen profile snapshot.
        book_ids:
            Candidate books to score.

        Returns
        -------
        dict[str, float]
            Book id -> score in [0, 1].  May be partial; entries for unknown
            ids or out-of-range scores are the caller's problem.

        Raises
        ------
        ProviderUnavailableError
            If the oracle cannot be reached or answers with garbage.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this oracle."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the oracle is configured for use."""
