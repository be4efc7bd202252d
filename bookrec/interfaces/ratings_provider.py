"""Abstract base class for explicit book ratings owned by another system."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IRatingsProvider(ABC):
    """Read access to per-user book ratings."""

    @abstractmethod
    async def top_rated(self, user_id: str, limit: int = 20) -> list[tuple[str, float]]:
        """Return the user's highest-rated books.

        Parameters
        ----------
        user_id:
            Reader whose ratings to read.
        limit:
            Maximum number of books.

        Returns
        -------
        list[tuple[str, float]]
            ``(book_id, rating)`` pairs, rating in [0, 1], best first.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this ratings backend."""
