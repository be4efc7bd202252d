"""In-memory ratings provider."""

from __future__ import annotations

from bookrec.interfaces.ratings_provider import IRatingsProvider


class InMemoryRatingsProvider(IRatingsProvider):
    """Ratings held as ``user_id -> {book_id: rating}`` with ratings in [0, 1]."""

    def __init__(self, ratings: dict[str, dict[str, float]] | None = None) -> None:
        self._ratings: dict[str, dict[str, float]] = {
            user_id: dict(books) for user_id, books in (ratings or {}).items()
        }

    def set_rating(self, user_id: str, book_id: str, rating: float) -> None:
        self._ratings.setdefault(user_id, {})[book_id] = max(0.0, min(1.0, rating))

    async def top_rated(self, user_id: str, limit: int = 20) -> list[tuple[str, float]]:
        books = self._ratings.get(user_id, {})
        ranked = sorted(books.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]

    def get_provider_name(self) -> str:
        return "memory_ratings"
