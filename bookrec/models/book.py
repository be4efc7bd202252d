"""Catalog record for a book, as served by an ``IBookCatalog``."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field


class Book(BaseModel):
    """A book with the feature vector used for scoring.

    ``features`` uses the same dimension names as
    :attr:`bookrec.models.profile.UserProfile.interests`.
    """

    model_config = ConfigDict(frozen=True)

    book_id: str = Field(min_length=1)
    title: str = ""
    author: str = ""
    genre: str = ""
    language: str = "en"
    word_count: int = Field(default=0, ge=0)
    features: dict[str, float] = Field(default_factory=dict)
    popularity: float = Field(default=0.0, ge=0.0)

    def reading_minutes(self, words_per_minute: int) -> int:
        """Estimated reading time, rounded up to whole minutes."""
        if self.word_count <= 0:
            return 0
        return math.ceil(self.word_count / words_per_minute)
