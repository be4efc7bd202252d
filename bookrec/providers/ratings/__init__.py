"""Ratings adapters."""

from bookrec.providers.ratings.memory_ratings import InMemoryRatingsProvider

__all__ = ["InMemoryRatingsProvider"]
