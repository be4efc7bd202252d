"""Recommendation cache backends."""

from bookrec.providers.cache.memory_cache import MemoryRecommendationCache

__all__ = ["MemoryRecommendationCache"]
